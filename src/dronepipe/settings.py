from __future__ import annotations
import os

PIPELINE_FILE = os.environ.get("DRONEPIPE_FILE", ".drone.yml")
WORKSPACE = os.environ.get("DRONEPIPE_WORKSPACE", "/drone/src")
RELEASE_BRANCH = os.environ.get("DRONEPIPE_RELEASE_BRANCH", "master")
RELEASE_PIPELINES = tuple(
    p.strip() for p in os.environ.get("DRONEPIPE_RELEASE_PIPELINES", "deploy").split(",") if p.strip()
)
SECRET_PREFIX = os.environ.get("DRONEPIPE_SECRET_PREFIX", "DRONEPIPE_SECRET_")
TELEGRAM_API = os.environ.get("DRONEPIPE_TELEGRAM_API", "https://api.telegram.org")
DOCKER = os.environ.get("DRONEPIPE_DOCKER", "docker")
