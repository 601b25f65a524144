# backends/docker.py
from __future__ import annotations

import re
import shlex
import subprocess
import uuid
from pathlib import Path
from typing import Dict, List

from .. import settings
from ..errors import CIError, TOOL_HINTS
from ..model import Pipeline, Service, Step
from ..ui.console import get_console
from .base import Backend, Mount, StepOutcome, step_script


def _slug(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_.-]+", "-", value).strip("-").lower() or "x"


def _run(cmd: List[str]) -> subprocess.CompletedProcess:
    get_console().print_debug(" ".join(shlex.quote(c) for c in cmd))
    return subprocess.run(cmd, text=True, capture_output=True)


def _env_args(env: Dict[str, str]) -> List[str]:
    args: List[str] = []
    for key, value in env.items():
        args.extend(["-e", f"{key}={value}"])
    return args


class DockerBackend(Backend):
    """
    Runs every service and step as a container through the docker CLI.

    One bridge network per pipeline; services join it under their own name
    as network alias, so steps reach `gamedb:5432` the same way they would
    on a Drone agent.
    """

    name = "docker"

    def __init__(
        self,
        repo_root: str | Path = ".",
        *,
        workspace: str = settings.WORKSPACE,
        docker: str = settings.DOCKER,
        run_id: str | None = None,
        check: bool = True,
    ):
        self.repo_root = Path(repo_root).resolve()
        self.workspace = workspace
        self.docker = docker
        self.run_id = run_id or uuid.uuid4().hex[:8]
        self._networks: Dict[str, str] = {}
        if check:
            self._check_docker_available()

    # ------------------------------------------------------------------
    # docker CLI plumbing
    # ------------------------------------------------------------------

    def _check_docker_available(self) -> None:
        """Check if Docker is available, raise helpful error if not."""
        try:
            subprocess.run([self.docker, "--version"], capture_output=True, check=True)
        except (subprocess.CalledProcessError, FileNotFoundError):
            raise CIError(
                kind="docker_unavailable",
                pipeline="",
                step=None,
                message="Docker is not available",
                details={"hint": TOOL_HINTS["docker"]},
            )

    def _docker(self, *args: str) -> subprocess.CompletedProcess:
        return subprocess.run([self.docker, *args], text=True, capture_output=True)

    def network_name(self, pipeline: Pipeline) -> str:
        return f"dronepipe_{self.run_id}_{_slug(pipeline.name)}"

    def container_name(self, pipeline: Pipeline, service: Service) -> str:
        return f"{self.network_name(pipeline)}_{_slug(service.name)}"

    def _ensure_network(self, pipeline: Pipeline) -> str:
        if pipeline.name in self._networks:
            return self._networks[pipeline.name]
        net = self.network_name(pipeline)
        proc = self._docker("network", "create", net)
        if proc.returncode != 0:
            raise CIError(
                kind="network_create_failed",
                pipeline=pipeline.name,
                step=None,
                message=f"could not create network {net}",
                details={"stderr": proc.stderr.strip()[-2000:]},
            )
        self._networks[pipeline.name] = net
        return net

    # ------------------------------------------------------------------
    # command construction (kept pure for testing)
    # ------------------------------------------------------------------

    def service_command(self, pipeline: Pipeline, service: Service, env: Dict[str, str]) -> List[str]:
        cmd = [
            self.docker, "run", "-d",
            "--name", self.container_name(pipeline, service),
            "--network", self.network_name(pipeline),
            "--network-alias", service.name,
        ]
        cmd.extend(_env_args(env))
        cmd.append(service.image)
        return cmd

    def step_command(self, pipeline: Pipeline, step: Step, env: Dict[str, str], mounts: List[Mount]) -> List[str]:
        cmd = [self.docker, "run", "--rm", "--network", self.network_name(pipeline)]

        # Volume mount: repo_root -> workspace
        cmd.extend(["-v", f"{self.repo_root}:{self.workspace}"])
        for host, path in mounts:
            cmd.extend(["-v", f"{host}:{path}"])
        cmd.extend(["-w", self.workspace])
        cmd.extend(_env_args(env))

        if step.commands:
            cmd.extend(["--entrypoint", "/bin/sh", step.image, "-c", step_script(step.commands)])
        else:
            # plugin image: its own entrypoint reads PLUGIN_* variables
            cmd.append(step.image)
        return cmd

    # ------------------------------------------------------------------
    # Backend API
    # ------------------------------------------------------------------

    def start_service(self, pipeline: Pipeline, service: Service, env: Dict[str, str]) -> None:
        self._ensure_network(pipeline)
        proc = _run(self.service_command(pipeline, service, env))
        if proc.returncode != 0:
            raise CIError(
                kind="service_start_failed",
                pipeline=pipeline.name,
                step=service.name,
                message=f"service '{service.name}' ({service.image}) did not start",
                details={"exit_code": proc.returncode, "stderr": proc.stderr.strip()[-2000:]},
            )

    def stop_service(self, pipeline: Pipeline, service: Service) -> None:
        self._docker("rm", "-f", self.container_name(pipeline, service))

    def run_step(self, pipeline: Pipeline, step: Step, env: Dict[str, str], mounts: List[Mount]) -> StepOutcome:
        self._ensure_network(pipeline)
        proc = _run(self.step_command(pipeline, step, env, mounts))
        return StepOutcome(exit_code=proc.returncode, output=(proc.stdout or "") + (proc.stderr or ""))

    def close(self) -> None:
        for net in self._networks.values():
            self._docker("network", "rm", net)
        self._networks.clear()
