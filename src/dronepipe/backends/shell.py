# backends/shell.py
from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Dict, List

from ..errors import CIError
from ..model import Pipeline, Service, Step
from ..ui.console import get_console
from .base import Backend, Mount, StepOutcome, step_script


class ShellBackend(Backend):
    """
    Runs step commands directly on the host, in the repository checkout.

    Images, volumes and services are ignored: this is for iterating on a
    pipeline locally when the toolchain is already installed.
    """

    name = "shell"

    def __init__(self, repo_root: str | Path = ".", shell: str = "/bin/sh"):
        self.repo_root = Path(repo_root).resolve()
        self.shell = shell

    def start_service(self, pipeline: Pipeline, service: Service, env: Dict[str, str]) -> None:
        get_console().print_warning(
            f"[{pipeline.name}] service '{service.name}' ({service.image}) is not started by the shell backend"
        )

    def stop_service(self, pipeline: Pipeline, service: Service) -> None:
        pass

    def run_step(self, pipeline: Pipeline, step: Step, env: Dict[str, str], mounts: List[Mount]) -> StepOutcome:
        if not step.commands:
            return StepOutcome(
                exit_code=1,
                output=f"plugin image {step.image} needs the docker backend\n",
            )
        if not self.repo_root.exists():
            raise CIError(
                kind="workspace_missing",
                pipeline=pipeline.name,
                step=step.name,
                message=f"workspace not found: {self.repo_root}",
            )

        full_env = os.environ.copy()
        full_env.update(env)
        # steps expect their checkout as workspace
        full_env["DRONE_WORKSPACE"] = str(self.repo_root)

        proc = subprocess.run(
            [self.shell, "-c", step_script(step.commands)],
            cwd=str(self.repo_root),
            env=full_env,
            text=True,
            capture_output=True,
        )
        return StepOutcome(exit_code=proc.returncode, output=(proc.stdout or "") + (proc.stderr or ""))
