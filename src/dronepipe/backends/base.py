# backends/base.py
from __future__ import annotations

import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Tuple

from ..model import Pipeline, Service, Step

# (host path, container path)
Mount = Tuple[str, str]


@dataclass(frozen=True)
class StepOutcome:
    exit_code: int
    output: str = ""


def step_script(commands: List[str]) -> str:
    """
    Shell script for a step: echo each command before running it, stop at
    the first command that exits non-zero.
    """
    lines = ["set -e"]
    for cmd in commands:
        lines.append(f"echo {shlex.quote('+ ' + cmd)}")
        lines.append(cmd)
    return "\n".join(lines) + "\n"


class Backend(ABC):
    """Runs services and steps on behalf of the engine."""

    name = "backend"

    @abstractmethod
    def start_service(self, pipeline: Pipeline, service: Service, env: Dict[str, str]) -> None:
        """Start a service container; raise CIError if it cannot start."""

    @abstractmethod
    def stop_service(self, pipeline: Pipeline, service: Service) -> None:
        ...

    @abstractmethod
    def run_step(self, pipeline: Pipeline, step: Step, env: Dict[str, str], mounts: List[Mount]) -> StepOutcome:
        ...

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
