# backends/dry_run.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set

from ..errors import CIError
from ..model import Pipeline, Service, Step
from .base import Backend, Mount, StepOutcome


@dataclass
class Call:
    action: str          # start_service | stop_service | run_step
    pipeline: str
    name: str
    env: Dict[str, str] = field(default_factory=dict)
    mounts: List[Mount] = field(default_factory=list)


class DryRunBackend(Backend):
    """
    Records what would run without touching containers.

    `exit_codes` maps "step" or "pipeline/step" to the exit code that step
    should report; everything else exits 0. `failing_services` names
    services that refuse to start.
    """

    name = "dry-run"

    def __init__(
        self,
        exit_codes: Optional[Mapping[str, int]] = None,
        failing_services: Optional[Set[str]] = None,
    ):
        self.exit_codes = dict(exit_codes or {})
        self.failing_services = set(failing_services or ())
        self.calls: List[Call] = []

    def start_service(self, pipeline: Pipeline, service: Service, env: Dict[str, str]) -> None:
        self.calls.append(Call("start_service", pipeline.name, service.name, dict(env)))
        if service.name in self.failing_services:
            raise CIError(
                kind="service_start_failed",
                pipeline=pipeline.name,
                step=service.name,
                message=f"service '{service.name}' ({service.image}) did not start",
            )

    def stop_service(self, pipeline: Pipeline, service: Service) -> None:
        self.calls.append(Call("stop_service", pipeline.name, service.name))

    def run_step(self, pipeline: Pipeline, step: Step, env: Dict[str, str], mounts: List[Mount]) -> StepOutcome:
        self.calls.append(Call("run_step", pipeline.name, step.name, dict(env), list(mounts)))
        code = self.exit_codes.get(f"{pipeline.name}/{step.name}", self.exit_codes.get(step.name, 0))
        output = "".join(f"+ {cmd}\n" for cmd in step.commands)
        return StepOutcome(exit_code=code, output=output)

    # ---- inspection helpers ----

    def ran(self, pipeline: Optional[str] = None) -> List[str]:
        """Names of steps handed to the backend, in order."""
        return [
            c.name for c in self.calls
            if c.action == "run_step" and (pipeline is None or c.pipeline == pipeline)
        ]

    def call_for(self, step: str) -> Optional[Call]:
        for c in self.calls:
            if c.action == "run_step" and c.name == step:
                return c
        return None
