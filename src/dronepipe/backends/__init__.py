from .base import Backend, StepOutcome, step_script
from .docker import DockerBackend
from .dry_run import DryRunBackend
from .shell import ShellBackend

BACKENDS = {
    "docker": DockerBackend,
    "shell": ShellBackend,
    "dry-run": DryRunBackend,
}

__all__ = ["Backend", "StepOutcome", "step_script", "DockerBackend", "DryRunBackend", "ShellBackend", "BACKENDS"]
