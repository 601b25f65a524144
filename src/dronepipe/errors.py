# errors.py
from __future__ import annotations

from dataclasses import dataclass, field


class ParseError(ValueError):
    """Raised when a pipeline document does not have the expected shape."""

    def __init__(self, message: str, path: str = ""):
        self.message = message
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class ValidationError(ValueError):
    """Raised when linting finds at least one error-level issue."""

    def __init__(self, issues: list):
        self.issues = list(issues)
        errors = [i for i in self.issues if i.severity == "error"]
        super().__init__(f"{len(errors)} validation error(s): " + "; ".join(str(i) for i in errors))


class TemplateError(ValueError):
    pass


class SecretNotFound(KeyError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"secret not found: {self.name}"


class NotifyError(RuntimeError):
    """Raised when a notification could not be delivered."""
    pass


@dataclass
class CIError(Exception):
    """
    Structured CI error with enough context for:
      - clean CLI output
      - debugging without full tracebacks
    """
    kind: str
    pipeline: str
    step: str | None
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.pipeline:
            lines.append(f"pipeline={self.pipeline}")
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


TOOL_HINTS = {
    "docker": "Install Docker and ensure the daemon is running.",
}
