# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class SecretRef:
    """A `{from_secret: name}` reference, resolved at run time."""
    name: str


@dataclass
class Constraint:
    """
    Include/exclude glob filter over a single value (branch, event, status...).

    `form` remembers how the source wrote it ("scalar", "list" or "mapping")
    so the emitter can write it back the same way.
    """
    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    form: str = "list"

    def is_empty(self) -> bool:
        return not self.include and not self.exclude

    def matches(self, value: str | None) -> bool:
        value = value or ""
        if any(fnmatchcase(value, p) for p in self.exclude):
            return False
        if self.include:
            return any(fnmatchcase(value, p) for p in self.include)
        return True

    def __eq__(self, other: object) -> bool:
        # shape (scalar vs list) is presentation only
        if not isinstance(other, Constraint):
            return NotImplemented
        return self.include == other.include and self.exclude == other.exclude


@dataclass
class Conditions:
    """Predicate used both as step `when` and pipeline `trigger`."""
    branch: Constraint = field(default_factory=Constraint)
    event: Constraint = field(default_factory=Constraint)
    status: Constraint = field(default_factory=Constraint)
    ref: Constraint = field(default_factory=Constraint)
    repo: Constraint = field(default_factory=Constraint)

    FIELDS = ("branch", "event", "status", "ref", "repo")

    def is_empty(self) -> bool:
        return all(getattr(self, f).is_empty() for f in self.FIELDS)


@dataclass(frozen=True)
class VolumeMount:
    name: str
    path: str
    extra: Dict[str, Any] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class Volume:
    name: str
    host_path: str
    # keys under `host` other than `path`
    host_extra: Dict[str, Any] = field(default_factory=dict, hash=False)
    extra: Dict[str, Any] = field(default_factory=dict, hash=False)


@dataclass
class Step:
    """One containerized unit of work inside a pipeline."""
    name: str
    image: str
    commands: List[str] = field(default_factory=list)
    environment: Dict[str, Any] = field(default_factory=dict)
    settings: Dict[str, Any] = field(default_factory=dict)
    volumes: List[VolumeMount] = field(default_factory=list)
    when: Conditions = field(default_factory=Conditions)
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_plugin(self) -> bool:
        return bool(self.settings) and not self.commands


@dataclass
class Service:
    """Auxiliary container kept alive for the whole pipeline run."""
    name: str
    image: str
    ports: List[Any] = field(default_factory=list)
    environment: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Pipeline:
    name: str
    kind: str = "pipeline"
    steps: List[Step] = field(default_factory=list)
    volumes: List[Volume] = field(default_factory=list)
    services: List[Service] = field(default_factory=list)
    depends_on: List[str] = field(default_factory=list)
    trigger: Conditions = field(default_factory=Conditions)
    extra: Dict[str, Any] = field(default_factory=dict)

    def volume(self, name: str) -> Optional[Volume]:
        for v in self.volumes:
            if v.name == name:
                return v
        return None

    def step(self, name: str) -> Optional[Step]:
        for s in self.steps:
            if s.name == name:
                return s
        return None


@dataclass
class Document:
    """An ordered multi-document pipeline file."""
    pipelines: List[Pipeline] = field(default_factory=list)

    def pipeline(self, name: str) -> Optional[Pipeline]:
        for p in self.pipelines:
            if p.name == name:
                return p
        return None

    @property
    def names(self) -> List[str]:
        return [p.name for p in self.pipelines]
