# loader.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import yaml

from .errors import ParseError
from .model import (
    Conditions,
    Constraint,
    Document,
    Pipeline,
    SecretRef,
    Service,
    Step,
    Volume,
    VolumeMount,
)

PIPELINE_KEYS = {"kind", "name", "depends_on", "trigger", "steps", "volumes", "services"}
STEP_KEYS = {"name", "image", "commands", "environment", "settings", "volumes", "when"}
SERVICE_KEYS = {"name", "image", "ports", "environment"}
VOLUME_KEYS = {"name", "host"}
MOUNT_KEYS = {"name", "path"}


# ----------------------------------------------------------------------
# Small shape helpers
# ----------------------------------------------------------------------

def _require_mapping(value: Any, path: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ParseError(f"expected a mapping, got {type(value).__name__}", path)
    return value


def _require_str(mapping: Dict[str, Any], key: str, path: str) -> str:
    value = mapping.get(key)
    if value is None or value == "":
        raise ParseError(f"missing required key '{key}'", path)
    if not isinstance(value, str):
        raise ParseError(f"'{key}' must be a string", f"{path}.{key}")
    return value


def _str_list(value: Any, path: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ParseError("expected a string or a list of strings", path)
    out: List[str] = []
    for i, item in enumerate(value):
        if not isinstance(item, str):
            raise ParseError(f"expected a string, got {type(item).__name__}", f"{path}[{i}]")
        out.append(item)
    return out


def _extras(mapping: Dict[str, Any], known: set) -> Dict[str, Any]:
    return {k: v for k, v in mapping.items() if k not in known}


def parse_value(value: Any, path: str) -> Any:
    """Turn `{from_secret: x}` mappings into SecretRef, recursively."""
    if isinstance(value, dict):
        if set(value.keys()) == {"from_secret"}:
            name = value["from_secret"]
            if not isinstance(name, str) or not name:
                raise ParseError("from_secret must name a secret", f"{path}.from_secret")
            return SecretRef(name)
        return {k: parse_value(v, f"{path}.{k}") for k, v in value.items()}
    if isinstance(value, list):
        return [parse_value(v, f"{path}[{i}]") for i, v in enumerate(value)]
    return value


def _environment(value: Any, path: str) -> Dict[str, Any]:
    if value is None:
        return {}
    mapping = _require_mapping(value, path)
    env: Dict[str, Any] = {}
    for k, v in mapping.items():
        if isinstance(v, list):
            raise ParseError("environment values must be scalars or from_secret", f"{path}.{k}")
        env[str(k)] = parse_value(v, f"{path}.{k}")
    return env


# ----------------------------------------------------------------------
# Conditions
# ----------------------------------------------------------------------

def parse_constraint(value: Any, path: str = "constraint") -> Constraint:
    if value is None:
        return Constraint()
    if isinstance(value, str):
        return Constraint(include=[value], form="scalar")
    if isinstance(value, list):
        return Constraint(include=_str_list(value, path))
    if isinstance(value, dict):
        unknown = set(value) - {"include", "exclude"}
        if unknown:
            raise ParseError(f"unknown constraint keys: {sorted(unknown)}", path)
        return Constraint(
            include=_str_list(value.get("include"), f"{path}.include"),
            exclude=_str_list(value.get("exclude"), f"{path}.exclude"),
            form="mapping",
        )
    raise ParseError("expected a string, list or include/exclude mapping", path)


def parse_conditions(value: Any, path: str = "when") -> Conditions:
    if value is None:
        return Conditions()
    mapping = _require_mapping(value, path)
    unknown = set(mapping) - set(Conditions.FIELDS)
    if unknown:
        raise ParseError(f"unknown condition keys: {sorted(unknown)}", path)
    return Conditions(**{
        f: parse_constraint(mapping.get(f), f"{path}.{f}") for f in Conditions.FIELDS
    })


# ----------------------------------------------------------------------
# Records
# ----------------------------------------------------------------------

def _parse_mounts(value: Any, path: str) -> List[VolumeMount]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ParseError("expected a list of volume mounts", path)
    mounts: List[VolumeMount] = []
    for i, item in enumerate(value):
        p = f"{path}[{i}]"
        m = _require_mapping(item, p)
        mounts.append(VolumeMount(
            name=_require_str(m, "name", p),
            path=_require_str(m, "path", p),
            extra=_extras(m, MOUNT_KEYS),
        ))
    return mounts


def _parse_volumes(value: Any, path: str) -> List[Volume]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ParseError("expected a list of volumes", path)
    volumes: List[Volume] = []
    for i, item in enumerate(value):
        p = f"{path}[{i}]"
        v = _require_mapping(item, p)
        host = _require_mapping(v.get("host"), f"{p}.host")
        volumes.append(Volume(
            name=_require_str(v, "name", p),
            host_path=_require_str(host, "path", f"{p}.host"),
            host_extra=_extras(host, {"path"}),
            extra=_extras(v, VOLUME_KEYS),
        ))
    return volumes


def parse_step(value: Any, path: str) -> Step:
    m = _require_mapping(value, path)
    settings = m.get("settings")
    if settings is not None:
        settings = parse_value(_require_mapping(settings, f"{path}.settings"), f"{path}.settings")
    return Step(
        name=_require_str(m, "name", path),
        image=_require_str(m, "image", path),
        commands=_str_list(m.get("commands"), f"{path}.commands"),
        environment=_environment(m.get("environment"), f"{path}.environment"),
        settings=settings or {},
        volumes=_parse_mounts(m.get("volumes"), f"{path}.volumes"),
        when=parse_conditions(m.get("when"), f"{path}.when"),
        extra=_extras(m, STEP_KEYS),
    )


def parse_service(value: Any, path: str) -> Service:
    m = _require_mapping(value, path)
    ports = m.get("ports") or []
    if not isinstance(ports, list):
        raise ParseError("ports must be a list", f"{path}.ports")
    return Service(
        name=_require_str(m, "name", path),
        image=_require_str(m, "image", path),
        ports=list(ports),
        environment=_environment(m.get("environment"), f"{path}.environment"),
        extra=_extras(m, SERVICE_KEYS),
    )


def _parse_list(value: Any, path: str, fn) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ParseError("expected a list", path)
    return [fn(item, f"{path}[{i}]") for i, item in enumerate(value)]


def parse_pipeline(value: Any, path: str = "pipeline[0]") -> Pipeline:
    m = _require_mapping(value, path)
    kind = m.get("kind", "pipeline")
    if kind != "pipeline":
        raise ParseError(f"unsupported kind {kind!r}", f"{path}.kind")
    return Pipeline(
        name=_require_str(m, "name", path),
        kind=kind,
        steps=_parse_list(m.get("steps"), f"{path}.steps", parse_step),
        volumes=_parse_volumes(m.get("volumes"), f"{path}.volumes"),
        services=_parse_list(m.get("services"), f"{path}.services", parse_service),
        depends_on=_str_list(m.get("depends_on"), f"{path}.depends_on"),
        trigger=parse_conditions(m.get("trigger"), f"{path}.trigger"),
        extra=_extras(m, PIPELINE_KEYS),
    )


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def parse_document(text: str) -> Document:
    """Parse a (multi-document) YAML string into a Document."""
    try:
        raw_docs = [d for d in yaml.safe_load_all(text) if d is not None]
    except yaml.YAMLError as e:
        raise ParseError(f"invalid YAML: {e}") from e

    if not raw_docs:
        raise ParseError("document contains no pipelines")

    pipelines = [parse_pipeline(d, f"pipeline[{i}]") for i, d in enumerate(raw_docs)]
    return Document(pipelines=pipelines)


def load_document(path: str | Path) -> Document:
    """
    Load a pipeline file from disk.

    Raises:
      FileNotFoundError if the file is missing
      ParseError if it is not a valid pipeline document
    """
    p = Path(path).expanduser()
    if not p.exists():
        raise FileNotFoundError(f"Pipeline file not found: {p}")
    return parse_document(p.read_text(encoding="utf-8"))
