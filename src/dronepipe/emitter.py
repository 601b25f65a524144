# emitter.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import yaml

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


def _value(value: Any) -> Any:
    if isinstance(value, SecretRef):
        return {"from_secret": value.name}
    if isinstance(value, dict):
        return {k: _value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_value(v) for v in value]
    return value


def constraint_to_value(c: Constraint) -> Any:
    if c.exclude or c.form == "mapping":
        out: Dict[str, Any] = {}
        if c.include:
            out["include"] = list(c.include)
        if c.exclude:
            out["exclude"] = list(c.exclude)
        return out
    if c.form == "scalar" and len(c.include) == 1:
        return c.include[0]
    return list(c.include)


def conditions_to_dict(cond: Conditions) -> Dict[str, Any]:
    return {
        f: constraint_to_value(getattr(cond, f))
        for f in Conditions.FIELDS
        if not getattr(cond, f).is_empty()
    }


def mount_to_dict(mount: VolumeMount) -> Dict[str, Any]:
    d: Dict[str, Any] = {"name": mount.name, "path": mount.path}
    d.update(_value(mount.extra))
    return d


def volume_to_dict(volume: Volume) -> Dict[str, Any]:
    host: Dict[str, Any] = {"path": volume.host_path}
    host.update(_value(volume.host_extra))
    d: Dict[str, Any] = {"name": volume.name, "host": host}
    d.update(_value(volume.extra))
    return d


def step_to_dict(step: Step) -> Dict[str, Any]:
    d: Dict[str, Any] = {"name": step.name, "image": step.image}
    if step.commands:
        d["commands"] = list(step.commands)
    if step.environment:
        d["environment"] = _value(step.environment)
    if step.settings:
        d["settings"] = _value(step.settings)
    if step.volumes:
        d["volumes"] = [mount_to_dict(m) for m in step.volumes]
    if not step.when.is_empty():
        d["when"] = conditions_to_dict(step.when)
    d.update(_value(step.extra))
    return d


def service_to_dict(service: Service) -> Dict[str, Any]:
    d: Dict[str, Any] = {"name": service.name, "image": service.image}
    if service.ports:
        d["ports"] = list(service.ports)
    if service.environment:
        d["environment"] = _value(service.environment)
    d.update(_value(service.extra))
    return d


def pipeline_to_dict(pipeline: Pipeline) -> Dict[str, Any]:
    """Canonical mapping: kind, name, depends_on, trigger, steps, volumes, services, extras."""
    d: Dict[str, Any] = {"kind": pipeline.kind, "name": pipeline.name}
    if pipeline.depends_on:
        d["depends_on"] = list(pipeline.depends_on)
    if not pipeline.trigger.is_empty():
        d["trigger"] = conditions_to_dict(pipeline.trigger)
    if pipeline.steps:
        d["steps"] = [step_to_dict(s) for s in pipeline.steps]
    if pipeline.volumes:
        d["volumes"] = [volume_to_dict(v) for v in pipeline.volumes]
    if pipeline.services:
        d["services"] = [service_to_dict(s) for s in pipeline.services]
    d.update(_value(pipeline.extra))
    return d


def document_to_dicts(doc: Document) -> List[Dict[str, Any]]:
    return [pipeline_to_dict(p) for p in doc.pipelines]


def dump_document(doc: Document) -> str:
    """Serialize to multi-document YAML, each pipeline introduced by `---`."""
    return yaml.safe_dump_all(
        document_to_dicts(doc),
        explicit_start=True,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=100,
    )


def write_document(doc: Document, path: str | Path) -> None:
    Path(path).write_text(dump_document(doc), encoding="utf-8")
