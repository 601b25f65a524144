# lint.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from . import settings
from .conditions import FAILURE, SUCCESS, pipeline_should_run, step_should_run
from .context import BuildContext, BuildInfo, CommitInfo
from .dag import find_cycle
from .errors import ValidationError
from .model import Document, Pipeline
from .plugins import NOTIFIER_IMAGES, is_notifier

ERROR = "error"
WARNING = "warning"

# setting names that should never hold a literal value
_CREDENTIAL = re.compile(r"(token|password|passwd|secret|api_?key|private_?key|webhook)", re.I)

# events a Drone server can emit; used to probe release gates
KNOWN_EVENTS = ("push", "pull_request", "tag", "promote", "rollback", "cron", "custom")


@dataclass(frozen=True)
class Issue:
    code: str
    severity: str
    message: str
    pipeline: str = ""
    step: str = ""

    def __str__(self) -> str:
        where = self.pipeline
        if self.step:
            where = f"{where}/{self.step}"
        prefix = f"{self.severity.upper()} [{self.code}]"
        return f"{prefix} {where}: {self.message}" if where else f"{prefix} {self.message}"


@dataclass(frozen=True)
class LintPolicy:
    release_branch: str = settings.RELEASE_BRANCH
    release_pipelines: Tuple[str, ...] = settings.RELEASE_PIPELINES
    release_events: Tuple[str, ...] = ("push",)
    notifier_images: Tuple[str, ...] = field(default_factory=tuple)


# ----------------------------------------------------------------------
# Per-pipeline rules
# ----------------------------------------------------------------------

def _check_names(p: Pipeline, issues: List[Issue]) -> None:
    seen: Set[str] = set()
    for name in [s.name for s in p.services] + [s.name for s in p.steps]:
        if name in seen:
            issues.append(Issue("duplicate-step", ERROR, f"name '{name}' is used more than once", p.name, name))
        seen.add(name)


def _check_steps(p: Pipeline, issues: List[Issue]) -> None:
    for step in p.steps:
        if not step.commands and not step.settings:
            issues.append(Issue(
                "missing-commands", ERROR,
                "step must declare commands (or settings for a plugin image)",
                p.name, step.name,
            ))
        for key, value in step.settings.items():
            if _CREDENTIAL.search(key) and isinstance(value, (str, int)) and not isinstance(value, bool):
                issues.append(Issue(
                    "inline-secret", WARNING,
                    f"setting '{key}' holds a literal value; use from_secret",
                    p.name, step.name,
                ))


def _check_volumes(p: Pipeline, issues: List[Issue]) -> None:
    declared: Dict[str, int] = {}
    for v in p.volumes:
        declared[v.name] = declared.get(v.name, 0) + 1
        if not v.host_path.startswith("/"):
            issues.append(Issue(
                "relative-host-path", ERROR,
                f"volume '{v.name}' host path must be absolute, got '{v.host_path}'",
                p.name,
            ))

    mounted: Set[str] = set()
    for step in p.steps:
        paths: Set[str] = set()
        for m in step.volumes:
            mounted.add(m.name)
            if m.name not in declared:
                issues.append(Issue(
                    "unknown-volume", ERROR,
                    f"mounts volume '{m.name}' which the pipeline does not declare",
                    p.name, step.name,
                ))
            if m.path in paths:
                issues.append(Issue(
                    "duplicate-mount-path", ERROR,
                    f"path '{m.path}' is mounted more than once",
                    p.name, step.name,
                ))
            paths.add(m.path)

    for name in declared:
        if name not in mounted:
            issues.append(Issue("unused-volume", WARNING, f"volume '{name}' is never mounted", p.name))


def _check_notifiers(p: Pipeline, policy: LintPolicy, issues: List[Issue]) -> None:
    for step in p.steps:
        if not is_notifier(step.image, policy.notifier_images):
            continue
        status = step.when.status
        if not (status.matches("success") and status.matches("failure")) or status.is_empty():
            issues.append(Issue(
                "notify-status", ERROR,
                "notification step must run on both success and failure (when.status: [success, failure])",
                p.name, step.name,
            ))


def _probe_contexts(policy: LintPolicy) -> List[BuildContext]:
    """Contexts in which a release pipeline must not run any step."""
    other_branch = f"{policy.release_branch}-probe" if policy.release_branch else "probe"
    probes = [
        BuildContext(build=BuildInfo(event=event), commit=CommitInfo(branch=other_branch))
        for event in policy.release_events
    ]
    probes.extend(
        BuildContext(build=BuildInfo(event=event), commit=CommitInfo(branch=policy.release_branch))
        for event in KNOWN_EVENTS
        if event not in policy.release_events
    )
    return probes


def _check_release_gate(p: Pipeline, policy: LintPolicy, issues: List[Issue]) -> None:
    if p.name not in policy.release_pipelines:
        return
    if not p.depends_on:
        issues.append(Issue(
            "ungated-release", ERROR,
            "release pipeline must depend on the pipeline that tests it",
            p.name,
        ))
    upstream = {d: SUCCESS for d in p.depends_on}
    for ctx in _probe_contexts(policy):
        runs, _ = pipeline_should_run(p, ctx, upstream)
        if not runs:
            continue
        leaking = [s.name for s in p.steps if step_should_run(s, ctx, SUCCESS)[0]]
        if leaking:
            issues.append(Issue(
                "ungated-release", ERROR,
                f"steps {leaking} would run for branch '{ctx.branch}' on event '{ctx.event}'",
                p.name,
            ))

    if not p.depends_on:
        return
    # a release must not start after the pipeline that tests it failed
    failed = {d: FAILURE for d in p.depends_on}
    for event in policy.release_events:
        ctx = BuildContext(build=BuildInfo(event=event), commit=CommitInfo(branch=policy.release_branch))
        runs, _ = pipeline_should_run(p, ctx, failed)
        if not runs:
            continue
        leaking = [s.name for s in p.steps if step_should_run(s, ctx, SUCCESS)[0]]
        if leaking:
            issues.append(Issue(
                "ungated-release", ERROR,
                f"steps {leaking} would run after {sorted(failed)} failed; use trigger.status: [success]",
                p.name,
            ))


def _check_trigger_status(p: Pipeline, issues: List[Issue]) -> None:
    if p.depends_on and p.trigger.status.is_empty():
        issues.append(Issue(
            "ungated-dependency", WARNING,
            "pipeline has depends_on but no trigger.status; it only runs when dependencies succeed",
            p.name,
        ))


# ----------------------------------------------------------------------
# Document rules
# ----------------------------------------------------------------------

def _check_dependencies(doc: Document, issues: List[Issue]) -> None:
    names = doc.names
    for n in sorted({n for n in names if names.count(n) > 1}):
        issues.append(Issue("duplicate-pipeline", ERROR, f"pipeline name '{n}' is used more than once", n))

    known = set(names)
    adj: Dict[str, Set[str]] = {n: set() for n in known}
    for p in doc.pipelines:
        for dep in p.depends_on:
            if dep not in known:
                issues.append(Issue("unknown-dependency", ERROR, f"depends on unknown pipeline '{dep}'", p.name))
            else:
                adj[dep].add(p.name)

    cycle = find_cycle(adj)
    if cycle:
        issues.append(Issue("dependency-cycle", ERROR, "depends_on cycle: " + " -> ".join(cycle), cycle[0]))


def lint_document(doc: Document, policy: Optional[LintPolicy] = None) -> List[Issue]:
    """Return every issue found in `doc`, errors and warnings alike."""
    policy = policy or LintPolicy()
    issues: List[Issue] = []
    _check_dependencies(doc, issues)
    for p in doc.pipelines:
        _check_names(p, issues)
        _check_steps(p, issues)
        _check_volumes(p, issues)
        _check_notifiers(p, policy, issues)
        _check_release_gate(p, policy, issues)
        _check_trigger_status(p, issues)
    return issues


def validate_document(doc: Document, policy: Optional[LintPolicy] = None) -> List[Issue]:
    """
    Lint and raise ValidationError if anything is an error.

    Returns the remaining warnings.
    """
    issues = lint_document(doc, policy)
    if any(i.severity == ERROR for i in issues):
        raise ValidationError(issues)
    return issues


__all__ = [
    "Issue",
    "LintPolicy",
    "NOTIFIER_IMAGES",
    "lint_document",
    "validate_document",
]
