# conditions.py
from __future__ import annotations

from typing import Iterable, Optional, Tuple

from .context import BuildContext
from .model import Conditions, Constraint, Pipeline, Step

SUCCESS = "success"
FAILURE = "failure"
SKIPPED = "skipped"

# status defaults: only run while everything so far succeeded
_DEFAULT_STATUS = Constraint(include=[SUCCESS])


def _status_constraint(cond: Conditions) -> Constraint:
    return _DEFAULT_STATUS if cond.status.is_empty() else cond.status


def _context_value(ctx: BuildContext, name: str) -> str:
    if name == "repo":
        return ctx.repo.full_name
    return getattr(ctx, name)


def _match_context(cond: Conditions, ctx: BuildContext) -> Optional[str]:
    """Return the name of the first failing filter, or None if all match."""
    for name in ("branch", "event", "ref", "repo"):
        if not getattr(cond, name).matches(_context_value(ctx, name)):
            return name
    return None


def step_should_run(step: Step, ctx: BuildContext, pipeline_status: str) -> Tuple[bool, str]:
    """
    Decide whether a step runs given the pipeline status so far.

    Returns (run, reason); reason is empty when the step runs.
    """
    miss = _match_context(step.when, ctx)
    if miss:
        return False, f"when.{miss} does not match {_context_value(ctx, miss)!r}"
    if not _status_constraint(step.when).matches(pipeline_status):
        return False, f"pipeline status is {pipeline_status}"
    return True, ""


def aggregate_status(statuses: Iterable[str]) -> str:
    statuses = list(statuses)
    return FAILURE if FAILURE in statuses else SUCCESS


def pipeline_should_run(
    pipeline: Pipeline,
    ctx: BuildContext,
    upstream: dict[str, str] | None = None,
) -> Tuple[bool, str]:
    """
    Evaluate a pipeline's trigger.

    `upstream` maps dependency name -> terminal status. A dependency that
    was skipped (or never ran) skips this pipeline as well.
    """
    upstream = upstream or {}
    for dep in pipeline.depends_on:
        status = upstream.get(dep)
        if status is None or status == SKIPPED:
            return False, f"dependency '{dep}' did not run"

    miss = _match_context(pipeline.trigger, ctx)
    if miss:
        return False, f"trigger.{miss} does not match {_context_value(ctx, miss)!r}"

    if pipeline.depends_on:
        status = aggregate_status(upstream[d] for d in pipeline.depends_on)
        if not _status_constraint(pipeline.trigger).matches(status):
            return False, f"upstream status is {status}"
    return True, ""
