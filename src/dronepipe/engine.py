# engine.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .backends.base import Backend, Mount, StepOutcome
from .conditions import FAILURE, SKIPPED, SUCCESS, pipeline_should_run, step_should_run
from .context import BuildContext
from .dag import build_dag, run_levels, topo_levels
from .errors import CIError, NotifyError, SecretNotFound, TemplateError
from .model import Document, Pipeline, Step
from .plugins import native_plugin_for, plugin_environment
from .plugins.notify import Notifier, RecordingNotifier
from .secrets import Masker, MappingSecrets, SecretProvider, resolve_environment, resolve_value
from .ui.console import get_console


# ----------------------------------------------------------------------
# Results
# ----------------------------------------------------------------------

@dataclass
class StepResult:
    name: str
    status: str                       # success | failure | skipped
    exit_code: Optional[int] = None
    reason: str = ""
    output: str = ""


@dataclass
class PipelineResult:
    name: str
    status: str                       # success | failure | skipped
    steps: List[StepResult] = field(default_factory=list)
    reason: str = ""

    def step(self, name: str) -> Optional[StepResult]:
        for s in self.steps:
            if s.name == name:
                return s
        return None


@dataclass
class BuildResult:
    status: str
    pipelines: List[PipelineResult] = field(default_factory=list)

    def pipeline(self, name: str) -> Optional[PipelineResult]:
        for p in self.pipelines:
            if p.name == name:
                return p
        return None

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS


# ----------------------------------------------------------------------
# Runner
# ----------------------------------------------------------------------

class Runner:
    """
    Executes a Document against a backend.

    Pipelines run in `depends_on` order; steps inside a pipeline run strictly
    in declaration order. Secrets are resolved per step, so a missing secret
    fails only the step that needs it.
    """

    def __init__(
        self,
        backend: Backend,
        *,
        secrets: Optional[SecretProvider] = None,
        notifier: Optional[Notifier] = None,
        masker: Optional[Masker] = None,
        max_workers: int | None = 1,
    ):
        self.backend = backend
        self.secrets = secrets or MappingSecrets()
        self.notifier = notifier or RecordingNotifier()
        self.masker = masker or Masker()
        self.max_workers = max_workers

    # ---- step ----

    def _mounts(self, pipeline: Pipeline, step: Step) -> List[Mount]:
        mounts: List[Mount] = []
        for m in step.volumes:
            volume = pipeline.volume(m.name)
            if volume is None:
                raise CIError(
                    kind="unknown_volume",
                    pipeline=pipeline.name,
                    step=step.name,
                    message=f"volume '{m.name}' is not declared in the pipeline",
                )
            mounts.append((volume.host_path, m.path))
        return mounts

    def _execute_step(self, pipeline: Pipeline, step: Step, ctx: BuildContext) -> StepOutcome:
        used: List[str] = []
        try:
            env = ctx.environ()
            env.update(resolve_environment(step.environment, self.secrets, used))
            mounts = self._mounts(pipeline, step)

            if step.is_plugin:
                native = native_plugin_for(step.image)
                if native is not None:
                    resolved = resolve_value(step.settings, self.secrets, used)
                    return native.run(step, ctx, resolved, self.notifier)
                env.update(plugin_environment(step.settings, self.secrets, used))

            return self.backend.run_step(pipeline, step, env, mounts)
        finally:
            self.masker.add(*used)

    def run_step(self, pipeline: Pipeline, step: Step, ctx: BuildContext, pipeline_status: str) -> StepResult:
        console = get_console()
        should, reason = step_should_run(step, ctx, pipeline_status)
        if not should:
            console.print_step_skipped(pipeline.name, step.name, reason)
            return StepResult(name=step.name, status=SKIPPED, reason=reason)

        console.print_step(pipeline.name, step.name)
        try:
            outcome = self._execute_step(pipeline, step, ctx.with_status(pipeline_status))
        except (SecretNotFound, NotifyError, TemplateError, CIError) as e:
            message = self.masker(str(e))
            console.print_failure(step.name, message)
            return StepResult(name=step.name, status=FAILURE, reason=message)

        output = self.masker(outcome.output)
        if outcome.exit_code != 0:
            console.print_output(output)
            console.print_failure(step.name, f"exit code {outcome.exit_code}", exit_code=outcome.exit_code)
            return StepResult(name=step.name, status=FAILURE, exit_code=outcome.exit_code, output=output)

        if console.debug:
            console.print_output(output)
        return StepResult(name=step.name, status=SUCCESS, exit_code=0, output=output)

    # ---- pipeline ----

    def run_pipeline(self, pipeline: Pipeline, ctx: BuildContext, upstream: Dict[str, str]) -> PipelineResult:
        console = get_console()
        should, reason = pipeline_should_run(pipeline, ctx, upstream)
        if not should:
            console.print_pipeline_skipped(pipeline.name, reason)
            return PipelineResult(name=pipeline.name, status=SKIPPED, reason=reason)

        console.print_pipeline_start(pipeline.name)
        status = SUCCESS
        result = PipelineResult(name=pipeline.name, status=status)
        started = []

        try:
            for service in pipeline.services:
                console.print_service(pipeline.name, service.name, service.image)
                try:
                    used: List[str] = []
                    env = ctx.environ()
                    env.update(resolve_environment(service.environment, self.secrets, used))
                    self.masker.add(*used)
                    self.backend.start_service(pipeline, service, env)
                    started.append(service)
                except (CIError, SecretNotFound) as e:
                    status = FAILURE
                    result.reason = self.masker(str(e)).split("\n")[0]
                    console.print_failure(service.name, self.masker(str(e)))
                    break

            for step in pipeline.steps:
                step_result = self.run_step(pipeline, step, ctx, status)
                result.steps.append(step_result)
                if step_result.status == FAILURE:
                    status = FAILURE
        finally:
            for service in reversed(started):
                self.backend.stop_service(pipeline, service)

        result.status = status
        console.print_pipeline_done(pipeline.name, status)
        return result

    # ---- document ----

    def run(self, doc: Document, ctx: BuildContext) -> BuildResult:
        adj, indeg = build_dag(doc.pipelines)
        levels = topo_levels(adj, indeg, order=doc.names)
        results: Dict[str, PipelineResult] = {}

        def run_one(name: str) -> PipelineResult:
            pipeline = doc.pipeline(name)
            upstream = {d: results[d].status for d in pipeline.depends_on if d in results}
            res = self.run_pipeline(pipeline, ctx, upstream)
            results[name] = res
            return res

        run_levels(levels, run_one, max_workers=self.max_workers)

        ordered = [results[name] for name in doc.names]
        status = FAILURE if any(p.status == FAILURE for p in ordered) else SUCCESS
        return BuildResult(status=status, pipelines=ordered)


def run_document(
    doc: Document,
    ctx: BuildContext,
    backend: Backend,
    *,
    secrets: Optional[SecretProvider] = None,
    notifier: Optional[Notifier] = None,
    masker: Optional[Masker] = None,
    max_workers: int | None = 1,
) -> BuildResult:
    """Run every pipeline of `doc` and return the per-pipeline outcome."""
    runner = Runner(backend, secrets=secrets, notifier=notifier, masker=masker, max_workers=max_workers)
    with backend:
        return runner.run(doc, ctx)
