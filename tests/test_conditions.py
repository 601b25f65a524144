import pytest

from dronepipe.conditions import aggregate_status, pipeline_should_run, step_should_run
from dronepipe.loader import parse_conditions
from dronepipe.model import Constraint, Pipeline, Step


def _step(when=None) -> Step:
    return Step(name="s", image="alpine", commands=["true"], when=parse_conditions(when))


class TestConstraint:
    def test_empty_matches_everything(self):
        assert Constraint().matches("anything")
        assert Constraint().matches(None)

    def test_include_globs(self):
        c = Constraint(include=["release/*", "master"])
        assert c.matches("release/2.0")
        assert c.matches("master")
        assert not c.matches("feature/x")

    def test_exclude_wins(self):
        c = Constraint(include=["*"], exclude=["wip/*"])
        assert c.matches("master")
        assert not c.matches("wip/thing")

    def test_case_sensitive(self):
        assert not Constraint(include=["master"]).matches("Master")


class TestStepWhen:
    def test_default_runs_only_on_success(self, make_context):
        ctx = make_context()
        assert step_should_run(_step(), ctx, "success")[0]
        run, reason = step_should_run(_step(), ctx, "failure")
        assert not run
        assert "failure" in reason

    def test_status_success_and_failure_always_runs(self, make_context):
        step = _step({"status": ["success", "failure"]})
        assert step_should_run(step, make_context(), "success")[0]
        assert step_should_run(step, make_context(), "failure")[0]

    def test_failure_only(self, make_context):
        step = _step({"status": "failure"})
        assert not step_should_run(step, make_context(), "success")[0]
        assert step_should_run(step, make_context(), "failure")[0]

    @pytest.mark.parametrize(
        "branch, event, expected",
        [
            ("master", "push", True),
            ("feature/login", "push", False),
            ("master", "pull_request", False),
            ("master", "tag", False),
        ],
    )
    def test_branch_and_event_gate(self, make_context, branch, event, expected):
        step = _step({"branch": "master", "event": ["push"]})
        assert step_should_run(step, make_context(branch=branch, event=event), "success")[0] is expected

    def test_reason_names_the_filter(self, make_context):
        step = _step({"branch": "master"})
        run, reason = step_should_run(step, make_context(branch="dev"), "success")
        assert not run
        assert reason == "when.branch does not match 'dev'"

    def test_repo_filter_uses_full_name(self, make_context):
        assert step_should_run(_step({"repo": "acme/*"}), make_context(), "success")[0]
        assert not step_should_run(_step({"repo": "other/*"}), make_context(), "success")[0]

    def test_ref_defaults_from_branch(self, make_context):
        assert step_should_run(_step({"ref": "refs/heads/master"}), make_context(), "success")[0]


class TestPipelineTrigger:
    def _pipeline(self, trigger=None, depends_on=None) -> Pipeline:
        return Pipeline(name="deploy", depends_on=depends_on or [], trigger=parse_conditions(trigger, "trigger"))

    def test_root_pipeline_runs(self, make_context):
        assert pipeline_should_run(self._pipeline(), make_context(), {})[0]

    def test_waits_for_successful_dependency(self, make_context):
        p = self._pipeline({"status": ["success"]}, ["run_tests"])
        assert pipeline_should_run(p, make_context(), {"run_tests": "success"})[0]
        run, reason = pipeline_should_run(p, make_context(), {"run_tests": "failure"})
        assert not run
        assert reason == "upstream status is failure"

    def test_default_trigger_status_is_success(self, make_context):
        p = self._pipeline(None, ["run_tests"])
        assert not pipeline_should_run(p, make_context(), {"run_tests": "failure"})[0]

    def test_failure_trigger(self, make_context):
        p = self._pipeline({"status": ["failure"]}, ["run_tests"])
        assert pipeline_should_run(p, make_context(), {"run_tests": "failure"})[0]
        assert not pipeline_should_run(p, make_context(), {"run_tests": "success"})[0]

    def test_skipped_dependency_skips(self, make_context):
        p = self._pipeline({"status": ["success", "failure"]}, ["run_tests"])
        run, reason = pipeline_should_run(p, make_context(), {"run_tests": "skipped"})
        assert not run
        assert "did not run" in reason

    def test_trigger_branch(self, make_context):
        p = self._pipeline({"branch": ["master"]})
        assert not pipeline_should_run(p, make_context(branch="dev"), {})[0]


def test_aggregate_status():
    assert aggregate_status(["success", "success"]) == "success"
    assert aggregate_status(["success", "failure"]) == "failure"
    assert aggregate_status([]) == "success"
