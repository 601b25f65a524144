import pytest

from dronepipe.errors import TemplateError
from dronepipe.templating import render

DATA = {
    "build": {"number": 42, "status": "success", "link": "https://ci/42"},
    "repo": {"name": "game", "owner": "acme"},
    "commit": {"sha": "0123456789abcdef", "branch": "master", "author": "octocat", "message": "Fix login"},
}


def test_variables():
    assert render("Build #{{build.number}} of {{ repo.name }}", DATA) == "Build #42 of game"


def test_missing_variable_renders_empty():
    assert render("[{{build.nope}}][{{nothing.here}}]", DATA) == "[][]"


def test_success_block():
    tpl = "{{#success build.status}}ok{{else}}broken{{/success}}"
    assert render(tpl, DATA) == "ok"
    failed = dict(DATA, build=dict(DATA["build"], status="failure"))
    assert render(tpl, failed) == "broken"


def test_failure_block_without_else():
    tpl = "a{{#failure build.status}}!{{/failure}}b"
    assert render(tpl, DATA) == "ab"


def test_nested_blocks():
    tpl = "{{#if commit.branch}}{{#equal commit.branch \"master\"}}main{{else}}other{{/equal}}{{/if}}"
    assert render(tpl, DATA) == "main"


def test_unless():
    assert render("{{#unless build.tag}}no tag{{/unless}}", DATA) == "no tag"


def test_inline_helpers():
    assert render("{{truncate commit.sha 8}}", DATA) == "01234567"
    assert render("{{uppercase commit.author}}", DATA) == "OCTOCAT"
    assert render("{{lowercase \"ABC\"}}", DATA) == "abc"
    assert render("{{uppercasefirst repo.name}}", DATA) == "Game"
    assert render("{{urlencode commit.message}}", DATA) == "Fix%20login"


def test_comments_are_dropped():
    assert render("a{{! ignore me }}b", DATA) == "ab"


@pytest.mark.parametrize(
    "tpl",
    [
        "{{#success build.status}}unclosed",
        "{{/success}}",
        "{{#if x}}..{{/unless}}",
        "{{else}}",
        "{{#bogus x}}..{{/bogus}}",
    ],
)
def test_malformed_templates(tpl):
    with pytest.raises(TemplateError):
        render(tpl, DATA)


def test_original_notification_message(document, make_context):
    step = document.pipeline("run_tests").step("telgram_notify")
    ctx = make_context()
    ok = render(step.settings["message"], ctx.template_data())
    assert "✅ Build #42 of `game` succeeded." in ok
    assert "Commit by octocat on `master`" in ok
    assert "https://ci.example.com/game/42" in ok
    assert "failed" not in ok

    bad = render(step.settings["message"], ctx.with_status("failure").template_data())
    assert "❌ Build #42 of `game` failed." in bad
    assert "succeeded" not in bad
