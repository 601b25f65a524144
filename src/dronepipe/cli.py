# cli.py
from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, Optional

import click

from . import settings
from .backends import DockerBackend, DryRunBackend, ShellBackend
from .context import BuildContext, from_git
from .emitter import dump_document, write_document
from .engine import run_document
from .errors import CIError, ParseError
from .lint import LintPolicy, lint_document
from .loader import load_document
from .model import Document
from .plugins.notify import RecordingNotifier, TelegramNotifier
from .secrets import ChainSecrets, EnvSecrets, Masker, MappingSecrets
from .ui.console import Console, get_console, set_console

EXIT_FAILED = 1
EXIT_INVALID = 2


def discover_pipeline_file(file_arg: str | None) -> Path:
    """
    Resolve the pipeline file from the argument or the default name.

    Raises:
        SystemExit: If the file cannot be found
    """
    console = get_console()
    path = Path(file_arg or settings.PIPELINE_FILE)
    if not path.exists() and file_arg is None:
        alt = Path(".drone.yaml")
        if alt.exists():
            return alt
    if not path.exists():
        console.print_error(
            "Pipeline file not found",
            f"Could not find pipeline file: {path}",
            details=["Looked for:", f"  {path}"] if file_arg else ["Looked for:", "  .drone.yml", "  .drone.yaml"],
            suggestion="Create a .drone.yml or pass the file explicitly:\n  dronepipe validate path/to/.drone.yml",
        )
        sys.exit(EXIT_INVALID)
    return path


def _load(path: Path) -> Document:
    console = get_console()
    try:
        return load_document(path)
    except ParseError as e:
        console.print_error("Invalid pipeline file", f"{path}: {e}")
        sys.exit(EXIT_INVALID)


def _parse_failures(pairs: tuple) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for pair in pairs:
        name, _, code = pair.partition("=")
        try:
            out[name] = int(code) if code else 1
        except ValueError:
            raise click.BadParameter(f"expected STEP[=CODE], got {pair!r}", param_hint="--fail")
    return out


def _policy(release_branch: Optional[str], release_pipelines: tuple) -> LintPolicy:
    return LintPolicy(
        release_branch=release_branch or settings.RELEASE_BRANCH,
        release_pipelines=tuple(release_pipelines) or settings.RELEASE_PIPELINES,
    )


def _context(path: Path, branch, event, build_number, link, repo, sha, author, message, workspace) -> BuildContext:
    return from_git(
        path.resolve().parent,
        branch=branch,
        event=event,
        number=build_number,
        link=link or "",
        repo_name=repo,
        sha=sha,
        author=author,
        message=message,
        workspace=workspace,
    )


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and full step output)",
)
@click.pass_context
def cli(ctx, debug):
    """dronepipe: validate, format, plan and run Drone pipeline files."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("file", required=False)
@click.option("--release-branch", default=None, help=f"Release branch (default {settings.RELEASE_BRANCH})")
@click.option("--release-pipeline", "release_pipelines", multiple=True, help="Pipeline that deploys; repeatable")
@click.option("--strict", is_flag=True, default=False, help="Treat warnings as errors")
def validate(file, release_branch, release_pipelines, strict):
    """Lint a pipeline file."""
    console = get_console()
    path = discover_pipeline_file(file)
    doc = _load(path)

    issues = lint_document(doc, _policy(release_branch, release_pipelines))
    console.print_issues(issues)

    if any(i.severity == "error" for i in issues) or (strict and issues):
        sys.exit(EXIT_INVALID)


@cli.command()
@click.argument("file", required=False)
@click.option("--check", is_flag=True, default=False, help="Exit 1 if the file is not in canonical form")
@click.option("--write", "-w", is_flag=True, default=False, help="Rewrite the file in place")
def fmt(file, check, write):
    """Print the pipeline file in canonical form."""
    console = get_console()
    path = discover_pipeline_file(file)
    doc = _load(path)
    out = dump_document(doc)

    if write:
        write_document(doc, path)
        console.print_info(f"formatted {path}")
        return

    if check:
        if path.read_text(encoding="utf-8") != out:
            console.print_info(f"{path} is not canonically formatted")
            sys.exit(EXIT_FAILED)
        console.print_info(f"{path} is canonically formatted")
        return
    click.echo(out, nl=False)


_context_options = [
    click.option("--branch", default=None, help="Branch being built (defaults to the checked-out branch)"),
    click.option("--event", default="push", show_default=True, help="Triggering event"),
    click.option("--build-number", default=1, type=int, show_default=True),
    click.option("--link", default=None, help="Build link used in notifications"),
    click.option("--repo", default=None, help="Repository name (defaults to the origin remote)"),
    click.option("--sha", default=None, help="Commit SHA (defaults to HEAD)"),
    click.option("--author", default=None, help="Commit author (defaults to HEAD's author)"),
    click.option("--message", default=None, help="Commit message (defaults to HEAD's message)"),
    click.option("--workspace", default=settings.WORKSPACE, show_default=True, help="Workspace path inside step containers"),
]


def context_options(fn):
    for option in reversed(_context_options):
        fn = option(fn)
    return fn


class _PlaceholderSecrets:
    def get(self, name: str) -> str:
        return f"<{name}>"


@cli.command()
@click.argument("file", required=False)
@context_options
def plan(file, branch, event, build_number, link, repo, sha, author, message, workspace):
    """Show which pipelines and steps would run, assuming every step succeeds."""
    console = get_console()
    path = discover_pipeline_file(file)
    doc = _load(path)
    build_ctx = _context(path, branch, event, build_number, link, repo, sha, author, message, workspace)

    console.print_run_started(
        repository=build_ctx.repo.full_name,
        pipeline_file=path.name,
        branch=build_ctx.branch,
        event=build_ctx.event,
        pipeline_count=len(doc.pipelines),
    )
    # secrets are not needed to plan: every reference resolves to a placeholder
    try:
        result = run_document(doc, build_ctx, DryRunBackend(), secrets=_PlaceholderSecrets())
    except ValueError as e:
        console.print_error("Invalid pipeline graph", str(e))
        sys.exit(EXIT_INVALID)
    console.print_results(result)


@cli.command(name="exec")
@click.argument("file", required=False)
@context_options
@click.option(
    "--backend",
    type=click.Choice(["docker", "shell", "dry-run"]),
    default="docker",
    show_default=True,
    help="Where steps run",
)
@click.option("--secret", "secret_pairs", multiple=True, help="Secret as name=value; repeatable")
@click.option("--fail", "fail_pairs", multiple=True, help="dry-run only: STEP[=CODE] exits non-zero")
@click.option("--workers", default=1, type=int, show_default=True, help="Pipelines run in parallel per stage")
@click.option("--notify/--no-notify", default=False, show_default=True, help="Deliver notifications for real")
@click.option("--validate/--no-validate", "run_lint", default=True, show_default=True, help="Lint before running")
@click.pass_context
def exec_(ctx, file, branch, event, build_number, link, repo, sha, author, message, workspace,
          backend, secret_pairs, fail_pairs, workers, notify, run_lint):
    """Run a pipeline file."""
    console = get_console()
    path = discover_pipeline_file(file)
    doc = _load(path)

    if run_lint:
        issues = lint_document(doc, _policy(None, ()))
        errors = [i for i in issues if i.severity == "error"]
        if errors:
            console.print_issues(issues)
            sys.exit(EXIT_INVALID)

    if fail_pairs and backend != "dry-run":
        raise click.BadParameter("--fail only works with --backend dry-run", param_hint="--fail")
    exit_codes = _parse_failures(fail_pairs)

    try:
        secrets = ChainSecrets(MappingSecrets.from_pairs(secret_pairs), EnvSecrets())
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--secret")

    masker = Masker()
    console.mask = masker

    try:
        build_ctx = _context(path, branch, event, build_number, link, repo, sha, author, message, workspace)

        repo_root = path.resolve().parent
        if backend == "docker":
            runner_backend = DockerBackend(repo_root, workspace=workspace)
        elif backend == "shell":
            runner_backend = ShellBackend(repo_root)
        else:
            runner_backend = DryRunBackend(exit_codes=exit_codes)

        notifier = TelegramNotifier() if notify else RecordingNotifier()

        console.print_run_started(
            repository=build_ctx.repo.full_name,
            pipeline_file=path.name,
            branch=build_ctx.branch,
            event=build_ctx.event,
            pipeline_count=len(doc.pipelines),
        )

        result = run_document(
            doc,
            build_ctx,
            runner_backend,
            secrets=secrets,
            notifier=notifier,
            masker=masker,
            max_workers=workers,
        )

        if isinstance(notifier, RecordingNotifier):
            for m in notifier.sent:
                console.print_info(f"\nNOTIFICATION ({m.channel} -> {masker(m.to)}), not delivered:")
                console.print_output(m.text)

        console.print_results(result)

        if not result.ok:
            sys.exit(EXIT_FAILED)

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except CIError as e:
        console.print_error("Build could not run", str(e))
        sys.exit(EXIT_FAILED)
    except ValueError as e:
        # dag errors (cycles, missing dependencies) when --no-validate was used
        console.print_error("Invalid pipeline graph", str(e))
        sys.exit(EXIT_INVALID)
    except Exception as e:
        console.print_exception(e)
        if ctx.obj.get("debug", False):
            import traceback
            traceback.print_exc()
        sys.exit(EXIT_FAILED)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
