"""Console output formatting utilities for dronepipe."""

from __future__ import annotations

import sys
from typing import Optional


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, mask=None):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            mask: Optional callable applied to step output (secret masking)
        """
        self.debug = debug
        self.mask = mask or (lambda text: text)

    def print_run_started(
        self,
        repository: str,
        pipeline_file: str,
        branch: str,
        event: str,
        pipeline_count: int,
    ) -> None:
        """Print run start information."""
        print("\nBUILD STARTED")
        print(f"Repository: {repository}")
        print(f"File: {pipeline_file}")
        print(f"Branch: {branch}  Event: {event}")
        print(f"Pipelines: {pipeline_count}")
        print()

    def print_pipeline_start(self, name: str) -> None:
        print(f"\nPIPELINE STARTED: {name}")

    def print_pipeline_skipped(self, name: str, reason: str) -> None:
        print(f"\nPIPELINE SKIPPED: {name} ({reason})")

    def print_pipeline_done(self, name: str, status: str) -> None:
        print(f"PIPELINE {status.upper()}: {name}")

    def print_service(self, pipeline: str, name: str, image: str) -> None:
        print(f"[{pipeline}] SERVICE: {name} ({image})")

    def print_step(self, pipeline: str, name: str) -> None:
        """Print step start message."""
        print(f"[{pipeline}] STEP: {name}")

    def print_step_skipped(self, pipeline: str, name: str, reason: str) -> None:
        print(f"[{pipeline}] STEP SKIPPED: {name} ({reason})")

    def print_output(self, text: str) -> None:
        """Print (masked) step output."""
        if not text:
            return
        for line in self.mask(text).rstrip("\n").splitlines():
            print(f"  | {line}")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Step name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
        """
        print(f"STEP FAILED: {name}")
        if exit_code is not None:
            print(f"Exit code: {exit_code}")
        if hint:
            print(f"Hint: {hint}")
        if self.debug:
            print(f"Error details: {self.mask(reason)}")
        else:
            # Show first line of error for non-debug mode
            error_line = reason.split('\n')[0] if reason else ""
            if error_line:
                print(f"Error: {self.mask(error_line)}")

    def print_results(self, result) -> None:
        """Print final results summary of a BuildResult."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for p in result.pipelines:
            line = f"  {p.name}: {p.status.upper()}"
            if p.reason:
                line += f" ({p.reason})"
            print(line)
            for s in p.steps:
                print(f"    {s.name}: {s.status}")
        print(f"BUILD: {result.status.upper()}")

    def print_issues(self, issues: list) -> None:
        """Print lint issues, one per line."""
        if not issues:
            print("OK: no issues found")
            return
        for issue in issues:
            print(str(issue))
        errors = sum(1 for i in issues if i.severity == "error")
        print(f"\n{errors} error(s), {len(issues) - errors} warning(s)")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_warning(self, message: str) -> None:
        print(f"WARNING: {message}", file=sys.stderr)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {self.mask(message)}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
