# git.py
# Small, focused wrapper around the Git CLI.
# This module centralizes all Git interactions so the rest of the codebase
# never needs to call subprocess("git ...") directly.

from __future__ import annotations

import subprocess
from typing import Optional


def _git(args: list[str], cwd: Optional[str] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    This is the single low-level entry point for all Git operations in this file.

    Args:
        args: List of git arguments (e.g. ["rev-parse", "HEAD"])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        subprocess.CalledProcessError if git exits non-zero
        FileNotFoundError if git is not installed
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=cwd,
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def head_sha(cwd: Optional[str] = None) -> str:
    """Full SHA of the HEAD commit."""
    return _git(["rev-parse", "HEAD"], cwd=cwd)


def current_branch(cwd: Optional[str] = None) -> str:
    """
    Name of the checked-out branch.

    Returns "HEAD" on a detached checkout, which is what CI systems usually
    see; callers are expected to pass the branch explicitly in that case.
    """
    return _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)


def commit_author(cwd: Optional[str] = None) -> str:
    return _git(["log", "-1", "--format=%an"], cwd=cwd)


def commit_message(cwd: Optional[str] = None) -> str:
    return _git(["log", "-1", "--format=%B"], cwd=cwd)


def get_remote_url(remote: str = "origin", cwd: Optional[str] = None) -> str:
    return _git(["remote", "get-url", remote], cwd=cwd)


def repo_name_from_url(url: str) -> str:
    """'git@github.com:org/game.git' -> 'org/game'"""
    parts = [p for p in url.rstrip("/").replace(":", "/").split("/") if p]
    tail = parts[-1][:-4] if parts[-1].endswith(".git") else parts[-1]
    return f"{parts[-2]}/{tail}" if len(parts) > 1 else tail
