# context.py
from __future__ import annotations

import subprocess
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

from . import settings
from .git_facts import git


@dataclass(frozen=True)
class BuildInfo:
    number: int = 1
    event: str = "push"
    status: str = "success"
    link: str = ""
    started: int = 0


@dataclass(frozen=True)
class RepoInfo:
    name: str = ""
    owner: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}" if self.owner else self.name


@dataclass(frozen=True)
class CommitInfo:
    sha: str = ""
    branch: str = ""
    ref: str = ""
    author: str = ""
    message: str = ""


@dataclass(frozen=True)
class BuildContext:
    """
    Everything a pipeline run knows about the triggering event.

    Trigger and `when` predicates are evaluated against it, it feeds the
    DRONE_* step environment and notification templates.
    """
    build: BuildInfo = field(default_factory=BuildInfo)
    repo: RepoInfo = field(default_factory=RepoInfo)
    commit: CommitInfo = field(default_factory=CommitInfo)
    workspace: str = settings.WORKSPACE

    @property
    def branch(self) -> str:
        return self.commit.branch

    @property
    def event(self) -> str:
        return self.build.event

    @property
    def ref(self) -> str:
        return self.commit.ref or (f"refs/heads/{self.commit.branch}" if self.commit.branch else "")

    def with_status(self, status: str) -> "BuildContext":
        return replace(self, build=replace(self.build, status=status))

    def environ(self) -> Dict[str, str]:
        """Drone-compatible environment handed to every step and service."""
        return {
            "CI": "true",
            "DRONE": "true",
            "DRONE_BRANCH": self.commit.branch,
            "DRONE_COMMIT": self.commit.sha,
            "DRONE_COMMIT_SHA": self.commit.sha,
            "DRONE_COMMIT_BRANCH": self.commit.branch,
            "DRONE_COMMIT_REF": self.ref,
            "DRONE_COMMIT_AUTHOR": self.commit.author,
            "DRONE_COMMIT_MESSAGE": self.commit.message,
            "DRONE_BUILD_EVENT": self.build.event,
            "DRONE_BUILD_NUMBER": str(self.build.number),
            "DRONE_BUILD_STATUS": self.build.status,
            "DRONE_BUILD_LINK": self.build.link,
            "DRONE_REPO": self.repo.full_name,
            "DRONE_REPO_NAME": self.repo.name,
            "DRONE_REPO_OWNER": self.repo.owner,
            "DRONE_WORKSPACE": self.workspace,
        }

    def template_data(self) -> Dict[str, Any]:
        """Nested mapping used by notification message templates."""
        return {
            "build": {
                "number": self.build.number,
                "event": self.build.event,
                "status": self.build.status,
                "link": self.build.link,
                "started": self.build.started,
            },
            "repo": {
                "name": self.repo.name,
                "owner": self.repo.owner,
                "full_name": self.repo.full_name,
            },
            "commit": {
                "sha": self.commit.sha,
                "branch": self.commit.branch,
                "ref": self.ref,
                "author": self.commit.author,
                "message": self.commit.message,
            },
        }


def _safe(fn, default: str = "", **kwargs) -> str:
    try:
        return fn(**kwargs)
    except (subprocess.CalledProcessError, FileNotFoundError):
        return default


def from_git(
    cwd: str | Path = ".",
    *,
    branch: Optional[str] = None,
    event: str = "push",
    number: int = 1,
    link: str = "",
    repo_name: Optional[str] = None,
    sha: Optional[str] = None,
    author: Optional[str] = None,
    message: Optional[str] = None,
    workspace: str = settings.WORKSPACE,
) -> BuildContext:
    """
    Build a context from the local checkout.

    Explicit arguments win over git facts; a directory that is not a git
    repository yields empty commit facts rather than an error.
    """
    where = str(cwd)

    if repo_name is None:
        url = _safe(git.get_remote_url, cwd=where)
        repo_name = git.repo_name_from_url(url) if url else Path(where).resolve().name

    owner = ""
    if "/" in repo_name:
        owner, repo_name = repo_name.rsplit("/", 1)

    return BuildContext(
        build=BuildInfo(number=number, event=event, status="success", link=link, started=int(time.time())),
        repo=RepoInfo(name=repo_name, owner=owner),
        commit=CommitInfo(
            sha=sha if sha is not None else _safe(git.head_sha, cwd=where),
            branch=branch if branch is not None else _safe(git.current_branch, cwd=where),
            author=author if author is not None else _safe(git.commit_author, cwd=where),
            message=message if message is not None else _safe(git.commit_message, cwd=where),
        ),
        workspace=workspace,
    )
