"""Shared fixtures: the two-pipeline document, build contexts, fakes."""

from pathlib import Path

import pytest

from dronepipe.backends import DryRunBackend
from dronepipe.context import BuildContext, BuildInfo, CommitInfo, RepoInfo
from dronepipe.loader import load_document
from dronepipe.plugins.notify import RecordingNotifier
from dronepipe.secrets import MappingSecrets
from dronepipe.ui.console import Console, set_console

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def quiet_console():
    set_console(Console(debug=False))


@pytest.fixture
def drone_file() -> Path:
    return FIXTURES / "drone.yml"


@pytest.fixture
def document(drone_file):
    return load_document(drone_file)


@pytest.fixture
def make_context():
    def _make(branch: str = "master", event: str = "push", number: int = 42) -> BuildContext:
        return BuildContext(
            build=BuildInfo(number=number, event=event, link="https://ci.example.com/game/42"),
            repo=RepoInfo(name="game", owner="acme"),
            commit=CommitInfo(
                sha="0123456789abcdef",
                branch=branch,
                author="octocat",
                message="Fix login form",
            ),
        )
    return _make


@pytest.fixture
def secrets():
    return MappingSecrets({"telegram_token": "bot-token-123", "telegram_chat_id": "-100200300"})


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def backend():
    return DryRunBackend()
