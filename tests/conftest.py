"""
Test configuration and fixtures for imagepush tests.

Provides shared fixtures for:
- A recording sink capturing progress and result messages
- A fake command runner that records argv instead of spawning processes
- Build contexts wired to both
- Environment variable management
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pytest

from imagepush.config import ImagePushConfig
from imagepush.core.models import CommandResult
from imagepush.core.utils.rich_ui import Severity
from imagepush.orchestrator import BuildContext
from imagepush.process.policy import CommandPolicy

IMAGE_DIGEST = "sha256:0123abcd"
IMAGE_ID = "0123abcd"


class RecordingSink:
    """Sink that keeps every message for assertions."""

    def __init__(self):
        self.progress: List[str] = []
        self.results: List[Tuple[str, Severity, Optional[int]]] = []
        self.stopped = 0

    def report_progress(self, text: str) -> None:
        self.progress.append(text)

    def report_result(
        self, text: str, severity: Severity, stream_id: Optional[int] = None
    ) -> None:
        self.results.append((text, severity, stream_id))

    def stop(self) -> None:
        self.stopped += 1


@dataclass
class Call:
    cmd: str
    args: List[str]
    kwargs: Dict[str, Any] = field(default_factory=dict)


class FakeRunner:
    """Stands in for run_command.

    Responses are matched on an argv prefix; the most recently registered
    match wins. Unmatched commands succeed with empty stdout.
    """

    def __init__(self):
        self.calls: List[Call] = []
        self._responses: List[Tuple[List[str], CommandResult]] = []

    def respond(self, *prefix: str, code: int = 0, stdout: str = "") -> None:
        self._responses.append((list(prefix), CommandResult(code=code, stdout=stdout)))

    async def __call__(self, cmd, args, sink, **kwargs) -> CommandResult:
        self.calls.append(Call(cmd, list(args), kwargs))
        # Yield so concurrent callers interleave like real subprocesses.
        await asyncio.sleep(0)
        for prefix, result in reversed(self._responses):
            if list(args[: len(prefix)]) == prefix:
                return result
        return CommandResult(code=0, stdout="")

    @property
    def argv(self) -> List[List[str]]:
        return [call.args for call in self.calls]

    def calls_to(self, subcommand: str) -> List[Call]:
        return [call for call in self.calls if call.args and call.args[0] == subcommand]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep IMAGEPUSH_* settings from the host out of tests."""
    for name in (
        "IMAGEPUSH_DOCKER_BIN",
        "IMAGEPUSH_DRY_RUN",
        "IMAGEPUSH_SKIP_PUSH",
        "IMAGEPUSH_PASSWORD_STDIN_MIN_VERSION",
        "IMAGEPUSH_RICH_UI",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def fake_runner() -> FakeRunner:
    runner = FakeRunner()
    runner.respond("image", "inspect", stdout=f"{IMAGE_DIGEST}\n")
    return runner


@pytest.fixture
def policy(sink, fake_runner) -> CommandPolicy:
    return CommandPolicy(sink, fake_runner)


@pytest.fixture
def build_context(sink, fake_runner) -> BuildContext:
    return BuildContext(config=ImagePushConfig(), sink=sink, runner=fake_runner)
