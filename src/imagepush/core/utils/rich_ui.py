"""
Progress and log sinks for build-and-push runs.

A sink receives two kinds of messages: ephemeral progress (superseded by the
next message, e.g. a status line) and durable results (warnings and errors
that must survive the run). Stream ids group chunks of one command's output.
"""

import logging
import os
from enum import Enum
from typing import Optional, Protocol

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.status import Status

log = logging.getLogger(__name__)


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


def is_rich_enabled() -> bool:
    """Check if Rich UI should be enabled based on environment"""
    return os.environ.get("IMAGEPUSH_RICH_UI", "false").lower() in ("true", "1", "yes")


class LogSink(Protocol):
    def report_progress(self, text: str) -> None: ...

    def report_result(
        self, text: str, severity: Severity, stream_id: Optional[int] = None
    ) -> None: ...

    def stop(self) -> None: ...


class LoggingSink:
    """Sends progress to DEBUG and results to their own level."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or log

    def report_progress(self, text: str) -> None:
        self.logger.debug(text.rstrip())

    def report_result(
        self, text: str, severity: Severity, stream_id: Optional[int] = None
    ) -> None:
        prefix = f"[stream {stream_id}] " if stream_id is not None else ""
        self.logger.log(_LEVELS[severity], f"{prefix}{text.rstrip()}")

    def stop(self) -> None:
        pass


class RichStatusSink:
    """Shows progress on a single live status line; results are printed durably."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)
        self._status: Optional[Status] = None

    def report_progress(self, text: str) -> None:
        # Multi-line chunks collapse to their last line; the spinner shows one.
        lines = [line for line in text.splitlines() if line.strip()]
        if not lines:
            return
        message = escape(lines[-1])
        if self._status is None:
            self._status = Status(message, spinner="dots", console=self.console)
            self._status.start()
        else:
            self._status.update(message)

    def report_result(
        self, text: str, severity: Severity, stream_id: Optional[int] = None
    ) -> None:
        color = {"info": "cyan", "warning": "yellow", "error": "red"}[severity.value]
        prefix = f"[stream {stream_id}] " if stream_id is not None else ""
        self.console.print(
            f"[{color}]{severity.value}:[/{color}] {escape(prefix + text.rstrip())}"
        )

    def stop(self) -> None:
        """Stop the status display"""
        if self._status:
            self._status.stop()
            self._status = None


def get_default_sink() -> LogSink:
    if is_rich_enabled():
        return RichStatusSink()
    return LoggingSink()


def get_rich_handler(console: Optional[Console] = None) -> logging.Handler:
    return RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
