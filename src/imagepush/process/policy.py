"""Must-succeed and can-fail wrappers around the command runner."""

from typing import Awaitable, Callable, Dict, Optional, Sequence

from ..core.exceptions import ExternalToolError
from ..core.models import CommandResult
from ..core.utils.rich_ui import LogSink
from .runner import get_command_line_message, run_command

Runner = Callable[..., Awaitable[CommandResult]]


class CommandPolicy:
    """Runs build tool commands against one sink.

    Args:
        sink: Receives progress and result messages for every command.
        runner: Coroutine function with the signature of run_command.
    """

    def __init__(self, sink: LogSink, runner: Optional[Runner] = None):
        self.sink = sink
        self.runner = runner or run_command

    async def run_can_fail(
        self,
        cmd: str,
        args: Sequence[str],
        *,
        report_full_command_line: bool = True,
        report_error_as_warning: bool = False,
        stdin: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        return await self.runner(
            cmd,
            list(args),
            self.sink,
            report_full_command_line=report_full_command_line,
            report_error_as_warning=report_error_as_warning,
            stdin=stdin,
            env=env,
        )

    async def run_must_succeed(
        self,
        cmd: str,
        args: Sequence[str],
        *,
        report_full_command_line: bool = True,
        stdin: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> str:
        """Run a command and return its stdout.

        Pass report_full_command_line=False for commands carrying credentials so
        the failure only names the subcommand (e.g. 'docker login').

        Raises:
            ExternalToolError: If the command exits with a non-zero code. The
                error carries the full stdout so the tool's own diagnostics
                reach the user.
        """
        result = await self.run_can_fail(
            cmd,
            args,
            report_full_command_line=report_full_command_line,
            report_error_as_warning=False,
            stdin=stdin,
            env=env,
        )

        if result.code != 0:
            raise ExternalToolError(
                get_command_line_message(cmd, args, report_full_command_line, env),
                result.code,
                result.stdout,
            )

        return result.stdout
