"""
Subprocess execution for the build tool.

run_command never raises for a failing command: launch errors and non-zero
exits are both folded into CommandResult.code so that callers decide whether a
failure is fatal.
"""

import asyncio
import codecs
import logging
import os
import random
from typing import Dict, Optional, Sequence

from ..core.models import CommandResult
from ..core.utils.rich_ui import LogSink, Severity

log = logging.getLogger(__name__)

_CHUNK_SIZE = 4096
# Stream ids must fit in an int32 for downstream log consumers.
_MAX_STREAM_ID = 1 << 30


def get_command_line_message(
    cmd: str,
    args: Sequence[str],
    report_full_command_line: bool,
    env: Optional[Dict[str, str]] = None,
) -> str:
    """Render a command line for messages, keeping only the subcommand when redacted."""
    if report_full_command_line:
        arg_string = " ".join(args)
    else:
        arg_string = args[0] if args else ""
    env_string = " ".join(f"{k}={v}" for k, v in (env or {}).items())
    parts = [part for part in (env_string, cmd, arg_string) if part]
    return f"'{' '.join(parts)}'"


def get_failure_message(
    cmd: str,
    args: Sequence[str],
    report_full_command_line: bool,
    code: int,
    env: Optional[Dict[str, str]] = None,
) -> str:
    command_line = get_command_line_message(cmd, args, report_full_command_line, env)
    return f"{command_line} failed with exit code {code}"


def new_stream_id() -> int:
    return random.randrange(_MAX_STREAM_ID)


async def run_command(
    cmd: str,
    args: Sequence[str],
    sink: LogSink,
    *,
    report_full_command_line: bool = True,
    report_error_as_warning: bool = False,
    stdin: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> CommandResult:
    """Run a command to completion, streaming stdout to the sink as progress.

    Stderr is buffered until exit because the build tool writes both warnings
    and errors there. It is then reported as one durable record: an error if
    the command failed (unless report_error_as_warning), a warning otherwise.

    Args:
        cmd: Executable to launch.
        args: Arguments passed verbatim (no shell).
        sink: Receives progress and result messages.
        report_full_command_line: False hides every argument after the first.
        report_error_as_warning: Report stderr of a failed command as a warning.
        stdin: Written to the child's stdin, which is then closed.
        env: Extra environment variables layered over the current environment.

    Returns:
        CommandResult with the exit code (1 if the launch itself failed) and
        the complete stdout.
    """
    command_line = get_command_line_message(cmd, args, report_full_command_line, env)
    sink.report_progress(f"Executing {command_line}")

    stream_id = new_stream_id()
    stdout_chunks = []
    stderr_text = ""

    try:
        process = await asyncio.create_subprocess_exec(
            cmd,
            *args,
            stdin=asyncio.subprocess.PIPE
            if stdin is not None
            else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env={**os.environ, **env} if env else None,
        )
    except (OSError, ValueError) as e:
        log.debug(f"Failed to launch {cmd}: {e}")
        stderr_text = str(e)
        code = 1
    else:

        async def pump_stdout() -> None:
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            while True:
                chunk = await process.stdout.read(_CHUNK_SIZE)
                if not chunk:
                    break
                stdout_chunks.append(chunk)
                text = decoder.decode(chunk)
                if text:
                    sink.report_progress(text)
            tail = decoder.decode(b"", final=True)
            if tail:
                sink.report_progress(tail)

        async def feed_stdin() -> None:
            if stdin is None:
                return
            process.stdin.write(stdin.encode("utf-8"))
            try:
                await process.stdin.drain()
            except (BrokenPipeError, ConnectionResetError):
                # The child exited without reading its input; its exit code says why.
                log.debug(f"{cmd} closed stdin before reading it")
            process.stdin.close()

        _, stderr_bytes, _ = await asyncio.gather(
            pump_stdout(), process.stderr.read(), feed_stdin()
        )
        code = await process.wait()
        stderr_text = stderr_bytes.decode("utf-8", errors="replace")

    stdout = b"".join(stdout_chunks).decode("utf-8", errors="replace")

    if stderr_text:
        if code and not report_error_as_warning:
            sink.report_result(stderr_text, Severity.ERROR, stream_id)
        else:
            sink.report_result(stderr_text, Severity.WARNING, stream_id)

    if code:
        sink.report_progress(
            get_failure_message(cmd, args, report_full_command_line, code, env)
        )

    return CommandResult(code=code, stdout=stdout)
