"""Custom exceptions for imagepush.

Every failure that aborts a build-and-push run derives from ImagePushError.
Cache pull misses are not represented here: they are expected and never raised.
"""

from typing import Optional


class ImagePushError(Exception):
    """Base exception for build-and-push failures."""

    pass


class ToolNotInstalledError(ImagePushError):
    """Raised when the build tool cannot be found on PATH."""

    def __init__(self, tool: str, message: Optional[str] = None):
        self.tool = tool
        if message is None:
            message = (
                f"No '{tool}' command available on PATH: "
                "Please install to use container 'build' mode."
            )
        super().__init__(message)


class ExternalToolError(ImagePushError):
    """Raised when a command that must succeed exits with a non-zero code.

    The message carries the command line (redacted for credential-bearing
    invocations), the exit code and the full captured stdout.
    """

    def __init__(self, command_line: str, exit_code: int, stdout: str = ""):
        self.command_line = command_line
        self.exit_code = exit_code
        self.stdout = stdout
        super().__init__(f"{command_line} failed with exit code {exit_code}\n{stdout}")


class MalformedInputError(ImagePushError):
    """Raised for caller mistakes detected before any subprocess is spawned."""

    pass


class InternalInvariantError(ImagePushError):
    """Raised when the build tool broke its contract (e.g. no image digest)."""

    pass
