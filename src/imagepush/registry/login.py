"""
Registry login deduplication.

Logging in is idempotent, so each (registry, username) pair is logged in at
most once per cache. The first caller starts the login and stores its pending
task; later callers, concurrent or not, await that same task.
"""

import asyncio
import json
import logging
import re
import shutil
from typing import Dict, Optional, Tuple

from ..config import DEFAULT_DOCKER_BIN, DEFAULT_PASSWORD_STDIN_MIN_VERSION
from ..core.exceptions import ToolNotInstalledError
from ..core.models import LoginRecord, Registry
from ..process.policy import CommandPolicy

log = logging.getLogger(__name__)

_VERSION_PATTERN = re.compile(r"^\s*v?(\d+)(?:\.(\d+))?(?:\.(\d+))?")


def parse_version(version: str) -> Tuple[int, int, int]:
    """Parse the leading numeric part of a version such as ``17.07.0-ce``.

    Raises:
        ValueError: If the string does not start with a version number.
    """
    match = _VERSION_PATTERN.match(version)
    if not match:
        raise ValueError(f"Unrecognized version: {version!r}")
    major, minor, patch = (int(part or 0) for part in match.groups())
    return (major, minor, patch)


def version_at_least(version: str, minimum: str) -> bool:
    return parse_version(version) >= parse_version(minimum)


class RegistryLoginCache:
    """Tracks logins per (registry, username) for the lifetime of the object.

    Records are never evicted: a failed login stays failed for every caller
    sharing the cache.
    """

    def __init__(
        self,
        docker_bin: str = DEFAULT_DOCKER_BIN,
        password_stdin_min_version: str = DEFAULT_PASSWORD_STDIN_MIN_VERSION,
    ):
        self.docker_bin = docker_bin
        self.password_stdin_min_version = password_stdin_min_version
        self._records: Dict[Tuple[str, str], LoginRecord] = {}
        self._password_stdin: Optional["asyncio.Future[bool]"] = None

    def __contains__(self, key: Tuple[str, str]) -> bool:
        return key in self._records

    async def login(self, registry: Registry, policy: CommandPolicy) -> None:
        """Log in to a registry, or wait for the login already started for it.

        Raises:
            ToolNotInstalledError: If the build tool is not on PATH.
            ExternalToolError: If the login command fails. The command line in
                the error is redacted to 'docker login'.
        """
        # No await between lookup and insert: concurrent callers either see
        # nothing or the pending record.
        record = self._records.get(registry.key)
        if record is None:
            record = LoginRecord(
                registry=registry.host,
                username=registry.username,
                pending=asyncio.ensure_future(self._login(registry, policy)),
            )
            self._records[registry.key] = record
        else:
            policy.sink.report_progress(
                f"Reusing existing login for {registry.username}@{registry.host}"
            )

        # Shielded so a cancelled caller does not cancel the shared login.
        await asyncio.shield(record.pending)

    def use_password_stdin(self, policy: CommandPolicy) -> "asyncio.Future[bool]":
        """Decide once whether credentials go through --password-stdin."""
        if self._password_stdin is None:
            self._password_stdin = asyncio.ensure_future(
                self._detect_password_stdin(policy)
            )
        return self._password_stdin

    async def _detect_password_stdin(self, policy: CommandPolicy) -> bool:
        if shutil.which(self.docker_bin) is None:
            raise ToolNotInstalledError(self.docker_bin)

        result = await policy.run_can_fail(
            self.docker_bin,
            ["version", "-f", "{{json .}}"],
            report_error_as_warning=True,
        )
        log.debug(f"'{self.docker_bin} version' => {result.stdout}")

        try:
            client_version = json.loads(result.stdout)["Client"]["Version"]
            return version_at_least(client_version, self.password_stdin_min_version)
        except (ValueError, KeyError, TypeError) as e:
            log.info(f"Could not process Docker version ({e})")

        return False

    async def _login(self, registry: Registry, policy: CommandPolicy) -> None:
        password_stdin = await self.use_password_stdin(policy)
        password = registry.password.get_secret_value()

        if password_stdin:
            await policy.run_must_succeed(
                self.docker_bin,
                ["login", "-u", registry.username, "--password-stdin", registry.host],
                report_full_command_line=False,
                stdin=password,
            )
        else:
            await policy.run_must_succeed(
                self.docker_bin,
                ["login", "-u", registry.username, "-p", password, registry.host],
                report_full_command_line=False,
            )
        log.debug(f"Logged in to {registry.host} as {registry.username}")
