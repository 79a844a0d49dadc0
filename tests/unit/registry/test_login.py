"""Tests for registry login deduplication."""

import asyncio
import json
from unittest.mock import patch

import pytest

from imagepush.core.exceptions import ExternalToolError, ToolNotInstalledError
from imagepush.core.models import Registry
from imagepush.registry.login import (
    RegistryLoginCache,
    parse_version,
    version_at_least,
)


def docker_version(client_version: str) -> str:
    return json.dumps({"Client": {"Version": client_version}, "Server": None})


@pytest.fixture
def docker_on_path():
    with patch(
        "imagepush.registry.login.shutil.which", return_value="/usr/bin/docker"
    ) as which:
        yield which


@pytest.fixture
def registry() -> Registry:
    return Registry(host="reg.io", username="me", password="hunter2")


class TestVersion:
    """Test loose version parsing."""

    def test_parse_plain(self):
        assert parse_version("20.10.7") == (20, 10, 7)

    def test_parse_with_suffix(self):
        assert parse_version("17.07.0-ce") == (17, 7, 0)

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_version("dev")

    @pytest.mark.parametrize(
        "version,expected",
        [("17.07.0", True), ("17.06.2-ce", False), ("24.0.5", True), ("1.13.1", False)],
    )
    def test_version_at_least(self, version, expected):
        assert version_at_least(version, "17.07.0") is expected


@pytest.mark.usefixtures("docker_on_path")
class TestLogin:
    """Test RegistryLoginCache.login."""

    @pytest.mark.asyncio
    async def test_uses_password_stdin_on_new_clients(
        self, policy, fake_runner, registry
    ):
        fake_runner.respond("version", stdout=docker_version("20.10.7"))
        cache = RegistryLoginCache()

        await cache.login(registry, policy)

        login = fake_runner.calls_to("login")[0]
        assert login.args == ["login", "-u", "me", "--password-stdin", "reg.io"]
        assert login.kwargs["stdin"] == "hunter2"
        assert login.kwargs["report_full_command_line"] is False

    @pytest.mark.asyncio
    async def test_uses_password_flag_on_old_clients(
        self, policy, fake_runner, registry
    ):
        fake_runner.respond("version", stdout=docker_version("17.03.1-ce"))
        cache = RegistryLoginCache()

        await cache.login(registry, policy)

        login = fake_runner.calls_to("login")[0]
        assert login.args == ["login", "-u", "me", "-p", "hunter2", "reg.io"]
        assert login.kwargs["stdin"] is None
        assert login.kwargs["report_full_command_line"] is False

    @pytest.mark.asyncio
    async def test_unparsable_version_falls_back_to_password_flag(
        self, policy, fake_runner, registry
    ):
        fake_runner.respond("version", code=1, stdout="Cannot connect to daemon")
        cache = RegistryLoginCache()

        await cache.login(registry, policy)

        assert "-p" in fake_runner.calls_to("login")[0].args
        assert fake_runner.calls_to("version")[0].kwargs["report_error_as_warning"]

    @pytest.mark.asyncio
    async def test_sequential_logins_are_deduplicated(
        self, policy, fake_runner, registry, sink
    ):
        fake_runner.respond("version", stdout=docker_version("20.10.7"))
        cache = RegistryLoginCache()

        await cache.login(registry, policy)
        await cache.login(registry, policy)

        assert len(fake_runner.calls_to("login")) == 1
        assert "Reusing existing login for me@reg.io" in sink.progress
        assert ("reg.io", "me") in cache

    @pytest.mark.asyncio
    async def test_concurrent_logins_start_one_login(
        self, policy, fake_runner, registry
    ):
        fake_runner.respond("version", stdout=docker_version("20.10.7"))
        cache = RegistryLoginCache()

        await asyncio.gather(*(cache.login(registry, policy) for _ in range(10)))

        assert len(fake_runner.calls_to("login")) == 1
        assert len(fake_runner.calls_to("version")) == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_failure(
        self, policy, fake_runner, registry
    ):
        fake_runner.respond("version", stdout=docker_version("20.10.7"))
        fake_runner.respond("login", code=1, stdout="unauthorized")
        cache = RegistryLoginCache()

        results = await asyncio.gather(
            *(cache.login(registry, policy) for _ in range(3)), return_exceptions=True
        )

        assert len(fake_runner.calls_to("login")) == 1
        assert all(isinstance(result, ExternalToolError) for result in results)
        assert all("hunter2" not in str(result) for result in results)

    @pytest.mark.asyncio
    async def test_distinct_users_log_in_separately(self, policy, fake_runner):
        fake_runner.respond("version", stdout=docker_version("20.10.7"))
        cache = RegistryLoginCache()

        await cache.login(Registry(host="reg.io", username="a", password="x"), policy)
        await cache.login(Registry(host="reg.io", username="b", password="y"), policy)
        await cache.login(Registry(host="other.io", username="a", password="x"), policy)

        assert len(fake_runner.calls_to("login")) == 3
        assert len(fake_runner.calls_to("version")) == 1

    @pytest.mark.asyncio
    async def test_custom_docker_bin(self, policy, fake_runner, registry):
        fake_runner.respond("version", stdout=docker_version("20.10.7"))
        cache = RegistryLoginCache(docker_bin="podman")

        await cache.login(registry, policy)

        assert {call.cmd for call in fake_runner.calls} == {"podman"}


class TestToolNotInstalled:
    """Test behavior when the build tool is missing."""

    @pytest.mark.asyncio
    async def test_missing_tool_fails_fast(self, policy, fake_runner, registry):
        cache = RegistryLoginCache()

        with patch("imagepush.registry.login.shutil.which", return_value=None):
            with pytest.raises(ToolNotInstalledError, match="No 'docker' command"):
                await cache.login(registry, policy)

        assert fake_runner.calls == []
