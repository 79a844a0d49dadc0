"""
Build an image and push it to a repository.

build_and_push_image returns a tag unique to the built content,
``repository_url:[tag-]image_id``. The tag is derived from the local build
alone, so it is available during a dry run when nothing is pushed.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from pydantic import ValidationError

from .build.cache import pull_cache
from .build.image_builder import ImageBuilder
from .build.pusher import ImagePusher
from .config import ImagePushConfig
from .core.exceptions import MalformedInputError
from .core.models import BuildSpec, Registry
from .core.naming import (
    check_repository_url,
    create_tagged_image_name,
    get_image_name_and_tag,
)
from .core.utils.rich_ui import LogSink, get_default_sink
from .process.policy import CommandPolicy, Runner
from .registry.login import RegistryLoginCache

log = logging.getLogger(__name__)

RegistryLike = Union[Registry, Dict[str, Any]]
ConnectToRegistry = Callable[[], Union[RegistryLike, Awaitable[RegistryLike]]]
PathOrBuild = Union[str, BuildSpec, Dict[str, Any], None]


class BuildContext:
    """Configuration, sink and login cache shared by build-and-push runs.

    Runs sharing a context share its login cache, so each registry/user pair
    is logged in once.
    """

    def __init__(
        self,
        config: Optional[ImagePushConfig] = None,
        sink: Optional[LogSink] = None,
        login_cache: Optional[RegistryLoginCache] = None,
        runner: Optional[Runner] = None,
    ):
        self.config = config or ImagePushConfig.from_env()
        self.sink = sink or get_default_sink()
        self.login_cache = login_cache or RegistryLoginCache(
            self.config.docker_bin, self.config.password_stdin_min_version
        )
        self.policy = CommandPolicy(self.sink, runner)


_default_context: Optional[BuildContext] = None


def get_default_context() -> BuildContext:
    """Process-wide context used when a run does not pass its own."""
    global _default_context
    if _default_context is None:
        _default_context = BuildContext()
    return _default_context


async def _resolve_registry(connect_to_registry: ConnectToRegistry) -> Registry:
    registry = connect_to_registry()
    if inspect.isawaitable(registry):
        registry = await registry
    if isinstance(registry, Registry):
        return registry
    try:
        return Registry.model_validate(registry)
    except ValidationError as e:
        raise MalformedInputError(f"Invalid registry credentials: {e}") from e


async def build_and_push_image(
    image_name: str,
    path_or_build: PathOrBuild,
    repository_url: str,
    *,
    skip_push: Optional[bool] = None,
    dry_run: Optional[bool] = None,
    connect_to_registry: Optional[ConnectToRegistry] = None,
    context: Optional[BuildContext] = None,
) -> str:
    """
    Build ``path_or_build`` and push it to ``repository_url``.

    Args:
        image_name: Local image name, optionally with a ``:tag`` that is reused
            for the pushed tags.
        path_or_build: Build context path, or a full build specification.
        repository_url: Target repository, without a tag.
        skip_push: Build only. Defaults to the context's configuration.
        dry_run: Build only, logging in just for cache pulls. Defaults to the
            context's configuration.
        connect_to_registry: Returns (or resolves to) registry credentials.
            Without it the build tool is assumed to be logged in already.
        context: Shared configuration and login cache. Defaults to a
            process-wide context.

    Returns:
        The unique tagged image name ``repository_url:[tag-]image_id``.

    Raises:
        MalformedInputError: If the repository URL has a tag, or the build
            specification or registry credentials are missing or invalid.
        ToolNotInstalledError: If a login is needed and the tool is missing.
        ExternalToolError: If any required command fails.
        InternalInvariantError: If the build produced no image digest.
    """
    context = context or get_default_context()
    sink = context.sink

    sink.report_progress("Starting docker build and push...")
    try:
        result = await _build_and_push_image(
            image_name,
            path_or_build,
            repository_url,
            context,
            skip_push=context.config.skip_push if skip_push is None else skip_push,
            dry_run=context.config.dry_run if dry_run is None else dry_run,
            connect_to_registry=connect_to_registry,
        )
        sink.report_progress("Successfully pushed to docker")
    finally:
        sink.stop()

    return result


async def _build_and_push_image(
    image_name: str,
    path_or_build: PathOrBuild,
    repository_url: str,
    context: BuildContext,
    *,
    skip_push: bool,
    dry_run: bool,
    connect_to_registry: Optional[ConnectToRegistry],
) -> str:
    check_repository_url(repository_url)
    build = BuildSpec.from_path_or_build(path_or_build)
    policy = context.policy
    docker_bin = context.config.docker_bin

    tag = get_image_name_and_tag(image_name).tag
    pull_from_cache = build.wants_cache and bool(repository_url)

    # Log in up front when the registry will be contacted: always to push,
    # and during a dry run only to pull cache images.
    if connect_to_registry is not None and (not dry_run or pull_from_cache):
        context.sink.report_progress("Logging in to registry...")
        registry = await _resolve_registry(connect_to_registry)
        await context.login_cache.login(registry, policy)

    cache_from: Optional["asyncio.Task"] = None
    if pull_from_cache:
        cache_from = asyncio.ensure_future(
            pull_cache(image_name, build.cache_spec, repository_url, policy, docker_bin)
        )

    builder = ImageBuilder(policy, docker_bin)
    try:
        result = await builder.build_image(image_name, build, cache_from)
    finally:
        if cache_from is not None and not cache_from.done():
            cache_from.cancel()

    unique_tagged_image_name = create_tagged_image_name(
        repository_url, tag, result.image_id
    )

    if not dry_run and not skip_push:
        await ImagePusher(builder).push_build(image_name, repository_url, tag, result)
    else:
        log.debug(
            f"Not pushing {unique_tagged_image_name} "
            f"(dry_run={dry_run}, skip_push={skip_push})"
        )

    return unique_tagged_image_name
