"""
Container image building operations.

Builds each requested cache stage, then the final image, and reads back the
final image's content digest.
"""

import json
import logging
from typing import Awaitable, List, Optional

from ..core.exceptions import InternalInvariantError
from ..core.models import BuildResult, BuildSpec
from ..core.naming import local_stage_image_name
from ..process.policy import CommandPolicy

log = logging.getLogger(__name__)

CacheFromImages = Awaitable[Optional[List[str]]]


def parse_image_id(digest: str) -> str:
    """Return the hex part of an ``algorithm:hex`` digest.

    The colon is not legal inside an image tag, and the algorithm is not
    needed to make the tag unique.
    """
    digest = digest.strip()
    return digest[digest.rfind(":") + 1 :]


def describe_build(image_name: str, build: BuildSpec) -> str:
    message = f"Building container image '{image_name}': context={build.context}"
    if build.dockerfile:
        message += f", dockerfile={build.dockerfile}"
    if build.args:
        message += f", args={json.dumps(build.args)}"
    return message


class ImageBuilder:
    """Build images with the build tool."""

    def __init__(self, policy: CommandPolicy, docker_bin: str = "docker"):
        self.policy = policy
        self.docker_bin = docker_bin

    async def build_image(
        self,
        image_name: str,
        build: BuildSpec,
        cache_from: Optional[CacheFromImages] = None,
    ) -> BuildResult:
        """
        Build every cache stage in declaration order, then the final image.

        Args:
            image_name: Local name for the final image; stages are built as
                ``<image_name>-<stage>``.
            build: Build specification.
            cache_from: Awaitable resolving to the images pulled for
                --cache-from. Awaited only if the build asked for cache-from.

        Returns:
            BuildResult with the final image id and the stages built.

        Raises:
            ExternalToolError: If a build or the inspect command fails.
            InternalInvariantError: If the image has no digest after building.
        """
        self.policy.sink.report_progress(describe_build(image_name, build))

        stages = []
        for stage in build.cache_stages:
            await self.docker_build(
                local_stage_image_name(image_name, stage), build, cache_from, stage
            )
            stages.append(stage)

        await self.docker_build(image_name, build, cache_from)

        image_id = await self.inspect_image_id(image_name)
        return BuildResult(image_id=image_id, stages=stages)

    async def inspect_image_id(self, image_name: str) -> str:
        digest = await self.policy.run_must_succeed(
            self.docker_bin, ["image", "inspect", "-f", "{{.Id}}", image_name]
        )
        image_id = parse_image_id(digest) if digest else ""
        if not image_id:
            raise InternalInvariantError(f"No digest available for image {image_name}")
        return image_id

    async def build_args(
        self,
        image_name: str,
        build: BuildSpec,
        cache_from: Optional[CacheFromImages] = None,
        target: Optional[str] = None,
    ) -> List[str]:
        args = ["build"]
        if build.dockerfile:
            args.extend(["-f", build.dockerfile])
        for name, value in build.args.items():
            args.extend(["--build-arg", f"{name}={value}"])
        if build.wants_cache and cache_from is not None:
            cache_from_images = await cache_from
            if cache_from_images:
                args.extend(["--cache-from", ",".join(cache_from_images)])
        args.extend(build.extra_options)
        args.append(build.context)

        args.extend(["-t", image_name])
        if target:
            args.extend(["--target", target])
        return args

    async def docker_build(
        self,
        image_name: str,
        build: BuildSpec,
        cache_from: Optional[CacheFromImages] = None,
        target: Optional[str] = None,
    ) -> None:
        args = await self.build_args(image_name, build, cache_from, target)
        log.debug(f"Building {image_name}" + (f" (target {target})" if target else ""))
        await self.policy.run_must_succeed(
            self.docker_bin, args, env=build.env or None
        )

    async def tag_image(self, source: str, target: str) -> None:
        """Tag a local image under another name."""
        log.debug(f"Tagging image: {source} -> {target}")
        await self.policy.run_must_succeed(self.docker_bin, ["tag", source, target])
