"""
Registry push operations.

Tags the built images with their repository names and pushes them: the final
image under its unique and friendly tags, then every cache stage.
"""

import logging
from typing import Optional

from ..core.models import BuildResult
from ..core.naming import create_tagged_image_name, local_stage_image_name
from .image_builder import ImageBuilder

log = logging.getLogger(__name__)


class ImagePusher:
    """Tag and push images to a repository."""

    def __init__(self, builder: ImageBuilder):
        self.builder = builder
        self.policy = builder.policy
        self.docker_bin = builder.docker_bin

    async def push_image(self, image: str) -> None:
        log.info(f"Pushing to registry: {image}")
        await self.policy.run_must_succeed(self.docker_bin, ["push", image])

    async def tag_and_push_image(
        self,
        image_name: str,
        repository_url: str,
        tag: Optional[str],
        image_id: Optional[str],
    ) -> None:
        """
        Push an image under ``repository_url:[tag-]image_id``.

        When both a tag and an image id are given, the image is also pushed
        under the plain ``repository_url:tag``. That location is not unique and
        later pushes from elsewhere may overwrite it.
        """
        await self._tag_and_push(
            image_name, create_tagged_image_name(repository_url, tag, image_id)
        )

        if tag is not None and image_id is not None:
            await self._tag_and_push(
                image_name, create_tagged_image_name(repository_url, tag, None)
            )

    async def push_build(
        self,
        image_name: str,
        repository_url: str,
        tag: Optional[str],
        result: BuildResult,
    ) -> None:
        """Push the final image, then each cache stage tagged by its stage name."""
        await self.tag_and_push_image(image_name, repository_url, tag, result.image_id)

        for stage in result.stages:
            await self.tag_and_push_image(
                local_stage_image_name(image_name, stage), repository_url, stage, None
            )

    async def _tag_and_push(self, image_name: str, target_name: str) -> None:
        await self.builder.tag_image(image_name, target_name)
        await self.push_image(target_name)
