"""Pull previously pushed images to seed the build cache."""

import logging
from typing import List, Optional

from ..core.models import CacheSpec
from ..process.policy import CommandPolicy

log = logging.getLogger(__name__)


async def pull_cache(
    image_name: str,
    cache_from: CacheSpec,
    repository_url: Optional[str],
    policy: CommandPolicy,
    docker_bin: str = "docker",
) -> Optional[List[str]]:
    """Pull each cache stage and the final image from the repository.

    Pulls run one at a time in stage order, final image last. A failed pull
    (missing image, auth problem) just leaves that image out.

    Returns:
        The images that were pulled, for use as --cache-from, or None when
        there is no repository to pull from.
    """
    if not repository_url:
        return None

    log.debug(f"pulling cache for {image_name} from {repository_url}")

    cache_from_images: List[str] = []
    for stage in [*cache_from.stages, ""]:
        image = f"{repository_url}:{stage}" if stage else repository_url

        # Stderr of a miss is a warning: the run still succeeds without it.
        result = await policy.run_can_fail(
            docker_bin,
            ["pull", image],
            report_full_command_line=True,
            report_error_as_warning=True,
        )
        if not result.succeeded:
            log.debug(f"cache miss for {image} (exit code {result.code})")
            continue

        cache_from_images.append(image)

    return cache_from_images
