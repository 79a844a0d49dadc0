"""Image name, tag and repository URL helpers."""

import re
from typing import NamedTuple, Optional

from .exceptions import MalformedInputError

# A trailing ":<digits>[/...]" segment is a registry port, not a tag.
_PORT_PATTERN = re.compile(r"^\d+(/.*)?")


class ImageNameAndTag(NamedTuple):
    image_name: str
    tag: Optional[str]


def get_image_name_and_tag(base_image_name: str) -> ImageNameAndTag:
    """Split ``name[:tag]`` on its last colon."""
    last_colon = base_image_name.rfind(":")
    if last_colon < 0:
        return ImageNameAndTag(base_image_name, None)
    return ImageNameAndTag(
        base_image_name[:last_colon], base_image_name[last_colon + 1 :]
    )


def check_repository_url(repository_url: str) -> None:
    """Reject repository URLs that embed a tag.

    ``docker.mycompany.com/namespace/myimage`` is fine, and so is a port such as
    ``docker.mycompany.com:5000/namespace/myimage``, but
    ``docker.mycompany.com/namespace/myimage:latest`` is a caller mistake.

    Raises:
        MalformedInputError: If the URL ends in something that looks like a tag.
    """
    tag = get_image_name_and_tag(repository_url).tag
    if tag and not _PORT_PATTERN.match(tag):
        raise MalformedInputError(f"[repositoryUrl] should not contain a tag: {tag}")


def create_tagged_image_name(
    repository_url: str, tag: Optional[str], image_id: Optional[str]
) -> str:
    """Build ``repository_url[:tag-image_id]`` from whichever pieces are present.

    The tag itself is not validated; the build tool reports malformed tags.
    """
    pieces = [piece for piece in (tag, image_id) if piece]
    full_tag = "-".join(pieces)
    return f"{repository_url}:{full_tag}" if full_tag else repository_url


def local_stage_image_name(image_name: str, stage: str) -> str:
    return f"{image_name}-{stage}"
