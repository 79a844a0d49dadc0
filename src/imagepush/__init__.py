# Load .env vars from file before everything else
from dotenv import load_dotenv

load_dotenv()

from .logger import setup_logging  # noqa: E402

setup_logging()

from typing import TYPE_CHECKING  # noqa: E402

if TYPE_CHECKING:
    from .config import ImagePushConfig
    from .core.exceptions import (
        ExternalToolError,
        ImagePushError,
        InternalInvariantError,
        MalformedInputError,
        ToolNotInstalledError,
    )
    from .core.models import BuildSpec, CacheSpec, Registry
    from .orchestrator import BuildContext, build_and_push_image
    from .registry.login import RegistryLoginCache


def __getattr__(name):
    """Lazily import modules only when accessed."""
    if name in ("build_and_push_image", "BuildContext"):
        from . import orchestrator

        return getattr(orchestrator, name)
    elif name in ("BuildSpec", "CacheSpec", "Registry"):
        from .core import models

        return getattr(models, name)
    elif name in (
        "ExternalToolError",
        "ImagePushError",
        "InternalInvariantError",
        "MalformedInputError",
        "ToolNotInstalledError",
    ):
        from .core import exceptions

        return getattr(exceptions, name)
    elif name == "ImagePushConfig":
        from .config import ImagePushConfig

        return ImagePushConfig
    elif name == "RegistryLoginCache":
        from .registry.login import RegistryLoginCache

        return RegistryLoginCache
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "build_and_push_image",
    "BuildContext",
    "BuildSpec",
    "CacheSpec",
    "Registry",
    "ImagePushConfig",
    "RegistryLoginCache",
    "ImagePushError",
    "ExternalToolError",
    "InternalInvariantError",
    "MalformedInputError",
    "ToolNotInstalledError",
]
