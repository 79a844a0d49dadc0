"""Configuration for imagepush, loaded from environment variables."""

import os
from dataclasses import dataclass

DEFAULT_DOCKER_BIN = "docker"
# First client release that accepts `login --password-stdin`.
DEFAULT_PASSWORD_STDIN_MIN_VERSION = "17.07.0"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class ImagePushConfig:
    """Settings shared by every build-and-push run in a BuildContext."""

    docker_bin: str = DEFAULT_DOCKER_BIN
    dry_run: bool = False
    skip_push: bool = False
    password_stdin_min_version: str = DEFAULT_PASSWORD_STDIN_MIN_VERSION

    @classmethod
    def from_env(cls) -> "ImagePushConfig":
        """Load configuration from environment variables.

        Environment variables:
        - IMAGEPUSH_DOCKER_BIN: Build tool executable (default: docker)
        - IMAGEPUSH_DRY_RUN: Build without tagging or pushing (default: false)
        - IMAGEPUSH_SKIP_PUSH: Skip the push step (default: false)
        - IMAGEPUSH_PASSWORD_STDIN_MIN_VERSION: Minimum client version that
          receives the password on stdin (default: 17.07.0)

        Returns:
            ImagePushConfig initialized from environment variables.
        """
        return cls(
            docker_bin=os.getenv("IMAGEPUSH_DOCKER_BIN") or DEFAULT_DOCKER_BIN,
            dry_run=_env_flag("IMAGEPUSH_DRY_RUN"),
            skip_push=_env_flag("IMAGEPUSH_SKIP_PUSH"),
            password_stdin_min_version=os.getenv(
                "IMAGEPUSH_PASSWORD_STDIN_MIN_VERSION",
                DEFAULT_PASSWORD_STDIN_MIN_VERSION,
            ),
        )
