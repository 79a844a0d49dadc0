"""Data model for build-and-push runs."""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)

from .exceptions import MalformedInputError


class CacheSpec(BaseModel):
    """Build stages to use for the build cache.

    Each stage listed here is built explicitly and pushed to the target
    repository tagged as ``<stage>``. The final image is always implicitly
    included.
    """

    model_config = ConfigDict(frozen=True)

    stages: List[str] = Field(default_factory=list)


class BuildSpec(BaseModel):
    """Detailed instructions about how to build a container image."""

    model_config = ConfigDict(
        validate_by_name=True,
        validate_default=True,
    )

    # Directory used as the build context; relative paths resolve against cwd.
    context: str = "."
    # Overrides the default Dockerfile name and/or location.
    dockerfile: Optional[str] = None
    args: Dict[str, str] = Field(default_factory=dict, alias="buildArgs")
    # True means "cache only the final image".
    cache_from: Optional[Union[bool, CacheSpec]] = Field(
        default=None, alias="cacheFrom"
    )
    extra_options: List[str] = Field(default_factory=list, alias="extraOptions")
    # Set on the build invocation, e.g. DOCKER_BUILDKIT=1.
    env: Dict[str, str] = Field(default_factory=dict)

    @field_validator("context", mode="before")
    @classmethod
    def _default_context(cls, value):
        return value or "."

    @property
    def wants_cache(self) -> bool:
        """Whether the build asked for cache-from at all."""
        return bool(self.cache_from)

    @property
    def cache_spec(self) -> CacheSpec:
        """The cache-from parameter normalized to a CacheSpec."""
        if isinstance(self.cache_from, CacheSpec):
            return self.cache_from
        return CacheSpec()

    @property
    def cache_stages(self) -> List[str]:
        if isinstance(self.cache_from, CacheSpec):
            return list(self.cache_from.stages)
        return []

    @classmethod
    def from_path_or_build(
        cls, path_or_build: Union[str, "BuildSpec", Dict, None]
    ) -> "BuildSpec":
        """Normalize a bare context path, a mapping or a BuildSpec."""
        if isinstance(path_or_build, BuildSpec):
            return path_or_build
        if isinstance(path_or_build, str):
            return cls(context=path_or_build)
        if path_or_build is not None:
            try:
                return cls.model_validate(path_or_build)
            except ValidationError as e:
                raise MalformedInputError(f"Invalid build specification: {e}") from e
        raise MalformedInputError(
            "Cannot build a container with an empty build specification"
        )


class Registry(BaseModel):
    """Information required to log in to a registry."""

    model_config = ConfigDict(frozen=True, validate_by_name=True)

    host: str = Field(alias="registry")
    username: str
    password: SecretStr

    @property
    def key(self) -> Tuple[str, str]:
        return (self.host, self.username)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a spawned command. Failure is a non-zero code, never an exception."""

    code: int
    stdout: str

    @property
    def succeeded(self) -> bool:
        return self.code == 0


@dataclass(frozen=True)
class BuildResult:
    """Image id (hex part of the digest) and the cache stages that were built."""

    image_id: str
    stages: List[str] = field(default_factory=list)


@dataclass
class LoginRecord:
    """In-flight or completed login for one (registry, username) pair."""

    registry: str
    username: str
    pending: "asyncio.Future[None]"
