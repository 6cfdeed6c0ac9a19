"""Configuration for collections and repositories."""

from __future__ import annotations

import dataclasses
import os
from typing import Mapping

from snarform.exceptions import ConfigError

DEFAULT_PAGE_SIZE = 10


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    raise ConfigError(f"Expected a boolean, got {value!r}")


def _env_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"Expected an integer, got {value!r}") from None


@dataclasses.dataclass(frozen=True)
class CacheConfig:
    """Defaults shared by repositories, collections and lists.

    Parameters
    ----------
    page_size : int
        Items per page for paginated lists. Must be positive.
    eager : bool
        Start the first fetch as soon as a list is created. When false a
        list stays empty until it is read, preloaded or reloaded.
    id_key : str
        Name of the identity field on entities.
    """

    page_size: int = DEFAULT_PAGE_SIZE
    eager: bool = True
    id_key: str = "id"

    def __post_init__(self) -> None:
        if self.page_size <= 0:
            raise ConfigError(f"page_size must be positive, got {self.page_size}")
        if not self.id_key:
            raise ConfigError("id_key must be a non-empty string")

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, prefix: str = "SNARFORM_"
    ) -> CacheConfig:
        """Build a config from SNARFORM_PAGE_SIZE, SNARFORM_EAGER, SNARFORM_ID_KEY."""
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            page_size=_env_int(env.get(f"{prefix}PAGE_SIZE"), defaults.page_size),
            eager=_env_bool(env.get(f"{prefix}EAGER"), defaults.eager),
            id_key=env.get(f"{prefix}ID_KEY") or defaults.id_key,
        )
