"""
Global configuration for the project.

Settings are read once from `ARCHETYPE_*` environment variables (for example
`ARCHETYPE_API_URL`) and shared by every module through `get_settings()`.
Logging is left to the host application; `configure_logging` applies the
project's default format for scripts and local runs.
"""

import logging
import os
from collections.abc import Mapping
from functools import lru_cache
from typing import Self

from pydantic import BaseModel, PositiveFloat, PositiveInt

from .utils.const import IIIF_IMAGE

ENV_PREFIX = "ARCHETYPE_"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


class Settings(BaseModel):
    """Runtime settings.

    Attributes:
        api_url: Base URL of the annotation-storage API; relative IIIF info
            URLs are resolved against it.
        default_extent: Side in pixels of the square extent used when an
            image's info document cannot be fetched.
        thumbnail_size: Default requested thumbnail width in pixels.
        info_timeout: Seconds allowed for an info document request; None
            leaves the HTTP client's default.
        log_level: Level used by `configure_logging`.
    """
    api_url: str = "http://localhost:8000"
    default_extent: PositiveInt = IIIF_IMAGE['degraded_extent_px']
    thumbnail_size: PositiveInt = IIIF_IMAGE['thumbnail_size_px']
    info_timeout: PositiveFloat | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Self:
        """Build settings from `ARCHETYPE_<FIELD>` variables, falling back to defaults."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            key = f"{ENV_PREFIX}{name.upper()}"
            if environ.get(key):
                values[name] = environ[key]
        return cls.model_validate(values)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


def configure_logging(level: str | int | None = None) -> None:
    logging.basicConfig(
        level=level if level is not None else get_settings().log_level,
        format=LOG_FORMAT,
    )
