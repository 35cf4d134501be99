"""Operator configuration read from ``timeflip.toml``.

Example::

    password = "000000"
    auto_pause_minutes = 0

    [[sides]]
    name = "Email"

    [[sides]]
    name = "Coding"
    pomodoro_minutes = 25
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .const import DEFAULT_PASSWORD, SIDE_COUNT
from .exception import ConfigurationError
from .models import Facet

logger = logging.getLogger(__name__)


class Side(BaseModel):
    """Settings for one physical side of the cube."""

    name: str | None = None
    pomodoro_minutes: int | None = Field(default=None, ge=0, le=1440)

    model_config = ConfigDict(extra="forbid")


class Config(BaseModel):
    """Password and per-side settings for the cube."""

    password: str = DEFAULT_PASSWORD
    auto_pause_minutes: int = Field(default=0, ge=0, le=65535)
    sides: list[Side] = Field(default_factory=list, max_length=SIDE_COUNT)

    model_config = ConfigDict(extra="forbid")

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        """Passwords are six ASCII characters."""
        if len(value) != 6 or not value.isascii():
            raise ValueError("password must be exactly 6 ASCII characters")
        return value

    @field_validator("sides")
    @classmethod
    def pad_sides(cls, value: list[Side]) -> list[Side]:
        """Pad the side list so every physical side has an entry."""
        return value + [Side() for _ in range(SIDE_COUNT - len(value))]

    def side(self, facet: Facet) -> Side | None:
        """Return the side configured for ``facet`` if it is a physical side."""
        if facet < len(self.sides):
            return self.sides[facet]
        return None


def facet_name(facet: Facet, config: Config | None) -> str:
    """Return the configured name of ``facet``, or its number."""
    if config is not None:
        side = config.side(facet)
        if side is not None and side.name:
            return side.name
    return str(facet)


def load_config(path: Path | str) -> Config:
    """Read and validate a TOML configuration file."""
    config_file = Path(path)
    try:
        with config_file.open("rb") as f:
            data = tomllib.load(f)
    except OSError as exc:
        raise ConfigurationError(
            f"Could not read config file {config_file}: {exc}"
        ) from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(
            f"Could not parse config file {config_file}: {exc}"
        ) from exc

    try:
        config = Config.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid config file {config_file}: {exc}"
        ) from exc

    logger.debug("Loaded configuration from %s", config_file)
    return config
