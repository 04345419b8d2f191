"""Runtime settings.

Resolution order (highest priority first):
1. Programmatic (Settings constructed in code)
2. Environment variables (INFRAREF_LOG_LEVEL, INFRAREF_TOKEN_STYLE, ...)
3. Hardcoded defaults
"""

from __future__ import annotations

import logging
import os
from typing import Literal

from pydantic import BaseModel, field_validator

logger = logging.getLogger(__name__)

_ENV_PREFIX = "INFRAREF_"
_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    log_level: str = "WARNING"
    # terraform -> ${aws_vpc.main.id}; plain -> aws_vpc.main.id
    token_style: Literal["terraform", "plain"] = "terraform"
    # reject attributes that the schema does not declare
    strict_unknown_fields: bool = True
    state_format: Literal["yaml", "json"] = "yaml"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level {v!r}")
        return level

    @classmethod
    def from_env(cls, **overrides) -> Settings:
        values: dict[str, object] = {}
        env = os.environ
        if f"{_ENV_PREFIX}LOG_LEVEL" in env:
            values["log_level"] = env[f"{_ENV_PREFIX}LOG_LEVEL"]
        if f"{_ENV_PREFIX}TOKEN_STYLE" in env:
            values["token_style"] = env[f"{_ENV_PREFIX}TOKEN_STYLE"].lower()
        if f"{_ENV_PREFIX}STRICT" in env:
            values["strict_unknown_fields"] = env[f"{_ENV_PREFIX}STRICT"].strip().lower() in _TRUTHY
        if f"{_ENV_PREFIX}STATE_FORMAT" in env:
            values["state_format"] = env[f"{_ENV_PREFIX}STATE_FORMAT"].lower()
        values.update(overrides)
        return cls.model_validate(values)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the shared settings, reading the environment on first access."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """Attach a stream handler to the package logger. Safe to call repeatedly."""
    root = logging.getLogger("infraref")
    if level is None:
        level = get_settings().log_level
    root.setLevel(level)
    if not any(getattr(h, "_infraref", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        handler._infraref = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    logger.debug("Logging configured at %s", logging.getLevelName(root.level))
    return root
