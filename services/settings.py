"""
Application settings loaded from the environment.

Values come from process environment variables, with a `.env` file at the
project root loaded first (python-dotenv). Invalid values fail here, at load
time, with InvalidConfigurationError.

Environment variables:
- ENROLLMENT_DISCOUNT_PERCENT: discount on the enrollment fee (default 20)
- QUOTATION_VALIDITY_DAYS: days until a PENDING quotation expires (default 7)
- ASSIGNMENT_MAX_ATTEMPTS: compare-and-set attempts per assignment (default 3)
- LOG_LEVEL: logging level for the API process (default INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from domain.errors import InvalidConfigurationError
from domain.pricing import DEFAULT_DISCOUNT_PERCENT
from domain.quotation import DEFAULT_VALIDITY_DAYS

ENV_PATH = Path(__file__).parent.parent / ".env"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True, slots=True)
class AppSettings:
    discount_percent: Decimal = DEFAULT_DISCOUNT_PERCENT
    quotation_validity_days: int = DEFAULT_VALIDITY_DAYS
    assignment_max_attempts: int = 3
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not Decimal("0") <= self.discount_percent <= Decimal("100"):
            raise InvalidConfigurationError("ENROLLMENT_DISCOUNT_PERCENT must be between 0 and 100")
        if self.quotation_validity_days < 1:
            raise InvalidConfigurationError("QUOTATION_VALIDITY_DAYS must be >= 1")
        if self.assignment_max_attempts < 1:
            raise InvalidConfigurationError("ASSIGNMENT_MAX_ATTEMPTS must be >= 1")
        if self.log_level not in _LOG_LEVELS:
            raise InvalidConfigurationError(f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}")


def _read_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise InvalidConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _read_decimal(env: Mapping[str, str], name: str, default: Decimal) -> Decimal:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation as e:
        raise InvalidConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if not value.is_finite():
        raise InvalidConfigurationError(f"{name} must be a finite number, got {raw!r}")
    return value


def settings_from_env(env: Optional[Mapping[str, str]] = None) -> AppSettings:
    """Build settings from a mapping (defaults to os.environ). Does not touch .env."""

    env = os.environ if env is None else env
    return AppSettings(
        discount_percent=_read_decimal(env, "ENROLLMENT_DISCOUNT_PERCENT", DEFAULT_DISCOUNT_PERCENT),
        quotation_validity_days=_read_int(env, "QUOTATION_VALIDITY_DAYS", DEFAULT_VALIDITY_DAYS),
        assignment_max_attempts=_read_int(env, "ASSIGNMENT_MAX_ATTEMPTS", 3),
        log_level=(env.get("LOG_LEVEL") or "INFO").strip().upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Load `.env` once and return the process-wide settings."""

    load_dotenv(dotenv_path=ENV_PATH)
    return settings_from_env()


__all__ = ["ENV_PATH", "AppSettings", "settings_from_env", "get_settings"]
