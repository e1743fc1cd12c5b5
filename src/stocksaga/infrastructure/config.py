"""Runtime settings, read from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Mapping

from stocksaga.domain.exceptions import ValidationError


def _int_setting(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ValidationError(f"{name} must be at least {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    data_dir: Path = Path("data")
    cas_max_attempts: int = 5
    cas_base_delay_ms: int = 10
    publish_max_attempts: int = 3
    publish_base_delay_ms: int = 1000
    publish_max_delay_ms: int = 30000
    reservation_window_minutes: int = 15

    @property
    def reservation_window(self) -> timedelta:
        return timedelta(minutes=self.reservation_window_minutes)

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if env is None else env
        return Settings(
            data_dir=Path(env.get("STOCKSAGA_DATA_DIR") or "data"),
            cas_max_attempts=_int_setting(env, "STOCKSAGA_CAS_MAX_ATTEMPTS", 5, minimum=1),
            cas_base_delay_ms=_int_setting(env, "STOCKSAGA_CAS_BASE_DELAY_MS", 10),
            publish_max_attempts=_int_setting(env, "STOCKSAGA_PUBLISH_MAX_ATTEMPTS", 3, minimum=1),
            publish_base_delay_ms=_int_setting(env, "STOCKSAGA_PUBLISH_BASE_DELAY_MS", 1000),
            publish_max_delay_ms=_int_setting(env, "STOCKSAGA_PUBLISH_MAX_DELAY_MS", 30000),
            reservation_window_minutes=_int_setting(
                env, "STOCKSAGA_RESERVATION_WINDOW_MINUTES", 15, minimum=1
            ),
        )
