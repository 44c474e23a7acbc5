from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_opt_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        return None


@dataclass(frozen=True)
class Settings:
    # Churn target
    image: str = os.getenv("BUBBLE_IMAGE", "")
    freq: str = os.getenv("BUBBLE_FREQ", "1m")
    ratio: str = os.getenv("BUBBLE_RATIO", "1:1")

    # Teardown knobs. None / 0 keep the runtime defaults (no wait deadline).
    stop_timeout_s: int | None = _env_opt_int("BUBBLE_STOP_TIMEOUT_S")
    wait_timeout_s: int = _env_int("BUBBLE_WAIT_TIMEOUT_S", 0)
    sample_with_replacement: bool = _env_bool("BUBBLE_SAMPLE_WITH_REPLACEMENT", True)
    seed: int | None = _env_opt_int("BUBBLE_SEED")

    # Event log
    db_path: str = os.getenv("BUBBLE_DB_PATH", "bubble.db")
    log_level: str = os.getenv("BUBBLE_LOG_LEVEL", "INFO")

    # Status API (optional). Port 0 disables it.
    api_host: str = os.getenv("BUBBLE_API_HOST", "127.0.0.1")
    api_port: int = _env_int("BUBBLE_API_PORT", 0)


settings = Settings()
