from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from dotenv import load_dotenv


_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime configuration for the chat service.

    Every field maps to an environment variable; see `load_settings`.
    """

    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "chatroom"
    # Upper bound for a single Redis round trip.
    storage_timeout_s: float = 2.0
    # A participant silent for longer than this is swept out of the room.
    inactivity_timeout_ms: int = 10_000
    sweep_interval_s: float = 15.0
    sweep_enabled: bool = True
    # Legacy behavior: once a name has been used it can never be registered again.
    reserve_known_names: bool = False
    log_level: str = "INFO"


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().casefold()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")


def _parse_positive(name: str, raw: str, kind: type[int] | type[float]) -> int | float:
    try:
        value = kind(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build `Settings` from environment variables.

    When `env` is omitted the process environment is used, after loading a
    `.env` file (if any) without overriding variables that are already set.
    """

    if env is None:
        load_dotenv(override=False)
        env = os.environ

    defaults = Settings()

    def _get(name: str, default: object) -> str:
        return env.get(name, str(default))

    log_level = _get("CHATROOM_LOG_LEVEL", defaults.log_level).upper()
    if log_level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
        raise ValueError(f"CHATROOM_LOG_LEVEL is not a logging level: {log_level!r}")

    return Settings(
        redis_url=env.get("REDIS_URL") or defaults.redis_url,
        key_prefix=_get("CHATROOM_KEY_PREFIX", defaults.key_prefix) or defaults.key_prefix,
        storage_timeout_s=float(
            _parse_positive("CHATROOM_STORAGE_TIMEOUT_S", _get("CHATROOM_STORAGE_TIMEOUT_S", defaults.storage_timeout_s), float)
        ),
        inactivity_timeout_ms=int(
            _parse_positive(
                "CHATROOM_INACTIVITY_TIMEOUT_MS", _get("CHATROOM_INACTIVITY_TIMEOUT_MS", defaults.inactivity_timeout_ms), int
            )
        ),
        sweep_interval_s=float(
            _parse_positive("CHATROOM_SWEEP_INTERVAL_S", _get("CHATROOM_SWEEP_INTERVAL_S", defaults.sweep_interval_s), float)
        ),
        sweep_enabled=_parse_bool("CHATROOM_SWEEP_ENABLED", _get("CHATROOM_SWEEP_ENABLED", "1")),
        reserve_known_names=_parse_bool("CHATROOM_RESERVE_KNOWN_NAMES", _get("CHATROOM_RESERVE_KNOWN_NAMES", "0")),
        log_level=log_level,
    )
