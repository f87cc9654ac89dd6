"""
Runtime settings read from the environment.

Settings are loaded once at the entry points and passed into every cycle;
nothing in the sync core reads the environment on its own.
"""
from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


@dataclass(frozen=True)
class Settings:
    todoist_api_url: str = "https://api.todoist.com/rest/v2"
    headless: bool = True
    check_interval: int = 60  # seconds between scheduler ticks
    default_push_interval_minutes: int = 60
    default_poll_interval_hours: int = 24
    cycle_timeout_seconds: int = 120
    lock_ttl_seconds: int = 180
    max_concurrent_sessions: int = 2
    verification_wait_seconds: int = 300
    auth_failure_notify_threshold: int = 3
    http_max_attempts: int = 2
    http_timeout_seconds: float = 15.0
    dry_run: bool = False
    trigger_token: str | None = None


def load_settings() -> Settings:
    return Settings(
        todoist_api_url=os.getenv("TODOIST_API_URL", Settings.todoist_api_url).rstrip("/"),
        headless=_env_bool("PLAYWRIGHT_HEADLESS", "true"),
        check_interval=_env_int("CHECK_INTERVAL", Settings.check_interval),
        default_push_interval_minutes=_env_int(
            "DEFAULT_PUSH_INTERVAL_MINUTES", Settings.default_push_interval_minutes
        ),
        default_poll_interval_hours=_env_int(
            "DEFAULT_POLL_INTERVAL_HOURS", Settings.default_poll_interval_hours
        ),
        cycle_timeout_seconds=_env_int("CYCLE_TIMEOUT_SECONDS", Settings.cycle_timeout_seconds),
        lock_ttl_seconds=_env_int("LOCK_TTL_SECONDS", Settings.lock_ttl_seconds),
        max_concurrent_sessions=max(1, _env_int("MAX_CONCURRENT_SESSIONS", Settings.max_concurrent_sessions)),
        verification_wait_seconds=_env_int(
            "VERIFICATION_WAIT_SECONDS", Settings.verification_wait_seconds
        ),
        auth_failure_notify_threshold=_env_int(
            "AUTH_FAILURE_NOTIFY_THRESHOLD", Settings.auth_failure_notify_threshold
        ),
        http_max_attempts=max(1, _env_int("HTTP_MAX_ATTEMPTS", Settings.http_max_attempts)),
        http_timeout_seconds=_env_float("HTTP_TIMEOUT_SECONDS", Settings.http_timeout_seconds),
        dry_run=_env_bool("DRY_RUN", "false"),
        trigger_token=os.getenv("TRIGGER_TOKEN") or None,
    )


__all__ = ["Settings", "load_settings"]
