"""Runtime configuration and environment loading."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_SETTINGS: "Settings | None" = None

DEFAULT_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "schemas" / "resume_schema.json"


def reset_settings() -> None:
    """Reset cached settings. Call after changing environment variables."""
    global _SETTINGS
    _SETTINGS = None


@dataclass(frozen=True)
class Settings:
    openai_api_key: str
    supabase_url: str
    supabase_service_key: str
    openai_model: str = "gpt-5-nano"
    job_concurrency: int = 4
    # None means archive sub-tasks share the job limiter.
    fanout_concurrency: int | None = None
    link_retry_attempts: int = 3
    link_retry_delay_ms: int = 500
    link_retry_jitter_ms: int = 0
    http_timeout_seconds: float = 30.0
    resume_schema_path: str = str(DEFAULT_SCHEMA_PATH)
    log_level: str = "INFO"


def load_env_file(path: str, *, override: bool = False) -> None:
    """Load key=value pairs from a .env-style file into os.environ.

    Keeps existing env values unless override=True.
    """
    env_path = Path(path)
    if not env_path.exists():
        return

    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip("'").strip('"')
        if not override and key in os.environ:
            continue
        os.environ[key] = value


def _required_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ValueError(f"Missing required environment variable: {name}")
    return value


def _optional_env(name: str, default: str) -> str:
    return os.getenv(name, default).strip() or default


def _int_env(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got '{raw}'.") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}.")
    return value


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got '{raw}'.") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}.")
    return value


def get_settings() -> Settings:
    """Load settings from the env file and environment variables."""
    global _SETTINGS
    if _SETTINGS is not None:
        return _SETTINGS

    env_file = os.getenv("INGEST_ENV_FILE", "my.env")
    load_env_file(env_file)

    fanout_raw = os.getenv("FANOUT_CONCURRENCY", "").strip()
    _SETTINGS = Settings(
        openai_api_key=_required_env("OPENAI_API_KEY"),
        supabase_url=_required_env("SUPABASE_URL").rstrip("/"),
        supabase_service_key=_required_env("SUPABASE_SERVICE_KEY"),
        openai_model=_optional_env("OPENAI_MODEL", "gpt-5-nano"),
        job_concurrency=_int_env("JOB_CONCURRENCY", 4, minimum=1),
        fanout_concurrency=(
            _int_env("FANOUT_CONCURRENCY", 1, minimum=1) if fanout_raw else None
        ),
        link_retry_attempts=_int_env("LINK_RETRY_ATTEMPTS", 3, minimum=1),
        link_retry_delay_ms=_int_env("LINK_RETRY_DELAY_MS", 500),
        link_retry_jitter_ms=_int_env("LINK_RETRY_JITTER_MS", 0),
        http_timeout_seconds=_float_env("HTTP_TIMEOUT_SECONDS", 30.0),
        resume_schema_path=_optional_env("RESUME_SCHEMA_PATH", str(DEFAULT_SCHEMA_PATH)),
        log_level=_optional_env("LOG_LEVEL", "INFO").upper(),
    )
    return _SETTINGS
