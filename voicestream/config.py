"""
Configuration management: values sourced from environment variables
(or a local .env file), overridable at runtime via ``configure()``.

Also acts as the process-wide settings store: the API credentials and the
registered streaming RPC client are read from here by every synthesizer.
"""

from functools import lru_cache
from typing import Any, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── Credentials ───────────────────────────────────────────────────────────
    api_key: str = ""
    user_id: str = ""

    # ── Endpoints ─────────────────────────────────────────────────────────────
    v2_stream_url: str = "https://play.ht/api/v2/tts/stream"
    fal_stream_url: str = "https://fal.run/fal-ai/playht-tts/stream"
    fal_speech_url: str = "https://fal.run/fal-ai/playht-tts"
    fal_authorize_url: str = "https://fal-playht-demo-app.vercel.app/api/playht/authorize"

    # ── Token cache ───────────────────────────────────────────────────────────
    token_expiration_seconds: int = 300
    token_eviction_ratio: float = 0.99

    # ── HTTP ──────────────────────────────────────────────────────────────────
    http_connect_timeout_seconds: float = 10.0
    http_timeout_seconds: float = 60.0     # batch + token requests
    http_keepalive_expiry_seconds: float = 30.0

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_file: str = ""                     # empty: console only
    log_rotation_bytes: int = 10 * 1024 * 1024    # 10 MB
    log_backup_count: int = 5


_active: Optional[Settings] = None
_streaming_client: Optional[Any] = None


@lru_cache(maxsize=1)
def _load_settings() -> Settings:
    return Settings()


def get_settings() -> Settings:
    return _active if _active is not None else _load_settings()


def configure(
    api_key: Optional[str] = None,
    user_id: Optional[str] = None,
    streaming_client: Optional[Any] = None,
    **overrides: Any,
) -> Settings:
    """
    Install process-wide credentials and settings overrides.

    Any field of ``Settings`` may be passed as a keyword. Returns the
    settings object that subsequent ``get_settings()`` calls will see.
    """
    global _active, _streaming_client

    fields = dict(overrides)
    if api_key is not None:
        fields["api_key"] = api_key
    if user_id is not None:
        fields["user_id"] = user_id

    unknown = set(fields) - set(Settings.model_fields)
    if unknown:
        raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

    _active = get_settings().model_copy(update=fields)
    if streaming_client is not None:
        _streaming_client = streaming_client
    return _active


def get_streaming_client() -> Any:
    if _streaming_client is None:
        raise RuntimeError("No streaming client registered; call configure(streaming_client=...)")
    return _streaming_client


def reset() -> None:
    """Drop runtime overrides and the registered streaming client."""
    global _active, _streaming_client
    _active = None
    _streaming_client = None
    _load_settings.cache_clear()
