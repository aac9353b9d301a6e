"""Unified configuration via pydantic-settings."""

from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Discord rejects message content longer than this.
PLATFORM_MESSAGE_LIMIT = 2000


class CourierConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="COURIER_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Required
    discord_bot_token: str
    discord_public_key: str
    agent_url: str

    # Platform
    discord_application_id: str | None = None
    discord_api_base: str = "https://discord.com/api/v10"
    thread_auto_archive_minutes: int = 60

    # Agent
    agent_id: str = "discordMCPBotAgent"
    agent_max_steps: int = 10

    # Conversation limits
    max_input_length: int = 2000
    frame_size: int = PLATFORM_MESSAGE_LIMIT
    cooldown_seconds: float = 10.0

    # Transport
    request_timeout_seconds: float = 8.0
    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    backoff_factor: float = 2.0
    backoff_max_seconds: float = 5.0

    # Sweeper
    sweep_page_size: int = 100
    sweep_delay_seconds: float = 1.0

    # Streaming
    streaming_enabled: bool = False
    stream_flush_chars: int = 1900
    status_tool_prefix: str = ""

    # Server
    host: str = "0.0.0.0"
    port: int = 3000

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    log_dir: Path | None = None
    log_max_bytes: int = 10_485_760
    log_backup_count: int = 5

    @field_validator("agent_url", "discord_api_base")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("discord_public_key")
    @classmethod
    def validate_public_key(cls, v: str) -> str:
        v = v.strip()
        try:
            raw = bytes.fromhex(v)
        except ValueError:
            raise ValueError("discord_public_key must be hex encoded") from None
        if len(raw) != 32:
            raise ValueError("discord_public_key must be a 32-byte Ed25519 key")
        return v

    @field_validator(
        "max_input_length",
        "frame_size",
        "sweep_page_size",
        "stream_flush_chars",
        "agent_max_steps",
        "thread_auto_archive_minutes",
    )
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator(
        "cooldown_seconds",
        "request_timeout_seconds",
        "backoff_base_seconds",
        "backoff_max_seconds",
    )
    @classmethod
    def must_be_positive_seconds(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("max_retries")
    @classmethod
    def must_not_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries must not be negative")
        return v

    @field_validator("backoff_factor")
    @classmethod
    def factor_at_least_one(cls, v: float) -> float:
        if v < 1:
            raise ValueError("backoff_factor must be at least 1")
        return v

    @field_validator("frame_size")
    @classmethod
    def frame_fits_platform(cls, v: int) -> int:
        if v > PLATFORM_MESSAGE_LIMIT:
            raise ValueError(f"frame_size must not exceed {PLATFORM_MESSAGE_LIMIT}")
        return v

    @model_validator(mode="after")
    def flush_within_frame(self) -> "CourierConfig":
        if self.stream_flush_chars > self.frame_size:
            raise ValueError("stream_flush_chars must not exceed frame_size")
        return self
