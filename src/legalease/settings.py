from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration."""

    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    openai_api_key: str | None = None
    openai_base_url: str | None = "https://api.openai.com/v1"

    model: str = "gpt-4o-mini"
    generation_timeout_seconds: float = 30.0
    generation_max_retries: int = 2
    history_max_turns: int = 40  # 0 sends the whole transcript

    emotion_model: str = "gpt-4o-mini"
    emotion_timeout_seconds: float = 10.0

    cors_origins: str = "*"

    redis_url: str | None = None
    context_ttl_seconds: int = 86400  # 24 hours

    static_dir: Path | None = Path("public")

    assistant_name: str = "LegalEase"

    emotion_system_prompt: str = (
        "You label the emotional tone of a single message written by someone "
        "describing a legal problem. Answer with exactly one word from this "
        "list: fear, anger, sadness, joy, calm.\n\n"
        "Examples:\n"
        "I am scared of what happened -> fear\n"
        "I am so angry at them -> anger\n"
        "I feel sad and lost -> sadness\n"
        "I am happy it got resolved -> joy\n"
        "Just talking normally -> calm"
    )

    degraded_reply: str = (
        "I'm sorry, I'm having trouble responding right now. "
        "Please send your last message again in a moment."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore",
    )


def get_settings() -> Settings:
    """Return the application settings singleton (loaded from env / .env)."""
    global _SETTINGS
    try:
        return _SETTINGS
    except NameError:
        _SETTINGS = Settings()
        return _SETTINGS
