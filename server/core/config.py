"""Environment-driven configuration with Pydantic v2."""

from typing import Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from constants import (
    DEFAULT_CAPTION_MODEL,
    DEFAULT_CAPTION_PERSONA,
    DEFAULT_CAPTION_PROMPT_TEMPLATE,
)


class Settings(BaseSettings):
    """Service settings driven entirely by environment variables."""

    # Database Configuration
    database_url: str = Field(default="sqlite+aiosqlite:///./data/catalog.db", env="DATABASE_URL")
    database_echo: bool = Field(default=False, env="DATABASE_ECHO")
    database_pool_size: int = Field(default=5, env="DATABASE_POOL_SIZE", ge=1, le=100)
    database_max_overflow: int = Field(default=10, env="DATABASE_MAX_OVERFLOW", ge=0, le=100)
    store_timeout: float = Field(default=30.0, env="STORE_TIMEOUT", gt=0, le=600)

    # Working Cache
    cache_ttl: int = Field(default=86400, env="CACHE_TTL", ge=1)  # 24 hours
    cache_max_entries: int = Field(default=100000, env="CACHE_MAX_ENTRIES", ge=1)

    # Regeneration Pipeline
    regen_interval_seconds: int = Field(default=3600, env="REGEN_INTERVAL_SECONDS", ge=1)
    inter_record_delay: float = Field(default=1.5, env="INTER_RECORD_DELAY", ge=0.0, le=60.0)
    batch_size: int = Field(default=100, env="BATCH_SIZE", ge=1, le=10000)
    shutdown_grace_seconds: float = Field(default=30.0, env="SHUTDOWN_GRACE_SECONDS", ge=0.0, le=3600.0)

    # Snapshot
    snapshot_enabled: bool = Field(default=True, env="SNAPSHOT_ENABLED")
    snapshot_path: str = Field(default="snapshot/records.json", env="SNAPSHOT_PATH")

    # Caption Generation
    ai_model: str = Field(default=DEFAULT_CAPTION_MODEL, env="AI_MODEL")
    ai_temperature: float = Field(default=0.7, env="AI_TEMPERATURE", ge=0.0, le=2.0)
    ai_max_tokens: int = Field(default=1000, env="AI_MAX_TOKENS", ge=16, le=32000)
    ai_timeout: int = Field(default=60, env="AI_TIMEOUT", ge=5, le=300)
    caption_persona: str = Field(default=DEFAULT_CAPTION_PERSONA, env="CAPTION_PERSONA")
    caption_prompt_template: str = Field(
        default=DEFAULT_CAPTION_PROMPT_TEMPLATE, env="CAPTION_PROMPT_TEMPLATE"
    )

    # API Keys (all optional, only the one matching AI_MODEL is needed)
    openai_api_key: Optional[str] = Field(default=None, env="OPENAI_API_KEY")
    anthropic_api_key: Optional[str] = Field(default=None, env="ANTHROPIC_API_KEY")
    google_ai_api_key: Optional[str] = Field(default=None, env="GOOGLE_AI_API_KEY")

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: Literal["json", "console"] = Field(default="json", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database directory exists for SQLite."""
        if v and v.startswith("sqlite"):
            if ":///" in v:
                db_path = v.split("///")[1]
                if db_path and db_path != ":memory:":
                    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("caption_prompt_template")
    @classmethod
    def validate_prompt_template(cls, v):
        """The template must carry the record's existing caption."""
        if "{caption}" not in v:
            raise ValueError("caption_prompt_template must contain a {caption} placeholder")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
