"""
Application configuration management.

This module handles configuration from environment variables using Pydantic Settings.
User preferences (API key, AI opt-in) are not configured here: they live in the
key-value store and are loaded per session (see storage.preferences).
"""

from pydantic_settings import BaseSettings

from .version import CACHE_SCHEMA_VERSION


class Settings(BaseSettings):
    """
    Application configuration from environment variables.

    All settings can be overridden via environment variables with the same name.
    """

    # API settings
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Persistent key-value store
    store_url: str = "sqlite:///inboxzen.db"
    store_echo_sql: bool = False

    # Classification cache
    cache_ttl_days: int = 7
    cache_version: int = CACHE_SCHEMA_VERSION  # Bump to force a clear on next bootstrap

    # Local keyword scorer
    local_score_threshold: int = 2  # Matches below this are not trusted

    # Snippet polling (reclassification scheduler)
    snippet_max_retries: int = 10
    snippet_check_interval_ms: int = 250
    global_notification_delay_ms: int = 2000
    full_scan_interval_seconds: float = 0.0  # 0 disables the periodic scan

    # Remote classifier
    remote_provider: str = "openai"  # "openai" | "ollama"
    remote_model: str = "gpt-3.5-turbo"
    remote_api_base_url: str = "https://api.openai.com/v1"
    remote_timeout_seconds: float = 5.0
    remote_max_tokens: int = 10
    remote_temperature: float = 0.0

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


# Global settings instance
settings = Settings()
