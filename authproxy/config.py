"""
Process settings from environment variables.
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class AppConfig(BaseSettings):
    # Path of the line-oriented proxy config (ollama_server, auth_token, ...)
    authproxy_config: str = "./config.conf"
    # Seconds to wait on upstream I/O. Unset means wait indefinitely.
    authproxy_upstream_timeout: Optional[float] = None
    authproxy_log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


@lru_cache
def get_config() -> AppConfig:
    return AppConfig()
