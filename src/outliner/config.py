"""Application configuration.

Configuration is loaded from environment variables. For local development, you can provide a
`.env` file and set `OUTLINER_ENV_FILE` to point to it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Outliner settings.

    All fields are environment-configurable. Prefix is `OUTLINER_`.
    """

    model_config = SettingsConfigDict(
        env_prefix="OUTLINER_",
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    app_env: Literal["dev", "prod"] = Field(default="dev")
    log_level: str = Field(default="INFO")

    # In-process store
    data_dir: Path = Field(default=Path(".outliner"))
    local_storage_key: str = Field(default="outline-pro-data")

    # Directory backend (a pre-granted directory, the equivalent of a stored handle)
    directory_path: Path | None = Field(default=None)

    # Host backend
    host_enabled: bool = Field(default=False)
    host_url: str | None = Field(default=None)
    host_timeout_s: float = Field(default=30.0, ge=1.0, le=600.0)
    outline_extension: str = Field(default=".idm")

    # Lazy loading of very large files
    lazy_load_threshold_bytes: int = Field(default=1024 * 1024, ge=1)
    lazy_head_bytes: int = Field(default=4096, ge=256)
    lazy_bytes_per_node: int = Field(default=5000, ge=1)

    # Redis (optional replacement for the in-process store)
    redis_enabled: bool = Field(default=False)
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_key_prefix: str = Field(default="outliner")

    # Host service
    serve_host: str = Field(default="127.0.0.1")
    serve_port: int = Field(default=8765, ge=1, le=65535)


def load_settings() -> Settings:
    """Load settings from env.

    Returns:
        Settings: Parsed settings.
    """

    env_file_override = os.getenv("OUTLINER_ENV_FILE")
    if env_file_override:
        env_path = Path(env_file_override)
        return Settings(_env_file=env_path)

    default_env = Path.cwd() / ".env"
    if default_env.exists():
        return Settings(_env_file=default_env)

    return Settings()
