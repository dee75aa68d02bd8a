"""Environment and settings (Pydantic Settings)."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Default data directory: ~/.taskflow/data/
_data_dir = Path.home() / ".taskflow" / "data"

# Storage keys and remote location shared by Settings and the core classes
DEFAULT_DOCUMENT_KEY = "taskflow_gtd_data"
WEBDAV_CONFIG_KEY = "taskflow_webdav_config"
WEBDAV_FILE_PATH = "/taskflow-data.json"
WEBDAV_TIMEOUT = 30.0


class Settings(BaseSettings):
    """TaskFlow settings loaded from environment and .env.

    WebDAV credentials are not settings: they are stored next to the
    document by the sync engine after a successful ``configure()``.
    """

    model_config = SettingsConfigDict(
        env_prefix="TASKFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Local-first storage (one file per key under data_dir)
    data_dir: Path = _data_dir
    document_key: str = DEFAULT_DOCUMENT_KEY
    webdav_config_key: str = WEBDAV_CONFIG_KEY

    # Remote document location relative to the WebDAV base URL
    webdav_file_path: str = WEBDAV_FILE_PATH
    webdav_timeout: float = WEBDAV_TIMEOUT

    # Where `taskflow export` writes snapshots when no path is given
    export_dir: Path = Path.home() / ".taskflow" / "exports"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_file: Path = _data_dir / "taskflow.log"


def get_settings() -> Settings:
    """Return application settings (singleton-like)."""
    return Settings()
