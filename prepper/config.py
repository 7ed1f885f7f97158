"""
Runtime configuration for Prepper.

Settings are read from environment variables (optionally seeded from a .env
file in the project root):

- PREPPER_DATA_DIR: directory holding primary.db and backup.db
- PREPPER_CURRICULUM_DIR: directory of per-topic curriculum artifacts
- PREPPER_STORAGE_QUOTA_BYTES: byte quota of the primary storage tier
- PREPPER_BACKUP_EXPIRY_DAYS: lifetime of backup-tier records
- PREPPER_RESOLVE_TIMEOUT: seconds allowed for one curriculum lookup
- PREPPER_LOG_LEVEL: root logging level
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


PROJECT_ROOT = Path(__file__).parent.parent

DEFAULT_DATA_DIR = Path.home() / ".prepper"
DEFAULT_CURRICULUM_DIR = PROJECT_ROOT / "data" / "topics"
DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024
DEFAULT_BACKUP_EXPIRY_DAYS = 30
DEFAULT_RESOLVE_TIMEOUT = 10.0

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class Settings(BaseModel):
    data_dir: Path = DEFAULT_DATA_DIR
    curriculum_dir: Path = DEFAULT_CURRICULUM_DIR
    storage_quota_bytes: int = Field(DEFAULT_QUOTA_BYTES, gt=0)
    backup_expiry_days: int = Field(DEFAULT_BACKUP_EXPIRY_DAYS, ge=1)
    resolve_timeout: float = Field(DEFAULT_RESOLVE_TIMEOUT, gt=0)
    log_level: str = "INFO"

    @field_validator("data_dir", "curriculum_dir")
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        return v.expanduser()

    @property
    def primary_db(self) -> Path:
        return self.data_dir / "primary.db"

    @property
    def backup_db(self) -> Path:
        return self.data_dir / "backup.db"


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env_file: Optional .env path (default: PROJECT_ROOT/.env)

    Returns:
        Validated Settings; unset variables fall back to defaults
    """
    load_dotenv(env_file or PROJECT_ROOT / ".env")

    overrides = {}
    env_map = {
        "PREPPER_DATA_DIR": "data_dir",
        "PREPPER_CURRICULUM_DIR": "curriculum_dir",
        "PREPPER_STORAGE_QUOTA_BYTES": "storage_quota_bytes",
        "PREPPER_BACKUP_EXPIRY_DAYS": "backup_expiry_days",
        "PREPPER_RESOLVE_TIMEOUT": "resolve_timeout",
        "PREPPER_LOG_LEVEL": "log_level",
    }
    for env_name, field_name in env_map.items():
        value = os.environ.get(env_name)
        if value:
            overrides[field_name] = value

    return Settings(**overrides)


def configure_logging(level: str | int = logging.INFO):
    """Configure root logging the same way for every entry point."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format=LOG_FORMAT)
