"""
Configuration management with schema validation.

Settings come from a YAML file (SESMINE_CONFIG, default config/settings.yaml)
whose string values may reference the environment as ${VAR} or ${VAR:default}.
A missing file is not an error: every section has defaults.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from ..utils.exceptions import ConfigError

DEFAULT_CONFIG_FILE = Path("config") / "settings.yaml"


class AppSettings(BaseModel):
    name: str = "SESMine Platform"
    version: str = "2.0.0"
    environment: str = "development"


class StorageSettings(BaseModel):
    data_dir: str = "data"
    lock_timeout_seconds: float = 30.0


class SessionSettings(BaseModel):
    timeout_hours: float = 24.0
    refresh_interval_minutes: float = 15.0
    cookie_name: str = "sesmine_session"


class CredentialSettings(BaseModel):
    min_length: int = 8
    max_bytes: int = 72  # bcrypt ignores/refuses anything longer
    min_character_classes: int = 3
    bcrypt_rounds: int = 12


class CatalogSettings(BaseModel):
    path: Optional[str] = None  # None -> packaged default catalog


class NotificationSettings(BaseModel):
    backend: str = Field(default="log", pattern="^(log|webhook)$")
    webhook_url: Optional[str] = None
    timeout_seconds: float = 10.0
    max_attempts: int = 3
    backoff_seconds: float = 0.5
    max_backoff_seconds: float = 8.0
    queue_size: int = 1000


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file_path: Optional[str] = None
    max_bytes: int = 10485760
    backup_count: int = 5


class SeedAdminSettings(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    sessions: SessionSettings = Field(default_factory=SessionSettings)
    credentials: CredentialSettings = Field(default_factory=CredentialSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    seed_admin: SeedAdminSettings = Field(default_factory=SeedAdminSettings)

    @property
    def data_path(self) -> Path:
        return Path(self.storage.data_dir)


def _substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR} / ${VAR:default} references."""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            var_expr = value[2:-1]
            if ":" in var_expr:
                var_name, default = var_expr.split(":", 1)
                return os.getenv(var_name.strip(), default.strip())
            return os.getenv(var_expr, value)
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load and validate settings, then apply SESMINE_DATA_DIR if set."""
    load_dotenv()

    config_path = Path(path or os.getenv("SESMINE_CONFIG") or DEFAULT_CONFIG_FILE)
    raw: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read settings from {config_path}: {e}")
        if not isinstance(raw, dict):
            raise ConfigError(f"Settings file {config_path} must contain a mapping")
    elif path is not None:
        raise ConfigError(f"Settings file not found: {config_path}")

    try:
        settings = Settings(**_substitute_env_vars(raw))
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid settings in {config_path}: {e}")

    data_dir = os.getenv("SESMINE_DATA_DIR")
    if data_dir:
        settings.storage.data_dir = data_dir
    return settings
