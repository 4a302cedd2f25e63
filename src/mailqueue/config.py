"""Configuration management for mailqueue."""

import json
from pathlib import Path
from typing import Optional, Dict, Any
from functools import lru_cache

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class DatabaseConfig(BaseModel):
    """Database configuration."""

    url: str = Field("sqlite:///mailqueue.db", description="SQLAlchemy database URL")
    echo: bool = Field(False, description="Enable SQL query logging")


class QueueConfig(BaseModel):
    """Queue processing configuration."""

    processing_interval_minutes: float = Field(2, gt=0, description="Minutes between scheduler cycles")
    batch_size: int = Field(10, ge=1, description="Maximum entries dispatched per cycle")
    max_retries: int = Field(3, ge=1, description="Default failed attempts before an entry is marked failed")
    default_priority: int = Field(2, ge=1, le=3, description="Priority used when a producer gives none")
    backoff_base_minutes: float = Field(5, gt=0, description="Backoff base; delay is base * 2**retry_count")


class SmtpConfig(BaseModel):
    """SMTP transport configuration."""

    host: str = Field("localhost", description="SMTP server host")
    port: int = Field(587, description="SMTP server port")
    username: Optional[str] = None
    password: Optional[str] = None
    from_email: str = Field("noreply@documentverification.com", description="Envelope sender")
    from_name: str = Field("Document Verification System", description="Display name of the sender")
    use_tls: bool = Field(True, description="Issue STARTTLS after connecting")
    use_ssl: bool = Field(False, description="Connect with implicit TLS (port 465)")
    timeout: float = Field(30.0, description="Socket timeout in seconds")


class SendGridConfig(BaseModel):
    """SendGrid configuration."""

    api_key: Optional[str] = Field(None, description="SendGrid API key")
    from_email: Optional[str] = None
    from_name: Optional[str] = None


class ApiConfig(BaseModel):
    """Operator HTTP API configuration."""

    host: str = "0.0.0.0"
    port: int = 5000
    debug: bool = False


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field("INFO", description="Logging level")
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )
    file_path: Optional[str] = Field(None, description="Path to log file")
    max_file_size: int = Field(10 * 1024 * 1024, description="Maximum log file size in bytes")
    backup_count: int = Field(5, description="Number of backup log files to keep")
    console_output: bool = Field(True, description="Enable console logging")


class Settings(BaseSettings):
    """Main application settings."""

    app_name: str = Field("mailqueue", description="Application name")
    debug: bool = Field(False, description="Enable debug mode")
    transport: str = Field("smtp", description="Transport adapter: smtp, sendgrid or console")

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    smtp: SmtpConfig = Field(default_factory=SmtpConfig)
    sendgrid: SendGridConfig = Field(default_factory=SendGridConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="MAILQUEUE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment variables override values passed in from a config file
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @field_validator("transport")
    @classmethod
    def _known_transport(cls, value: str) -> str:
        value = value.lower()
        if value not in ("smtp", "sendgrid", "console"):
            raise ValueError(f"Unknown transport: {value}")
        return value


def _load_config_file(config_file: Path) -> Dict[str, Any]:
    """Load configuration from YAML or JSON file."""
    if not config_file.exists():
        return {}

    with open(config_file, 'r') as f:
        if config_file.suffix.lower() in ['.yaml', '.yml']:
            return yaml.safe_load(f) or {}
        elif config_file.suffix.lower() == '.json':
            return json.load(f)
        else:
            raise ConfigurationError(f"Unsupported config file format: {config_file.suffix}")


@lru_cache()
def load_settings(
    config_dir: Optional[Path] = None,
    env_file: Optional[str] = None,
    config_file: Optional[str] = None
) -> Settings:
    """
    Load application settings from multiple sources.

    Sources are loaded in order of precedence (later sources override earlier):
    1. Default values
    2. Configuration file (YAML/JSON)
    3. Environment file (.env)
    4. Environment variables

    Args:
        config_dir: Directory containing config files (default: current directory)
        env_file: Path to environment file (default: .env in config_dir)
        config_file: Path to configuration file (default: config.yaml in config_dir)

    Returns:
        Loaded settings instance
    """
    if config_dir is None:
        config_dir = Path.cwd()

    env_path = Path(env_file) if env_file else config_dir / ".env"
    config_path = Path(config_file) if config_file else config_dir / "config.yaml"

    if env_path.exists():
        # Existing environment variables win over the .env file
        load_dotenv(env_path, override=False)

    file_config = _load_config_file(config_path)

    try:
        return Settings(**file_config)
    except ValidationError as e:
        raise ConfigurationError(f"Failed to load configuration: {e}", cause=e)
