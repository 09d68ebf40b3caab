"""Configuration management for the automation core."""

import os
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "RULEFLOW_"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StorageBackend(str, Enum):
    """Supported store implementations."""
    MEMORY = "memory"
    SQL = "sql"


class EngineConfig(BaseModel):
    """Automation core configuration settings."""

    # Storage settings
    storage_backend: StorageBackend = Field(default=StorageBackend.MEMORY, description="Store implementation")
    database_url: str = Field(
        default="sqlite:///./ruleflow.db",
        description="Database connection URL for the SQL stores"
    )
    database_echo: bool = Field(default=False, description="Enable SQLAlchemy query logging")
    store_retry_attempts: int = Field(default=3, description="Attempts for transient SQL store failures")

    # Compilation settings
    derived_rule_prefix: str = Field(default="wf-", description="ID namespace of workflow-derived rules")
    terminal_status: str = Field(default="closed", description="Status set when a transition reaches an end node")

    # Action settings
    default_notification_channel: str = Field(default="email", description="Channel used when a notify action names none")
    escalation_priority: str = Field(default="urgent", description="Priority set by the escalate action")

    # Audit settings
    audit_log_size: int = Field(default=500, description="Number of audit entries kept in memory")

    # Logging settings
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_structured: bool = Field(default=False, description="Emit JSON log lines")

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v):
        """Validate database URL format."""
        if not v:
            raise ValueError("Database URL cannot be empty")

        supported_schemes = ['sqlite', 'postgresql', 'mysql']
        scheme = v.split('://')[0].split('+')[0].lower()

        if scheme not in supported_schemes:
            raise ValueError(f"Unsupported database scheme: {scheme}. Supported: {supported_schemes}")

        return v

    @field_validator('derived_rule_prefix', 'terminal_status', 'default_notification_channel', 'escalation_priority')
    @classmethod
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Value cannot be empty")
        return v

    @field_validator('audit_log_size', 'store_retry_attempts')
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite database."""
        return self.database_url.lower().startswith("sqlite")

    def get_database_connect_args(self) -> Dict[str, Any]:
        """Get database connection arguments based on database type."""
        if self.is_sqlite:
            return {"check_same_thread": False}
        return {}

    @classmethod
    def from_env(cls) -> 'EngineConfig':
        """
        Create configuration from ``RULEFLOW_<FIELD>`` environment variables.

        Unset variables keep the field default; pydantic coerces the raw
        strings, so ``RULEFLOW_LOG_STRUCTURED=yes`` reads as ``True``.
        """
        values = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = raw
        return cls(**values)


# Global configuration instance
_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = EngineConfig.from_env()
    return _config


def load_config(config_file: Optional[str] = None) -> EngineConfig:
    """Load configuration from a .env file (if present) and the environment."""
    global _config

    from dotenv import load_dotenv
    if config_file and os.path.exists(config_file):
        load_dotenv(config_file)
    elif os.path.exists('.env'):
        load_dotenv('.env')

    _config = EngineConfig.from_env()

    return _config


def reset_config():
    """Reset the global configuration instance (mainly for testing)."""
    global _config
    _config = None


def get_testing_config() -> EngineConfig:
    """Get testing configuration."""
    return EngineConfig(
        storage_backend=StorageBackend.MEMORY,
        database_url="sqlite:///:memory:",
        log_level=LogLevel.WARNING,
        store_retry_attempts=1,
        audit_log_size=50,
    )
