"""
Configuration Module
====================

Application settings and routing constants using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="ticket-routing", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/support",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Configuration ==========
    sla_defaults_path: Path = Field(
        default=Path("sla_defaults.yaml"),
        description="Path to the YAML file with default SLA rules"
    )
    sla_settings_key: str = Field(
        default="support.sla",
        description="System setting key holding SLA overrides"
    )
    sla_monitor_interval: int = Field(
        default=3600,
        description="Seconds between SLA sweeps",
        ge=60
    )
    sla_batch_size: int = Field(
        default=100,
        description="Tickets loaded per sweep page",
        ge=1,
        le=1000
    )

    # ========== Assignment Rules ==========
    assignment_rule_cache_ttl: float = Field(
        default=300.0,
        description="Seconds the cached assignment rules are trusted (0 disables caching)",
        ge=0
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

class Priority(str):
    """Ticket priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TicketStatus(str):
    """Ticket lifecycle statuses."""
    OPEN = "open"
    PENDING = "pending"
    RESOLVED = "resolved"
    CLOSED = "closed"


class AssigneeType(str):
    """Kinds of assignment targets a rule can route to."""
    USER = "user"
    TEAM = "team"


class AuditAction(str):
    """Actions recorded on the ticket audit trail."""
    AUTO_ASSIGNED = "auto_assigned"
    SLA_REASSIGNED = "sla_reassigned"
    PRIORITY_ESCALATED = "priority_escalated"


# ========== Lists for validation ==========

VALID_PRIORITIES = [Priority.LOW, Priority.MEDIUM, Priority.HIGH]

# Statuses walked by the SLA sweep
MONITORED_STATUSES = [TicketStatus.OPEN, TicketStatus.PENDING]

# low < medium < high
PRIORITY_RANK = {priority: rank for rank, priority in enumerate(VALID_PRIORITIES)}
