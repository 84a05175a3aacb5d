"""
Routing Domain Layer
====================

Domain layer for ticket routing and SLA escalation.

Contains:
- Entities: Ticket, AssignmentRule, AuditEntry and the assignment target variants
- Value Objects: SLAConfig, EscalationRule and duration parsing
- Domain Services: SLACalculator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from ticket_routing.routing.domain.entities import (
    Agent,
    AssigneeTarget,
    AssignmentOptions,
    AssignmentResult,
    AssignmentRule,
    AuditEntry,
    Team,
    TeamTarget,
    Ticket,
    UserTarget,
)
from ticket_routing.routing.domain.value_objects import (
    DEFAULT_SLA,
    EscalationRule,
    SLACalculator,
    SLAConfig,
    is_higher_priority,
    merge_config,
    normalize_overrides,
    parse_duration,
)

__all__ = [
    # Entities
    "Agent",
    "AssigneeTarget",
    "AssignmentOptions",
    "AssignmentResult",
    "AssignmentRule",
    "AuditEntry",
    "Team",
    "TeamTarget",
    "Ticket",
    "UserTarget",
    # Value Objects & Services
    "DEFAULT_SLA",
    "EscalationRule",
    "SLACalculator",
    "SLAConfig",
    "is_higher_priority",
    "merge_config",
    "normalize_overrides",
    "parse_duration",
]
