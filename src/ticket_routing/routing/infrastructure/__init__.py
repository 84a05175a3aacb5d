"""
Routing Infrastructure Layer
============================

Infrastructure implementations for ticket routing:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer and the YAML defaults provider
- External: Scheduler for the periodic SLA sweep
"""

from ticket_routing.routing.infrastructure.models import (
    AssignmentRuleModel,
    SupportTeamModel,
    SystemSettingModel,
    TicketAuditModel,
    TicketCategoryModel,
    TicketModel,
    UserModel,
)
from ticket_routing.routing.infrastructure.repositories import (
    SQLAlchemyAssigneeDirectory,
    SQLAlchemyAssignmentRuleRepository,
    SQLAlchemyAuditRepository,
    SQLAlchemySettingsStore,
    SQLAlchemyTicketRepository,
    YAMLDefaultsProvider,
)
from ticket_routing.routing.infrastructure.external import SLAScheduler

__all__ = [
    "AssignmentRuleModel",
    "SupportTeamModel",
    "SystemSettingModel",
    "TicketAuditModel",
    "TicketCategoryModel",
    "TicketModel",
    "UserModel",
    "SQLAlchemyAssigneeDirectory",
    "SQLAlchemyAssignmentRuleRepository",
    "SQLAlchemyAuditRepository",
    "SQLAlchemySettingsStore",
    "SQLAlchemyTicketRepository",
    "YAMLDefaultsProvider",
    "SLAScheduler",
]
