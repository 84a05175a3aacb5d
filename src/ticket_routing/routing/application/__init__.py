"""
Routing Application Layer
=========================

Application layer for ticket routing and SLA escalation.

Contains:
- Services: Orchestrate business logic and coordinate with repositories
- DTOs: Validation of administrator input and job results

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from ticket_routing.routing.application.dto import (
    AssignmentRuleDTO,
    EscalationInput,
    RuleReorderDTO,
    SLAConfigUpdateDTO,
    SweepSummary,
)
from ticket_routing.routing.application.services import (
    AssignmentRuleAdminService,
    AssignmentRuleSet,
    AutoAssigner,
    IAssigneeDirectory,
    IAssignmentRuleRepository,
    IAuditRepository,
    ISettingsStore,
    ISLADefaultsProvider,
    ITicketRepository,
    TicketAuditor,
    utc_now,
)
from ticket_routing.routing.application.monitoring import (
    SLAConfigurationService,
    SlaMonitor,
)

__all__ = [
    # DTOs
    "AssignmentRuleDTO",
    "EscalationInput",
    "RuleReorderDTO",
    "SLAConfigUpdateDTO",
    "SweepSummary",
    # Services
    "AssignmentRuleAdminService",
    "AssignmentRuleSet",
    "AutoAssigner",
    "SLAConfigurationService",
    "SlaMonitor",
    "TicketAuditor",
    "utc_now",
    # Repository Interfaces
    "IAssigneeDirectory",
    "IAssignmentRuleRepository",
    "IAuditRepository",
    "ISettingsStore",
    "ISLADefaultsProvider",
    "ITicketRepository",
]
