"""
Routing Runtime
===============

Composition root wiring repositories and services for one process.

The assignment rule cache lives here for the lifetime of the process;
everything session-bound is built per call.

Each call pins a snapshot of the rules before opening its session. A TTL
expiry (or a TTL of 0) mid-sweep would otherwise reload the rules through a
second session, which under SQLite's StaticPool shares the one connection
with the open sweep transaction.
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_routing.config import Settings
from ticket_routing.core import ResourceNotFoundException, ValidationException
from ticket_routing.routing.application import (
    AssignmentRuleAdminService, AssignmentRuleSet, AutoAssigner,
    SLAConfigurationService, SLAConfigUpdateDTO, SlaMonitor,
    SweepSummary, TicketAuditor,
)
from ticket_routing.routing.domain import AssignmentResult, SLAConfig
from ticket_routing.routing.infrastructure import (
    SQLAlchemyAssigneeDirectory, SQLAlchemyAssignmentRuleRepository,
    SQLAlchemyAuditRepository, SQLAlchemySettingsStore,
    SQLAlchemyTicketRepository, YAMLDefaultsProvider,
)
from ticket_routing.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class RoutingRuntime:
    """
    Entry points used by the scheduler and by ticket intake.

    Usage:
        runtime = RoutingRuntime(settings, get_session_context)
        summary = await runtime.run_sla_sweep()
        await runtime.ticket_opened(ticket_id)
    """

    def __init__(self, settings: Settings, session_factory: SessionFactory):
        self._settings = settings
        self._session_factory = session_factory
        self._defaults = YAMLDefaultsProvider(settings.sla_defaults_path)
        self.rule_set = AssignmentRuleSet(
            SQLAlchemyAssignmentRuleRepository(session_factory),
            ttl_seconds=settings.assignment_rule_cache_ttl,
        )

    async def run_sla_sweep(self) -> SweepSummary:
        """Run one SLA sweep in its own session."""
        # Rules load in their own session, before the sweep transaction starts
        rules = await self.rule_set.snapshot()

        async with self._session_factory() as session:
            tickets = SQLAlchemyTicketRepository(session)
            auditor = TicketAuditor(SQLAlchemyAuditRepository(session))
            monitor = SlaMonitor(
                ticket_repository=tickets,
                assigner=AutoAssigner(rules, tickets, auditor),
                auditor=auditor,
                config_service=self._config_service(session),
                batch_size=self._settings.sla_batch_size,
            )
            with log_latency(logger, "sla_sweep", batch_size=self._settings.sla_batch_size):
                return await monitor.run()

    async def ticket_opened(self, ticket_id: int) -> Optional[AssignmentResult]:
        """
        Auto-assign a newly opened ticket.

        Raises:
            ResourceNotFoundException: If the ticket does not exist
        """
        rules = await self.rule_set.snapshot()

        async with self._session_factory() as session:
            tickets = SQLAlchemyTicketRepository(session)
            ticket = await tickets.get_by_id(ticket_id)
            if ticket is None:
                raise ResourceNotFoundException("Ticket", ticket_id)

            assigner = AutoAssigner(
                rules, tickets, TicketAuditor(SQLAlchemyAuditRepository(session))
            )
            return await assigner.assign(ticket)

    async def resolve_sla_config(self) -> SLAConfig:
        async with self._session_factory() as session:
            return await self._config_service(session).resolve()

    async def update_sla_config(self, payload: Dict[str, Any]) -> SLAConfig:
        """
        Validate and store SLA overrides submitted by an administrator.

        Raises:
            ValidationException: If the payload is rejected
        """
        try:
            dto = SLAConfigUpdateDTO.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationException(
                "Invalid SLA configuration",
                {"errors": [error["msg"] for error in e.errors()]}
            ) from e

        async with self._session_factory() as session:
            config = await self._config_service(session).update(dto)

        logger.info("SLA configuration updated")
        return config

    def rule_admin(self) -> AssignmentRuleAdminService:
        """Assignment rule administration sharing this runtime's rule cache."""
        return AssignmentRuleAdminService(
            SQLAlchemyAssignmentRuleRepository(self._session_factory),
            SQLAlchemyAssigneeDirectory(self._session_factory),
            self.rule_set,
        )

    def _config_service(self, session: AsyncSession) -> SLAConfigurationService:
        return SLAConfigurationService(
            self._defaults,
            SQLAlchemySettingsStore(session),
            self._settings.sla_settings_key,
        )
