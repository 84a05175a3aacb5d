"""
SLA Monitoring Services
=======================

Periodic sweep over open and pending tickets:

1. Escalate the priority of tickets that aged past their escalation threshold
2. Hand stale agent-assigned tickets to the next matching rule

Run by the scheduler; each ticket is processed in its own savepoint so one
bad ticket does not abort the sweep.
"""

import uuid
from datetime import datetime
from typing import Callable, Optional

from ticket_routing.config import AuditAction
from ticket_routing.routing.domain import (
    AssignmentOptions, SLACalculator, SLAConfig, Ticket,
    merge_config, normalize_overrides,
)
from ticket_routing.routing.application.dto import SLAConfigUpdateDTO, SweepSummary
from ticket_routing.routing.application.services import (
    AutoAssigner, ISettingsStore, ISLADefaultsProvider,
    ITicketRepository, TicketAuditor, utc_now,
)
from ticket_routing.shared.infrastructure.logging import get_run_logger

DEFAULT_SETTINGS_KEY = "support.sla"


class SLAConfigurationService:
    """
    Resolves the SLA configuration from static defaults and stored overrides.

    Nothing is memoised: every call reads the store again so that a sweep
    always sees the latest administrator edits.
    """

    def __init__(
        self,
        defaults_provider: ISLADefaultsProvider,
        settings_store: ISettingsStore,
        settings_key: str = DEFAULT_SETTINGS_KEY
    ):
        self._defaults_provider = defaults_provider
        self._store = settings_store
        self._key = settings_key

    async def resolve(self) -> SLAConfig:
        """Merged configuration (defaults overridden by stored values)."""
        overrides = await self._store.get(self._key, {})
        return merge_config(self._defaults_provider.get_defaults(), overrides)

    async def update(self, dto: SLAConfigUpdateDTO) -> SLAConfig:
        """Store a validated override blob covering every priority."""
        await self._store.set(self._key, normalize_overrides(dto.to_overrides()))
        return await self.resolve()


class SlaMonitor:
    """
    Batch escalation and reassignment sweep.

    Not safe to run concurrently with itself; the scheduler enforces a
    single instance.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        assigner: AutoAssigner,
        auditor: TicketAuditor,
        config_service: SLAConfigurationService,
        batch_size: int = 100,
        clock: Callable[[], datetime] = utc_now
    ):
        self._ticket_repo = ticket_repository
        self._assigner = assigner
        self._auditor = auditor
        self._config_service = config_service
        self._batch_size = batch_size
        self._clock = clock

    async def run(self) -> SweepSummary:
        """
        Walk every open/pending ticket once.

        Returns:
            SweepSummary with the number of tickets scanned, escalated,
            reassigned and failed
        """
        summary = SweepSummary(run_id=uuid.uuid4().hex)
        logger = get_run_logger(__name__, summary.run_id)

        config = await self._config_service.resolve()
        last_id = 0

        while True:
            tickets = await self._ticket_repo.list_monitored(last_id, self._batch_size)
            if not tickets:
                break

            for ticket in tickets:
                summary.scanned += 1
                try:
                    async with self._ticket_repo.savepoint():
                        escalated, reassigned = await self._process(ticket, config, logger)
                except Exception:
                    summary.failed += 1
                    logger.exception(
                        "SLA processing failed for ticket",
                        extra={"ticket_id": ticket.id}
                    )
                    continue

                summary.escalated += int(escalated)
                summary.reassigned += int(reassigned)

            last_id = tickets[-1].id
            if len(tickets) < self._batch_size:
                break

        logger.info("SLA sweep finished", extra=summary.model_dump())
        return summary

    async def _process(self, ticket: Ticket, config: SLAConfig, logger) -> tuple[bool, bool]:
        # Reassignment is judged on the ticket as it stood before escalation
        priority_before = ticket.priority
        updated_before = ticket.updated_at

        escalated = await self._maybe_escalate(ticket, config, logger)
        reassigned = await self._maybe_reassign(
            ticket, config, priority_before, updated_before, logger
        )
        return escalated, reassigned

    async def _maybe_escalate(self, ticket: Ticket, config: SLAConfig, logger) -> bool:
        rule = config.escalation_for(ticket.priority)
        if rule is None:
            return False

        target = rule.target_for(ticket.priority)
        if target is None:
            return False

        now = self._clock()
        cutoff = SLACalculator.cutoff(rule.after, now)
        if cutoff is None:
            logger.warning(
                "Ignoring escalation rule with malformed threshold",
                extra={"priority": ticket.priority, "threshold": rule.after}
            )
            return False

        if not SLACalculator.has_elapsed(ticket.escalation_clock_start, cutoff):
            return False

        previous = ticket.priority
        ticket.escalate(target, now)
        ticket.touch(now)
        await self._ticket_repo.save(ticket)

        await self._auditor.log(ticket, AuditAction.PRIORITY_ESCALATED, {
            "from": previous,
            "to": target,
            "threshold": rule.after,
        })

        logger.info(
            "Ticket priority escalated",
            extra={"ticket_id": ticket.id, "from": previous, "to": target}
        )
        return True

    async def _maybe_reassign(
        self,
        ticket: Ticket,
        config: SLAConfig,
        priority: str,
        last_updated: Optional[datetime],
        logger
    ) -> bool:
        current_agent = ticket.assigned_to
        if current_agent is None:
            return False

        threshold = config.reassign_threshold_for(priority or ticket.priority)
        if not threshold:
            return False

        cutoff = SLACalculator.cutoff(threshold, self._clock())
        if cutoff is None:
            logger.warning(
                "Ignoring reassignment threshold that cannot be parsed",
                extra={"priority": priority, "threshold": threshold}
            )
            return False

        if not SLACalculator.has_elapsed(last_updated, cutoff):
            return False

        result = await self._assigner.assign(ticket, AssignmentOptions(
            exclude=frozenset({current_agent}),
            reason=AuditAction.SLA_REASSIGNED,
            meta={"threshold": threshold},
        ))

        if result is None:
            logger.info(
                "No alternative assignee for stale ticket",
                extra={"ticket_id": ticket.id, "assigned_to": current_agent}
            )
            return False

        return result.changed
