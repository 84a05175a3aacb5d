"""
Routing Application Services
============================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

import asyncio
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional, Sequence, Union

from ticket_routing.core import ResourceNotFoundException, ValidationException
from ticket_routing.routing.domain import (
    Agent, AssignmentOptions, AssignmentResult, AssignmentRule,
    AuditEntry, Team, Ticket, UserTarget,
)
from ticket_routing.routing.application.dto import AssignmentRuleDTO, RuleReorderDTO
from ticket_routing.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def get_by_id(self, ticket_id: int) -> Optional[Ticket]:
        """Get ticket by ID with its assignee/team loaded."""

    @abstractmethod
    async def list_monitored(self, after_id: int, limit: int) -> List[Ticket]:
        """List open/pending tickets with id > after_id, ordered by id."""

    @abstractmethod
    async def save(self, ticket: Ticket) -> Ticket:
        """Persist the mutable ticket fields."""

    @abstractmethod
    def savepoint(self) -> AsyncContextManager[Any]:
        """Scope whose writes are discarded if the block raises."""


class IAssignmentRuleRepository(ABC):
    """Interface for assignment rule data access."""

    @abstractmethod
    async def list_ordered(self, active_only: bool = False) -> List[AssignmentRule]:
        """List rules by position then id, with their targets resolved."""

    @abstractmethod
    async def get(self, rule_id: int) -> Optional[AssignmentRule]:
        """Get a single rule."""

    @abstractmethod
    async def max_position(self) -> int:
        """Highest position in use (0 when there are no rules)."""

    @abstractmethod
    async def add(self, rule: AssignmentRule) -> AssignmentRule:
        """Insert a rule and return it with its generated id."""

    @abstractmethod
    async def update(self, rule: AssignmentRule) -> AssignmentRule:
        """Persist an existing rule."""

    @abstractmethod
    async def delete(self, rule_id: int) -> None:
        """Delete a rule."""

    @abstractmethod
    async def shift_positions_after(self, position: int) -> None:
        """Decrement the position of every rule placed after ``position``."""


class IAssigneeDirectory(ABC):
    """Interface for looking up routing targets."""

    @abstractmethod
    async def get_agent(self, user_id: int) -> Optional[Agent]:
        """Get an agent by user id."""

    @abstractmethod
    async def get_team(self, team_id: int) -> Optional[Team]:
        """Get a support team."""

    @abstractmethod
    async def category_exists(self, category_id: int) -> bool:
        """Check that a ticket category exists."""


class IAuditRepository(ABC):
    """Interface for the append-only audit trail."""

    @abstractmethod
    async def add(self, entry: AuditEntry) -> AuditEntry:
        """Append an entry and return it with its generated id."""


class ISettingsStore(ABC):
    """Interface for the key/value system settings store."""

    @abstractmethod
    async def get(self, key: str, default: Any = None) -> Any:
        """Get a stored value."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a value."""


class ISLADefaultsProvider(ABC):
    """Interface for the static SLA defaults."""

    @abstractmethod
    def get_defaults(self) -> Dict[str, Any]:
        """Get the default SLA configuration mapping."""


# ========== Application Services ==========

class AssignmentRuleSet:
    """
    Cached, ordered view of the active assignment rules.

    The cache is trusted for ``ttl_seconds`` and dropped explicitly by
    :meth:`invalidate` whenever an administrator edits a rule. A TTL of 0
    reads the repository on every call.
    """

    def __init__(
        self,
        repository: IAssignmentRuleRepository,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self._repository = repository
        self._ttl = ttl_seconds
        self._clock = clock
        self._rules: Optional[List[AssignmentRule]] = None
        self._loaded_at = 0.0
        self._lock = asyncio.Lock()

    async def rules(self) -> List[AssignmentRule]:
        """Active rules ordered by position, then id."""
        cached = self._fresh()
        if cached is not None:
            return cached

        async with self._lock:
            cached = self._fresh()
            if cached is not None:
                return cached

            loaded = await self._repository.list_ordered(active_only=True)
            rules = sorted(
                (rule for rule in loaded if rule.active),
                key=lambda rule: (rule.position, rule.id)
            )
            if self._ttl > 0:
                self._rules = rules
                self._loaded_at = self._clock()
            return list(rules)

    async def snapshot(self) -> "AssignmentRuleSet":
        """
        Rule set pinned to the current rules.

        The snapshot never goes back to the repository, so a long sweep sees
        one consistent rule list and opens no further sessions.
        """
        rules = await self.rules()
        pinned = AssignmentRuleSet(self._repository, ttl_seconds=float("inf"), clock=self._clock)
        pinned._rules = rules
        pinned._loaded_at = self._clock()
        return pinned

    def invalidate(self) -> None:
        """Forget the cached rules."""
        self._rules = None

    def _fresh(self) -> Optional[List[AssignmentRule]]:
        if self._rules is None:
            return None
        if self._clock() - self._loaded_at >= self._ttl:
            return None
        return list(self._rules)


class TicketAuditor:
    """Append-only writer of ticket audit entries."""

    def __init__(
        self,
        repository: IAuditRepository,
        clock: Callable[[], datetime] = utc_now
    ):
        self._repository = repository
        self._clock = clock

    async def log(
        self,
        ticket: Ticket,
        action: str,
        context: Optional[Dict[str, Any]] = None,
        actor_id: Optional[int] = None
    ) -> AuditEntry:
        """
        Record an action on a ticket.

        Args:
            ticket: Ticket the action was applied to
            action: Action name, e.g. "priority_escalated"
            context: Before/after details; an empty mapping is stored as None
            actor_id: User who performed the action, None for automation

        Returns:
            The stored AuditEntry
        """
        entry = AuditEntry(
            ticket_id=ticket.id,
            action=action,
            context=dict(context) if context else None,
            actor_id=actor_id,
            created_at=self._clock()
        )
        return await self._repository.add(entry)


class AutoAssigner:
    """
    Applies the first matching assignment rule to a ticket.

    Used once when a ticket is opened and by the SLA sweep to move stale
    tickets away from their current agent.
    """

    def __init__(
        self,
        rule_set: AssignmentRuleSet,
        ticket_repository: ITicketRepository,
        auditor: TicketAuditor,
        clock: Callable[[], datetime] = utc_now
    ):
        self._rule_set = rule_set
        self._ticket_repo = ticket_repository
        self._auditor = auditor
        self._clock = clock

    async def assign(
        self,
        ticket: Ticket,
        options: Optional[AssignmentOptions] = None
    ) -> Optional[AssignmentResult]:
        """
        Route a ticket with the first rule that matches it.

        Args:
            ticket: Ticket to route (mutated in place)
            options: Excluded agents, audit reason and extra audit context

        Returns:
            AssignmentResult, or None when no rule matches
        """
        options = options or AssignmentOptions()

        for rule in await self._rule_set.rules():
            if not rule.active:
                continue

            resolved = rule.resolved_target
            if resolved is None:
                continue

            if not rule.applies_to(ticket):
                continue

            if rule.targets_any_user(options.exclude):
                continue

            return await self._apply(ticket, rule, resolved, options)

        logger.debug(
            "No assignment rule matched",
            extra={"ticket_id": ticket.id, "reason": options.reason}
        )
        return None

    async def _apply(
        self,
        ticket: Ticket,
        rule: AssignmentRule,
        resolved: Union[Agent, Team],
        options: AssignmentOptions
    ) -> AssignmentResult:
        previous_assignee = ticket.assigned_to
        previous_team = ticket.team_id

        changed = ticket.assign(rule.target)
        if changed:
            ticket.touch(self._clock())
            await self._ticket_repo.save(ticket)

        ticket.load_assignee(resolved)

        if changed:
            context = dict(options.meta)
            context.update({
                "rule_id": rule.id,
                "assignee_type": rule.assignee_type,
                "assigned_to": ticket.assigned_to,
                "support_team_id": ticket.team_id,
                "previous_assignee_id": previous_assignee,
                "previous_team_id": previous_team,
            })
            await self._auditor.log(ticket, options.reason, context)

            logger.info(
                "Ticket assigned",
                extra={
                    "ticket_id": ticket.id,
                    "rule_id": rule.id,
                    "assignee_type": rule.assignee_type,
                    "target_id": rule.target.id,
                    "reason": options.reason,
                }
            )

        return AssignmentResult(
            target=rule.target,
            rule=rule,
            changed=changed,
            previous_assignee_id=previous_assignee,
            previous_team_id=previous_team,
            assignee=ticket.assignee,
            team=ticket.team,
        )


class AssignmentRuleAdminService:
    """
    Administrator operations on assignment rules.

    Every write drops the rule cache so routing picks up the change on the
    next assignment.
    """

    def __init__(
        self,
        repository: IAssignmentRuleRepository,
        directory: IAssigneeDirectory,
        rule_set: AssignmentRuleSet
    ):
        self._repository = repository
        self._directory = directory
        self._rule_set = rule_set

    async def list_rules(self) -> List[AssignmentRule]:
        """All rules, active or not, in evaluation order."""
        return await self._repository.list_ordered(active_only=False)

    async def create_rule(self, dto: AssignmentRuleDTO) -> AssignmentRule:
        """Create a rule at the end of the evaluation order."""
        await self._validate_references(dto)

        rule = AssignmentRule(
            id=0,
            target=dto.target(),
            position=await self._repository.max_position() + 1,
            active=dto.active,
            category_id=dto.support_ticket_category_id,
            priority=dto.priority,
        )
        created = await self._repository.add(rule)
        self._rule_set.invalidate()

        logger.info("Assignment rule created", extra={"rule_id": created.id})
        return created

    async def update_rule(self, rule_id: int, dto: AssignmentRuleDTO) -> AssignmentRule:
        """Replace the filters and target of an existing rule."""
        rule = await self._get_or_raise(rule_id)
        await self._validate_references(dto)

        rule.target = dto.target()
        rule.active = dto.active
        rule.category_id = dto.support_ticket_category_id
        rule.priority = dto.priority

        updated = await self._repository.update(rule)
        self._rule_set.invalidate()

        logger.info("Assignment rule updated", extra={"rule_id": rule_id})
        return updated

    async def delete_rule(self, rule_id: int) -> None:
        """Delete a rule and close the gap in the evaluation order."""
        rule = await self._get_or_raise(rule_id)

        await self._repository.delete(rule_id)
        await self._repository.shift_positions_after(rule.position)
        self._rule_set.invalidate()

        logger.info("Assignment rule deleted", extra={"rule_id": rule_id})

    async def reorder_rule(self, rule_id: int, dto: RuleReorderDTO) -> AssignmentRule:
        """
        Swap a rule with its neighbour.

        Args:
            rule_id: Rule to move
            dto: "up" moves the rule earlier, "down" moves it later
        """
        direction = dto.direction
        rule = await self._get_or_raise(rule_id)
        ordered = await self._repository.list_ordered(active_only=False)
        neighbour = _neighbour(ordered, rule, direction)
        if neighbour is None:
            edge = "top" if direction == "up" else "bottom"
            raise ValidationException(
                f"Rule is already at the {edge}.", {"direction": direction}
            )

        rule.position, neighbour.position = neighbour.position, rule.position

        await self._repository.update(neighbour)
        updated = await self._repository.update(rule)
        self._rule_set.invalidate()

        return updated

    async def _get_or_raise(self, rule_id: int) -> AssignmentRule:
        rule = await self._repository.get(rule_id)
        if rule is None:
            raise ResourceNotFoundException("AssignmentRule", rule_id)
        return rule

    async def _validate_references(self, dto: AssignmentRuleDTO) -> None:
        errors: Dict[str, str] = {}

        category_id = dto.support_ticket_category_id
        if category_id is not None and not await self._directory.category_exists(category_id):
            errors["support_ticket_category_id"] = "Unknown ticket category"

        target = dto.target()
        if isinstance(target, UserTarget):
            if await self._directory.get_agent(target.id) is None:
                errors["assigned_to"] = "Unknown user"
        elif await self._directory.get_team(target.id) is None:
            errors["support_team_id"] = "Unknown support team"

        if errors:
            raise ValidationException("Invalid assignment rule", errors)


def _neighbour(
    ordered: Sequence[AssignmentRule],
    rule: AssignmentRule,
    direction: str
) -> Optional[AssignmentRule]:
    """Nearest rule with a strictly lower ("up") or higher ("down") position."""
    if direction == "up":
        candidates = [c for c in ordered if c.position < rule.position]
        return max(candidates, key=lambda c: (c.position, c.id), default=None)

    candidates = [c for c in ordered if c.position > rule.position]
    return min(candidates, key=lambda c: (c.position, c.id), default=None)


__all__ = [
    "ITicketRepository",
    "IAssignmentRuleRepository",
    "IAssigneeDirectory",
    "IAuditRepository",
    "ISettingsStore",
    "ISLADefaultsProvider",
    "AssignmentRuleSet",
    "TicketAuditor",
    "AutoAssigner",
    "AssignmentRuleAdminService",
    "utc_now",
]
