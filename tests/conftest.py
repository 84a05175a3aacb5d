"""
pytest configuration and shared fixtures

In-memory implementations of the repository interfaces so the
application services can be exercised without a database.
"""
import copy
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from ticket_routing.routing.application import (
    AssignmentRuleSet, AutoAssigner, IAssigneeDirectory,
    IAssignmentRuleRepository, IAuditRepository, ISettingsStore,
    ISLADefaultsProvider, ITicketRepository, SLAConfigurationService,
    SlaMonitor, TicketAuditor,
)
from ticket_routing.routing.domain import (
    DEFAULT_SLA, Agent, AssignmentRule, AuditEntry, Team, TeamTarget,
    Ticket, UserTarget,
)

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


def hours_ago(hours: float) -> datetime:
    return NOW - timedelta(hours=hours)


def make_ticket(
    ticket_id: int,
    priority: str = "low",
    status: str = "open",
    created_hours_ago: float = 1,
    updated_hours_ago: Optional[float] = None,
    assignment=None,
    category_id: Optional[int] = None,
) -> Ticket:
    if updated_hours_ago is None:
        updated_hours_ago = created_hours_ago
    return Ticket(
        id=ticket_id,
        priority=priority,
        status=status,
        created_at=hours_ago(created_hours_ago),
        updated_at=hours_ago(updated_hours_ago),
        assignment=assignment,
        category_id=category_id,
    )


def user_rule(rule_id: int, user_id: int, position: int, **filters) -> AssignmentRule:
    return AssignmentRule(
        id=rule_id,
        target=UserTarget(user_id),
        position=position,
        assignee=Agent(id=user_id, name=f"agent-{user_id}"),
        **filters,
    )


def team_rule(rule_id: int, team_id: int, position: int, **filters) -> AssignmentRule:
    return AssignmentRule(
        id=rule_id,
        target=TeamTarget(team_id),
        position=position,
        team=Team(id=team_id, name=f"team-{team_id}"),
        **filters,
    )


# ========== Fakes ==========

class InMemoryTicketRepository(ITicketRepository):
    def __init__(self, tickets: Optional[List[Ticket]] = None):
        self.tickets: Dict[int, Ticket] = {t.id: t for t in tickets or []}
        self.saves: List[int] = []
        self.fail_on: set = set()

    def add(self, ticket: Ticket) -> Ticket:
        self.tickets[ticket.id] = ticket
        return ticket

    async def get_by_id(self, ticket_id: int) -> Optional[Ticket]:
        return self.tickets.get(ticket_id)

    async def list_monitored(self, after_id: int, limit: int) -> List[Ticket]:
        rows = sorted(
            (t for t in self.tickets.values() if t.is_monitored and t.id > after_id),
            key=lambda t: t.id
        )
        return [copy.copy(t) for t in rows[:limit]]

    async def save(self, ticket: Ticket) -> Ticket:
        if ticket.id in self.fail_on:
            raise RuntimeError(f"storage failure for ticket {ticket.id}")
        self.tickets[ticket.id] = copy.copy(ticket)
        self.saves.append(ticket.id)
        return ticket

    @asynccontextmanager
    async def savepoint(self):
        snapshot = {k: copy.copy(v) for k, v in self.tickets.items()}
        try:
            yield
        except Exception:
            self.tickets = snapshot
            raise


class InMemoryRuleRepository(IAssignmentRuleRepository):
    def __init__(self, rules: Optional[List[AssignmentRule]] = None):
        self.rules: Dict[int, AssignmentRule] = {r.id: r for r in rules or []}
        self.list_calls = 0

    async def list_ordered(self, active_only: bool = False) -> List[AssignmentRule]:
        self.list_calls += 1
        rules = sorted(self.rules.values(), key=lambda r: (r.position, r.id))
        if active_only:
            rules = [r for r in rules if r.active]
        return [copy.copy(r) for r in rules]

    async def get(self, rule_id: int) -> Optional[AssignmentRule]:
        rule = self.rules.get(rule_id)
        return copy.copy(rule) if rule else None

    async def max_position(self) -> int:
        return max((r.position for r in self.rules.values()), default=0)

    async def add(self, rule: AssignmentRule) -> AssignmentRule:
        rule = copy.copy(rule)
        rule.id = max(self.rules, default=0) + 1
        self.rules[rule.id] = rule
        return copy.copy(rule)

    async def update(self, rule: AssignmentRule) -> AssignmentRule:
        self.rules[rule.id] = copy.copy(rule)
        return copy.copy(rule)

    async def delete(self, rule_id: int) -> None:
        del self.rules[rule_id]

    async def shift_positions_after(self, position: int) -> None:
        for rule in self.rules.values():
            if rule.position > position:
                rule.position -= 1


class InMemoryDirectory(IAssigneeDirectory):
    def __init__(self, agents=(), teams=(), categories=()):
        self.agents = {a.id: a for a in agents}
        self.teams = {t.id: t for t in teams}
        self.categories = set(categories)

    async def get_agent(self, user_id: int) -> Optional[Agent]:
        return self.agents.get(user_id)

    async def get_team(self, team_id: int) -> Optional[Team]:
        return self.teams.get(team_id)

    async def category_exists(self, category_id: int) -> bool:
        return category_id in self.categories


class InMemoryAuditRepository(IAuditRepository):
    def __init__(self):
        self.entries: List[AuditEntry] = []

    async def add(self, entry: AuditEntry) -> AuditEntry:
        stored = AuditEntry(
            id=len(self.entries) + 1,
            ticket_id=entry.ticket_id,
            action=entry.action,
            context=entry.context,
            actor_id=entry.actor_id,
            created_at=entry.created_at,
        )
        self.entries.append(stored)
        return stored

    def actions(self, ticket_id: Optional[int] = None) -> List[str]:
        return [e.action for e in self.entries if ticket_id is None or e.ticket_id == ticket_id]


class InMemorySettingsStore(ISettingsStore):
    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self.values = dict(values or {})

    async def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        self.values[key] = value


class StaticDefaultsProvider(ISLADefaultsProvider):
    def __init__(self, defaults: Optional[Dict[str, Any]] = None):
        self.defaults = defaults if defaults is not None else DEFAULT_SLA

    def get_defaults(self) -> Dict[str, Any]:
        return self.defaults


# ========== Fixtures ==========

@pytest.fixture
def ticket_repo():
    return InMemoryTicketRepository()


@pytest.fixture
def rule_repo():
    return InMemoryRuleRepository()


@pytest.fixture
def audit_repo():
    return InMemoryAuditRepository()


@pytest.fixture
def settings_store():
    return InMemorySettingsStore()


@pytest.fixture
def rule_set(rule_repo):
    return AssignmentRuleSet(rule_repo, ttl_seconds=300)


@pytest.fixture
def auditor(audit_repo):
    return TicketAuditor(audit_repo, clock=fixed_clock)


@pytest.fixture
def assigner(rule_set, ticket_repo, auditor):
    return AutoAssigner(rule_set, ticket_repo, auditor, clock=fixed_clock)


@pytest.fixture
def config_service(settings_store):
    return SLAConfigurationService(StaticDefaultsProvider(), settings_store)


@pytest.fixture
def monitor(ticket_repo, assigner, auditor, config_service):
    return SlaMonitor(
        ticket_repository=ticket_repo,
        assigner=assigner,
        auditor=auditor,
        config_service=config_service,
        batch_size=2,
        clock=fixed_clock,
    )
