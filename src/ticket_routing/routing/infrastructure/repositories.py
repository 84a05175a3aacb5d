"""
Routing Infrastructure Repositories
===================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database. ORM rows never leave this module; callers get
domain dataclasses.
"""

from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_routing.config import AssigneeType, MONITORED_STATUSES
from ticket_routing.core import ConfigurationException, ResourceNotFoundException
from ticket_routing.routing.application import (
    IAssigneeDirectory, IAssignmentRuleRepository, IAuditRepository,
    ISettingsStore, ISLADefaultsProvider, ITicketRepository,
)
from ticket_routing.routing.domain import (
    DEFAULT_SLA, Agent, AssignmentRule, AuditEntry, Team, TeamTarget,
    Ticket, UserTarget,
)
from ticket_routing.routing.infrastructure.models import (
    AssignmentRuleModel, SupportTeamModel, SystemSettingModel,
    TicketAuditModel, TicketCategoryModel, TicketModel, UserModel,
)
from ticket_routing.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


# ========== Row mapping ==========

def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _to_agent(model: Optional[UserModel]) -> Optional[Agent]:
    if model is None:
        return None
    return Agent(id=model.id, name=model.nickname, email=model.email)


def _to_team(model: Optional[SupportTeamModel]) -> Optional[Team]:
    if model is None:
        return None
    return Team(id=model.id, name=model.name)


def _to_ticket(model: TicketModel) -> Ticket:
    assignment = None
    if model.assigned_to is not None:
        assignment = UserTarget(model.assigned_to)
    elif model.support_team_id is not None:
        assignment = TeamTarget(model.support_team_id)

    return Ticket(
        id=model.id,
        priority=model.priority,
        status=model.status,
        created_at=_as_utc(model.created_at),
        updated_at=_as_utc(model.updated_at),
        assignment=assignment,
        category_id=model.support_ticket_category_id,
        priority_escalated_at=_as_utc(model.priority_escalated_at),
        assignee=_to_agent(model.assignee) if model.assigned_to is not None else None,
        team=_to_team(model.team) if model.assigned_to is None else None,
    )


def _to_rule(model: AssignmentRuleModel) -> AssignmentRule:
    if model.assignee_type == AssigneeType.TEAM:
        target = TeamTarget(model.support_team_id) if model.support_team_id is not None else None
    else:
        target = UserTarget(model.assigned_to) if model.assigned_to is not None else None

    return AssignmentRule(
        id=model.id,
        target=target,
        position=model.position,
        active=bool(model.active),
        category_id=model.support_ticket_category_id,
        priority=model.priority,
        assignee=_to_agent(model.assignee),
        team=_to_team(model.team),
    )


def _apply_rule(model: AssignmentRuleModel, rule: AssignmentRule) -> None:
    model.support_ticket_category_id = rule.category_id
    model.priority = rule.priority
    model.position = rule.position
    model.active = rule.active
    model.assignee_type = rule.assignee_type or AssigneeType.USER
    model.assigned_to = rule.target.id if isinstance(rule.target, UserTarget) else None
    model.support_team_id = rule.target.id if isinstance(rule.target, TeamTarget) else None


# ========== Tickets ==========

class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Bound to one session; the caller owns commit/rollback.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, ticket_id: int) -> Optional[Ticket]:
        model = await self._session.get(TicketModel, ticket_id)
        return _to_ticket(model) if model else None

    async def list_monitored(self, after_id: int, limit: int) -> List[Ticket]:
        stmt = (
            select(TicketModel)
            .where(
                TicketModel.status.in_(MONITORED_STATUSES),
                TicketModel.id > after_id,
            )
            .order_by(TicketModel.id.asc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [_to_ticket(model) for model in result.scalars().all()]

    async def save(self, ticket: Ticket) -> Ticket:
        model = await self._session.get(TicketModel, ticket.id)
        if model is None:
            raise ResourceNotFoundException("Ticket", ticket.id)

        model.priority = ticket.priority
        model.status = ticket.status
        model.assigned_to = ticket.assigned_to
        model.support_team_id = ticket.team_id
        model.updated_at = ticket.updated_at
        model.priority_escalated_at = ticket.priority_escalated_at

        await self._session.flush()
        return ticket

    def savepoint(self):
        return self._session.begin_nested()


# ========== Assignment rules ==========

class SQLAlchemyAssignmentRuleRepository(IAssignmentRuleRepository):
    """
    SQLAlchemy implementation of assignment rule repository.

    Opens a short-lived session per call so it can back the process-wide
    rule cache independently of any request or sweep session.
    """

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def list_ordered(self, active_only: bool = False) -> List[AssignmentRule]:
        stmt = select(AssignmentRuleModel).order_by(
            AssignmentRuleModel.position.asc(), AssignmentRuleModel.id.asc()
        )
        if active_only:
            stmt = stmt.where(AssignmentRuleModel.active.is_(True))

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_to_rule(model) for model in result.scalars().all()]

    async def get(self, rule_id: int) -> Optional[AssignmentRule]:
        async with self._session_factory() as session:
            model = await session.get(AssignmentRuleModel, rule_id)
            return _to_rule(model) if model else None

    async def max_position(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.max(AssignmentRuleModel.position)))
            return int(result.scalar_one_or_none() or 0)

    async def add(self, rule: AssignmentRule) -> AssignmentRule:
        async with self._session_factory() as session:
            model = AssignmentRuleModel()
            _apply_rule(model, rule)
            session.add(model)
            await session.flush()
            rule_id = model.id

        return await self.get(rule_id)

    async def update(self, rule: AssignmentRule) -> AssignmentRule:
        async with self._session_factory() as session:
            model = await session.get(AssignmentRuleModel, rule.id)
            if model is None:
                raise ResourceNotFoundException("AssignmentRule", rule.id)
            _apply_rule(model, rule)
            await session.flush()

        return await self.get(rule.id)

    async def delete(self, rule_id: int) -> None:
        async with self._session_factory() as session:
            model = await session.get(AssignmentRuleModel, rule_id)
            if model is None:
                raise ResourceNotFoundException("AssignmentRule", rule_id)
            await session.delete(model)

    async def shift_positions_after(self, position: int) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(AssignmentRuleModel)
                .where(AssignmentRuleModel.position > position)
                .values(position=AssignmentRuleModel.position - 1)
            )


# ========== Directory ==========

class SQLAlchemyAssigneeDirectory(IAssigneeDirectory):
    """Looks up agents, teams and categories, one short-lived session per call."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def get_agent(self, user_id: int) -> Optional[Agent]:
        async with self._session_factory() as session:
            return _to_agent(await session.get(UserModel, user_id))

    async def get_team(self, team_id: int) -> Optional[Team]:
        async with self._session_factory() as session:
            return _to_team(await session.get(SupportTeamModel, team_id))

    async def category_exists(self, category_id: int) -> bool:
        async with self._session_factory() as session:
            return await session.get(TicketCategoryModel, category_id) is not None


# ========== Audit trail ==========

class SQLAlchemyAuditRepository(IAuditRepository):
    """Append-only writer for support_ticket_audits."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, entry: AuditEntry) -> AuditEntry:
        model = TicketAuditModel(
            support_ticket_id=entry.ticket_id,
            performed_by=entry.actor_id,
            action=entry.action,
            context=entry.context or None,
            created_at=entry.created_at,
        )
        self._session.add(model)
        await self._session.flush()

        return AuditEntry(
            id=model.id,
            ticket_id=entry.ticket_id,
            action=entry.action,
            context=entry.context or None,
            actor_id=entry.actor_id,
            created_at=entry.created_at,
        )

    async def list_for_ticket(self, ticket_id: int) -> List[AuditEntry]:
        """Audit timeline of a ticket, oldest first."""
        stmt = (
            select(TicketAuditModel)
            .where(TicketAuditModel.support_ticket_id == ticket_id)
            .order_by(TicketAuditModel.id.asc())
        )
        result = await self._session.execute(stmt)
        return [
            AuditEntry(
                id=model.id,
                ticket_id=model.support_ticket_id,
                action=model.action,
                context=model.context,
                actor_id=model.performed_by,
                created_at=_as_utc(model.created_at),
            )
            for model in result.scalars().all()
        ]


# ========== Configuration ==========

class SQLAlchemySettingsStore(ISettingsStore):
    """Key/value store backed by system_settings."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, key: str, default: Any = None) -> Any:
        model = await self._session.get(SystemSettingModel, key)
        if model is None or model.value is None:
            return default
        return model.value

    async def set(self, key: str, value: Any) -> None:
        model = await self._session.get(SystemSettingModel, key)
        if model is None:
            self._session.add(SystemSettingModel(key=key, value=value))
        else:
            model.value = value
        await self._session.flush()


class YAMLDefaultsProvider(ISLADefaultsProvider):
    """
    SLA defaults loaded from YAML.

    The file is read on every call so edits apply to the next sweep
    without a restart. A missing file falls back to the built-in defaults.
    """

    def __init__(self, path: Path):
        self._path = Path(path)

    def get_defaults(self) -> Dict[str, Any]:
        if not self._path.exists():
            logger.debug("SLA defaults file not found, using built-in defaults",
                         extra={"path": str(self._path)})
            return DEFAULT_SLA

        with open(self._path, "r") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationException(
                    "Invalid SLA defaults file", source=str(self._path),
                    details={"error": str(e)}
                ) from e

        if not isinstance(data, dict):
            raise ConfigurationException("SLA defaults must be a mapping", source=str(self._path))

        return data.get("sla", data)
