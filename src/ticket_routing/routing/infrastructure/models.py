"""
Routing Infrastructure Models
=============================

SQLAlchemy ORM models for the routing module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ticket_routing.infrastructure.database import Base
from ticket_routing.config import AssigneeType, Priority, TicketStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserModel(Base):
    """Agents that can own tickets. Maps to the 'users' table."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nickname: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class SupportTeamModel(Base):
    """Maps to the 'support_teams' table."""
    __tablename__ = "support_teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class TicketCategoryModel(Base):
    """Maps to the 'support_ticket_categories' table."""
    __tablename__ = "support_ticket_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class TicketModel(Base):
    """
    Database model for the Ticket entity.

    Maps to the 'support_tickets' table. At most one of ``assigned_to`` and
    ``support_team_id`` is set.
    """
    __tablename__ = "support_tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    priority: Mapped[str] = mapped_column(String(20), nullable=False, default=Priority.MEDIUM)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TicketStatus.OPEN, index=True)

    support_ticket_category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("support_ticket_categories.id", ondelete="SET NULL"), nullable=True
    )
    assigned_to: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    support_team_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("support_teams.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    priority_escalated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    assignee: Mapped[Optional[UserModel]] = relationship(lazy="joined")
    team: Mapped[Optional[SupportTeamModel]] = relationship(lazy="joined")


class AssignmentRuleModel(Base):
    """
    Database model for the AssignmentRule entity.

    Maps to the 'support_assignment_rules' table.
    """
    __tablename__ = "support_assignment_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    support_ticket_category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("support_ticket_categories.id", ondelete="SET NULL"), nullable=True
    )
    priority: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    assignee_type: Mapped[str] = mapped_column(String(20), nullable=False, default=AssigneeType.USER)
    assigned_to: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    support_team_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("support_teams.id", ondelete="SET NULL"), nullable=True
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    assignee: Mapped[Optional[UserModel]] = relationship(lazy="joined")
    team: Mapped[Optional[SupportTeamModel]] = relationship(lazy="joined")


class TicketAuditModel(Base):
    """
    Database model for the AuditEntry entity.

    Maps to the 'support_ticket_audits' table. Rows are never updated.
    """
    __tablename__ = "support_ticket_audits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    support_ticket_id: Mapped[int] = mapped_column(
        ForeignKey("support_tickets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    performed_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    context: Mapped[Optional[dict]] = mapped_column(JSON(none_as_null=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class SystemSettingModel(Base):
    """Key/value settings store. Maps to the 'system_settings' table."""
    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )
