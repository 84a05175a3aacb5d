"""
Routing Domain Entities
=======================

Pure Python domain entities for ticket routing and SLA escalation.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, FrozenSet, Iterable, Optional, Union

from ticket_routing.config import (
    AssigneeType, AuditAction, MONITORED_STATUSES
)


# ========== Assignment targets ==========

@dataclass(frozen=True)
class UserTarget:
    """Route to a single agent."""
    id: int
    type: ClassVar[str] = AssigneeType.USER


@dataclass(frozen=True)
class TeamTarget:
    """Route to a support team."""
    id: int
    type: ClassVar[str] = AssigneeType.TEAM


AssigneeTarget = Union[UserTarget, TeamTarget]


@dataclass(frozen=True)
class Agent:
    """Support agent a ticket can be assigned to."""
    id: int
    name: str
    email: Optional[str] = None


@dataclass(frozen=True)
class Team:
    """Support team a ticket can be routed to."""
    id: int
    name: str


# ========== Ticket ==========

@dataclass
class Ticket:
    """
    Support ticket as seen by the routing engine.

    The assignment is a single tagged value, so a ticket is never owned
    by an agent and a team at the same time.
    """

    id: int
    priority: str
    status: str
    created_at: datetime
    updated_at: datetime

    assignment: Optional[AssigneeTarget] = None
    category_id: Optional[int] = None

    # Last automatic priority escalation
    priority_escalated_at: Optional[datetime] = None

    # Loaded relations, refreshed when the assignment changes
    assignee: Optional[Agent] = None
    team: Optional[Team] = None

    @property
    def assigned_to(self) -> Optional[int]:
        """Assigned agent id, if the ticket is routed to an agent."""
        if isinstance(self.assignment, UserTarget):
            return self.assignment.id
        return None

    @property
    def team_id(self) -> Optional[int]:
        """Assigned team id, if the ticket is routed to a team."""
        if isinstance(self.assignment, TeamTarget):
            return self.assignment.id
        return None

    @property
    def is_monitored(self) -> bool:
        """Check if the SLA sweep should look at this ticket."""
        return self.status in MONITORED_STATUSES

    @property
    def escalation_clock_start(self) -> datetime:
        """Point in time the escalation threshold is measured from."""
        if self.priority_escalated_at and self.priority_escalated_at > self.created_at:
            return self.priority_escalated_at
        return self.created_at

    def assign(self, target: AssigneeTarget) -> bool:
        """
        Route the ticket to ``target``.

        Returns:
            True if the assignment actually changed
        """
        if self.assignment == target:
            return False
        self.assignment = target
        return True

    def load_assignee(self, resolved: Union[Agent, Team]) -> None:
        """Refresh the cached relation objects after an assignment."""
        if isinstance(resolved, Agent):
            self.assignee, self.team = resolved, None
        else:
            self.assignee, self.team = None, resolved

    def escalate(self, priority: str, timestamp: datetime) -> None:
        """Raise the ticket priority."""
        self.priority = priority
        self.priority_escalated_at = timestamp

    def touch(self, timestamp: datetime) -> None:
        """Mark the ticket as updated."""
        self.updated_at = timestamp


# ========== Assignment rules ==========

@dataclass
class AssignmentRule:
    """
    Ordered routing directive maintained by administrators.

    ``target`` is None when the rule row no longer references anything
    (e.g. its team was deleted). ``assignee``/``team`` hold the resolved
    target loaded with the rule; a rule whose target cannot be resolved
    never matches.
    """

    id: int
    target: Optional[AssigneeTarget]
    position: int = 0
    active: bool = True
    category_id: Optional[int] = None
    priority: Optional[str] = None

    assignee: Optional[Agent] = None
    team: Optional[Team] = None

    @property
    def assignee_type(self) -> Optional[str]:
        return self.target.type if self.target is not None else None

    @property
    def resolved_target(self) -> Optional[Union[Agent, Team]]:
        """The loaded agent or team this rule routes to, if it still exists."""
        if isinstance(self.target, UserTarget):
            return self.assignee if self.assignee and self.assignee.id == self.target.id else None
        if isinstance(self.target, TeamTarget):
            return self.team if self.team and self.team.id == self.target.id else None
        return None

    def applies_to(self, ticket: Ticket) -> bool:
        """Check the category and priority filters against a ticket."""
        if self.category_id is not None and ticket.category_id != self.category_id:
            return False
        if self.priority and self.priority != ticket.priority:
            return False
        return True

    def targets_any_user(self, user_ids: Iterable[int]) -> bool:
        return isinstance(self.target, UserTarget) and self.target.id in user_ids


# ========== Assignment request / outcome ==========

@dataclass(frozen=True)
class AssignmentOptions:
    """
    Options for a single auto-assignment.

    Attributes:
        exclude: Agent ids that must not receive the ticket
        reason: Audit action recorded when the assignment changes
        meta: Extra audit context
    """
    exclude: FrozenSet[int] = frozenset()
    reason: str = AuditAction.AUTO_ASSIGNED
    meta: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "exclude", frozenset(int(i) for i in self.exclude))


@dataclass(frozen=True)
class AssignmentResult:
    """Outcome of applying the first matching assignment rule."""
    target: AssigneeTarget
    rule: AssignmentRule
    changed: bool
    previous_assignee_id: Optional[int] = None
    previous_team_id: Optional[int] = None
    assignee: Optional[Agent] = None
    team: Optional[Team] = None

    @property
    def assignee_type(self) -> str:
        return self.target.type


# ========== Audit trail ==========

@dataclass(frozen=True)
class AuditEntry:
    """
    Immutable record of an action taken on a ticket.

    ``context`` is None rather than an empty mapping when there is nothing
    to record.
    """
    ticket_id: int
    action: str
    created_at: datetime
    context: Optional[Dict[str, Any]] = None
    actor_id: Optional[int] = None
    id: Optional[int] = None
