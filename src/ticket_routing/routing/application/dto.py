"""
Routing Application DTOs
========================

Data Transfer Objects for administrator input and job results.

These Pydantic models handle normalisation and validation of rule and SLA
configuration edits before they reach the application services.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ticket_routing.config import (
    AssigneeType, PRIORITY_RANK, VALID_PRIORITIES
)
from ticket_routing.routing.domain import (
    AssigneeTarget, SLACalculator, TeamTarget, UserTarget, is_higher_priority
)


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["low", "medium", "high"]
AssigneeTypeStr = Literal["user", "team"]


def _blank_to_none(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == "" or value.lower() == "null":
            return None
    return value


def _is_duration(value: str) -> bool:
    """A threshold the sweep can turn into a cutoff from the current time."""
    return SLACalculator.cutoff(value, datetime.now(timezone.utc)) is not None


# ========== Assignment rules ==========

class AssignmentRuleDTO(BaseModel):
    """
    Administrator input for creating or updating an assignment rule.

    The target for the declared ``assignee_type`` is required and the
    other target is cleared.
    """
    support_ticket_category_id: Optional[int] = Field(None, description="Category filter")
    priority: Optional[PriorityStr] = Field(None, description="Priority filter")
    assignee_type: AssigneeTypeStr = Field(..., description="user or team")
    assigned_to: Optional[int] = Field(None, description="Target agent id")
    support_team_id: Optional[int] = Field(None, description="Target team id")
    active: bool = Field(default=True, description="Whether the rule is evaluated")

    @model_validator(mode="before")
    @classmethod
    def normalize(cls, data: Any) -> Any:
        """Turn blank form values into None and lower-case the type."""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        for key in ("support_ticket_category_id", "priority", "assigned_to", "support_team_id"):
            if key in data:
                data[key] = _blank_to_none(data[key])

        if isinstance(data.get("assignee_type"), str):
            data["assignee_type"] = data["assignee_type"].strip().lower()

        return data

    @model_validator(mode="after")
    def check_target(self) -> "AssignmentRuleDTO":
        if self.assignee_type == AssigneeType.TEAM:
            self.assigned_to = None
            if self.support_team_id is None:
                raise ValueError("support_team_id is required when assignee_type is team")
        else:
            self.support_team_id = None
            if self.assigned_to is None:
                raise ValueError("assigned_to is required when assignee_type is user")
        return self

    def target(self) -> AssigneeTarget:
        if self.assignee_type == AssigneeType.TEAM:
            return TeamTarget(self.support_team_id)
        return UserTarget(self.assigned_to)


class RuleReorderDTO(BaseModel):
    """Move a rule one step in the evaluation order."""
    direction: Literal["up", "down"]


# ========== SLA configuration ==========

class EscalationInput(BaseModel):
    """Escalation settings for one priority."""
    after: Optional[str] = Field(None, max_length=255)
    to: Optional[str] = Field(None, max_length=255)

    @field_validator("after", "to", mode="before")
    @classmethod
    def strip_blank(cls, v: Any) -> Any:
        return _blank_to_none(v)


class SLAConfigUpdateDTO(BaseModel):
    """
    Administrator input for the stored SLA overrides.

    Rules per priority:
    - ``after`` and ``to`` are given together or not at all
    - ``after`` and ``reassign_after`` must be parseable durations
    - ``to`` must rank strictly above the source priority, so the highest
      priority cannot escalate
    """
    priority_escalations: Dict[PriorityStr, EscalationInput]
    reassign_after: Dict[PriorityStr, Optional[str]]

    @field_validator("reassign_after", mode="before")
    @classmethod
    def strip_thresholds(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return v
        return {key: _blank_to_none(value) for key, value in v.items()}

    @model_validator(mode="after")
    def check_rules(self) -> "SLAConfigUpdateDTO":
        errors = []

        for priority in VALID_PRIORITIES:
            rule = self.priority_escalations.get(priority)
            if rule is not None:
                errors.extend(_escalation_errors(priority, rule))

            threshold = self.reassign_after.get(priority)
            if threshold is not None:
                if len(threshold) > 255:
                    errors.append(f"reassign_after.{priority} is too long")
                elif not _is_duration(threshold):
                    errors.append(f"reassign_after.{priority} is not a valid duration")

        if errors:
            raise ValueError("; ".join(errors))
        return self

    def to_overrides(self) -> Dict[str, Any]:
        """Plain mapping suitable for the settings store."""
        return {
            "priority_escalations": {
                priority: rule.model_dump() for priority, rule in self.priority_escalations.items()
            },
            "reassign_after": dict(self.reassign_after),
        }


def _escalation_errors(priority: str, rule: EscalationInput) -> list:
    errors = []
    allowed = [p for p in VALID_PRIORITIES if PRIORITY_RANK[p] > PRIORITY_RANK[priority]]

    if not allowed:
        if rule.after or rule.to:
            errors.append(f"priority_escalations.{priority} cannot escalate any further")
        return errors

    if rule.after and not rule.to:
        errors.append(f"priority_escalations.{priority}.to is required with after")
    if rule.to and not rule.after:
        errors.append(f"priority_escalations.{priority}.after is required with to")

    if rule.after and not _is_duration(rule.after):
        errors.append(f"priority_escalations.{priority}.after is not a valid duration")
    if rule.to and not is_higher_priority(rule.to, priority):
        errors.append(
            f"priority_escalations.{priority}.to must be one of {', '.join(allowed)}"
        )

    return errors


# ========== Job results ==========

class SweepSummary(BaseModel):
    """Counters for one SLA sweep."""
    run_id: str
    scanned: int = 0
    escalated: int = 0
    reassigned: int = 0
    failed: int = 0
