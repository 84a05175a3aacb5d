"""
Routing Value Objects
=====================

Immutable value objects for SLA escalation and reassignment.

Value objects are defined by their attributes rather than an identity.
"""

import copy
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from ticket_routing.config import Priority, PRIORITY_RANK, VALID_PRIORITIES


# ========== Durations ==========

_DURATION_UNITS = {
    "sec": "seconds", "secs": "seconds", "second": "seconds", "seconds": "seconds",
    "min": "minutes", "mins": "minutes", "minute": "minutes", "minutes": "minutes",
    "hr": "hours", "hrs": "hours", "hour": "hours", "hours": "hours",
    "day": "days", "days": "days",
    "week": "weeks", "weeks": "weeks",
    "fortnight": "fortnights", "fortnights": "fortnights",
}

_DURATION_TOKEN = re.compile(r"\s*\+?(\d+)\s*([a-z]+)\s*(?:,|and)?", re.IGNORECASE)


def parse_duration(expression: Optional[str]) -> Optional[timedelta]:
    """
    Parse a human readable duration such as "48 hours" or "1 day 6 hours".

    Returns:
        The duration, or None when the expression is empty, malformed or
        too large to represent
    """
    if not expression or not isinstance(expression, str):
        return None

    text = expression.strip()
    if not text:
        return None

    total = timedelta()
    position = 0
    while position < len(text):
        match = _DURATION_TOKEN.match(text, position)
        if not match or match.end() == position:
            return None
        amount, unit = int(match.group(1)), match.group(2).lower()
        name = _DURATION_UNITS.get(unit)
        if name is None:
            return None
        try:
            if name == "fortnights":
                total += timedelta(weeks=2 * amount)
            else:
                total += timedelta(**{name: amount})
        except OverflowError:
            return None
        position = match.end()

    return total


def is_higher_priority(candidate: Optional[str], than: Optional[str]) -> bool:
    """Check that ``candidate`` ranks strictly above ``than``."""
    if candidate not in PRIORITY_RANK or than not in PRIORITY_RANK:
        return False
    return PRIORITY_RANK[candidate] > PRIORITY_RANK[than]


class SLACalculator:
    """Pure functions for SLA threshold evaluation."""

    @staticmethod
    def cutoff(threshold: Optional[str], now: datetime) -> Optional[datetime]:
        """
        Latest timestamp that counts as "older than the threshold".

        Returns:
            now - threshold, or None for a missing or malformed threshold
            and for one reaching back before the earliest representable date
        """
        duration = parse_duration(threshold)
        if duration is None:
            return None
        try:
            return now - duration
        except OverflowError:
            return None

    @staticmethod
    def has_elapsed(reference: Optional[datetime], cutoff: datetime) -> bool:
        """A reference time has aged past the cutoff unless it is more recent."""
        if reference is None:
            return False
        return reference <= cutoff


# ========== SLA configuration ==========

DEFAULT_SLA: Dict[str, Any] = {
    "priority_escalations": {
        Priority.LOW: {"after": "48 hours", "to": Priority.MEDIUM},
        Priority.MEDIUM: {"after": "24 hours", "to": Priority.HIGH},
        Priority.HIGH: {"after": None, "to": None},
    },
    "reassign_after": {
        Priority.LOW: "72 hours",
        Priority.MEDIUM: "36 hours",
        Priority.HIGH: "12 hours",
    },
}


class EscalationRule(BaseModel):
    """Priority escalation for one source priority."""
    after: Optional[str] = Field(default=None, description="Duration before escalating")
    to: Optional[str] = Field(default=None, description="Priority to escalate to")

    def target_for(self, priority: str) -> Optional[str]:
        """
        Priority a ticket at ``priority`` escalates to, or None if this
        rule is inert (missing threshold, missing target, or a target that
        does not rank higher).
        """
        if not self.after or not self.to:
            return None
        if not is_higher_priority(self.to, priority):
            return None
        return self.to


class SLAConfig(BaseModel):
    """
    Resolved SLA configuration (defaults merged with stored overrides).

    This is a value object - recomputed for every sweep.
    """
    priority_escalations: Dict[str, EscalationRule] = Field(default_factory=dict)
    reassign_after: Dict[str, Optional[str]] = Field(default_factory=dict)

    @field_validator("priority_escalations", mode="before")
    @classmethod
    def drop_malformed_escalations(cls, v: Any) -> Dict[str, Any]:
        """Ignore entries that are not mappings."""
        if not isinstance(v, Mapping):
            return {}
        return {str(k): rule for k, rule in v.items() if isinstance(rule, Mapping)}

    @field_validator("reassign_after", mode="before")
    @classmethod
    def drop_malformed_thresholds(cls, v: Any) -> Dict[str, Any]:
        """Ignore thresholds that are not strings."""
        if not isinstance(v, Mapping):
            return {}
        return {
            str(k): threshold for k, threshold in v.items()
            if threshold is None or isinstance(threshold, str)
        }

    def escalation_for(self, priority: str) -> Optional[EscalationRule]:
        return self.priority_escalations.get(priority)

    def reassign_threshold_for(self, priority: Optional[str]) -> Optional[str]:
        if not priority:
            return None
        return self.reassign_after.get(priority) or None


def replace_recursive(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Deep-merge ``overrides`` into a copy of ``base``.

    Nested mappings are merged key by key; any other override value
    (including None) replaces the base value.
    """
    merged = copy.deepcopy(dict(base))
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = replace_recursive(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def merge_config(defaults: Mapping[str, Any], overrides: Any) -> SLAConfig:
    """Resolve the SLA configuration from defaults and a stored override blob."""
    if not isinstance(overrides, Mapping):
        overrides = {}
    return SLAConfig(**replace_recursive(defaults, overrides))


def normalize_overrides(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Shape an override blob so that every priority is present.

    Missing entries become None, which disables the matching default once
    merged.
    """
    escalations = payload.get("priority_escalations") or {}
    thresholds = payload.get("reassign_after") or {}

    normalized: Dict[str, Any] = {"priority_escalations": {}, "reassign_after": {}}
    for priority in VALID_PRIORITIES:
        rule = escalations.get(priority) or {}
        normalized["priority_escalations"][priority] = {
            "after": rule.get("after"),
            "to": rule.get("to"),
        }
        normalized["reassign_after"][priority] = thresholds.get(priority)

    return normalized
