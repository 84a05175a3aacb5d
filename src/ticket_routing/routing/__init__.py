"""
Ticket Routing Module
=====================

Bounded Context for ticket assignment and SLA escalation.

Responsibilities:
- Route newly opened tickets with the first matching assignment rule
- Let administrators maintain the ordered rule list
- Escalate the priority of tickets that age past their threshold
- Hand stale agent-assigned tickets to the next eligible target
- Record every automatic change on the ticket audit trail
"""
