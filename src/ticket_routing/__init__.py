"""
Ticket Routing
==============

Support-ticket auto-assignment and SLA escalation engine.
"""

__version__ = "1.0.0"
