"""
Shared Kernel Module
====================

Generic infrastructure used by the routing bounded context
(structured logging).

DO NOT add ticket routing business logic to the shared kernel.
"""

__version__ = "1.0.0"
