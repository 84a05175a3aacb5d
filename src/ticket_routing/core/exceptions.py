"""
Core Exceptions
================

Errors raised by the routing engine to its callers.

Storage errors from SQLAlchemy are not wrapped; they propagate unchanged.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationException(ApplicationException):
    """Administrator input was rejected; ``details`` maps fields to problems."""


class ResourceNotFoundException(ApplicationException):
    """A ticket or assignment rule referenced by id does not exist."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[object] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = resource_type
        if resource_id is not None:
            message += f" {resource_id}"
        super().__init__(f"{message} not found", details)


class ConfigurationException(ApplicationException):
    """SLA defaults or settings could not be loaded."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.source = source
        super().__init__(message, details)
