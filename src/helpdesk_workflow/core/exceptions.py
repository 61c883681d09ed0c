"""
Core Exceptions
================

Custom exceptions for the ticket workflow.

Each workflow failure kind maps to one class so that the calling web
layer can translate it into a response without inspecting messages.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain rule violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(DomainException):
    """A required field is missing or malformed."""


class ForbiddenException(DomainException):
    """The actor lacks the role or ownership the operation requires."""

    def __init__(self, actor_id: str, action: str, details: Optional[dict] = None):
        self.actor_id = actor_id
        self.action = action
        super().__init__(
            f"User '{actor_id}' is not allowed to {action}",
            details or {"actor_id": actor_id, "action": action}
        )


class InvalidTransitionException(DomainException):
    """The requested status edge is not part of the state machine."""

    def __init__(self, ticket_id: str, from_status: str, to_status: str):
        self.ticket_id = ticket_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Ticket {ticket_id} cannot move from '{from_status}' to '{to_status}'",
            {"ticket_id": ticket_id, "from": from_status, "to": to_status}
        )


class InvalidStateException(DomainException):
    """A precondition on the current ticket or request state is not met."""


class AlreadyReviewedException(DomainException):
    """The reopen request has already left the pending state."""

    def __init__(self, request_id: str, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"Reopen request {request_id} was already {status}",
            {"request_id": request_id, "status": status}
        )


class ConcurrentModificationException(RepositoryException):
    """The row changed between read and conditional write."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        expected_version: Optional[int] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.expected_version = expected_version
        super().__init__(
            f"{resource_type} '{resource_id}' was modified concurrently",
            {
                "resource_type": resource_type,
                "resource_id": resource_id,
                "expected_version": expected_version,
            }
        )


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class ServiceUnavailableException(ExternalServiceException):
    """A collaborator did not answer within its time bound."""

    def __init__(self, service_name: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            service_name,
            f"no response within {timeout:.2f}s",
            {"timeout_seconds": timeout}
        )
