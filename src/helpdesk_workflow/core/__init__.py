"""
Core Module
============

Shared core utilities used across the workflow contexts.

This module contains framework-agnostic code: the error taxonomy and the
optimistic-concurrency helpers.
"""

from helpdesk_workflow.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ForbiddenException,
    InvalidTransitionException,
    InvalidStateException,
    AlreadyReviewedException,
    ConcurrentModificationException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    ServiceUnavailableException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ForbiddenException",
    "InvalidTransitionException",
    "InvalidStateException",
    "AlreadyReviewedException",
    "ConcurrentModificationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "ServiceUnavailableException",
]
