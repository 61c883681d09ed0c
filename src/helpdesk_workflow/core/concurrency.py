"""
Concurrency Helpers
===================

Optimistic-concurrency retry and collaborator time bounds.

Every mutating workflow operation is a read-validate-write cycle. On a
version conflict the whole cycle is run again from a fresh read, at most
``retries`` more times, before the conflict is surfaced to the caller.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

from helpdesk_workflow.core.exceptions import (
    ConcurrentModificationException,
    ServiceUnavailableException,
)
from helpdesk_workflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def retry_on_conflict(
    operation: Callable[[], Awaitable[T]],
    retries: int = 1,
    operation_name: str = "operation",
) -> T:
    """
    Run ``operation`` and re-run it after a version conflict.

    Args:
        operation: Zero-argument coroutine factory performing one full cycle
        retries: Additional attempts after the first conflict
        operation_name: Name used in log records

    Raises:
        ConcurrentModificationException: If every attempt conflicted
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except ConcurrentModificationException as e:
            if attempt >= retries:
                logger.warning(
                    "Giving up after concurrent modification",
                    extra={
                        "operation": operation_name,
                        "attempts": attempt + 1,
                        "resource_id": e.resource_id,
                    },
                )
                raise
            attempt += 1
            logger.info(
                "Concurrent modification, retrying from a fresh read",
                extra={
                    "operation": operation_name,
                    "attempt": attempt,
                    "resource_id": e.resource_id,
                },
            )


async def bounded(awaitable: Awaitable[T], timeout: float, service_name: str) -> T:
    """
    Await ``awaitable`` for at most ``timeout`` seconds.

    The awaited task is cancelled on timeout, so an open unit of work
    rolls back instead of committing late.

    Raises:
        ServiceUnavailableException: If the deadline passed
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(
            "Collaborator timed out",
            extra={"service": service_name, "timeout_seconds": timeout},
        )
        raise ServiceUnavailableException(service_name, timeout)
