"""
Identity Contract
=================

Read-only view of the external identity provider.

The workflow only needs an actor's id and role for permission checks,
plus the list of staff members to address broadcast notifications.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from helpdesk_workflow.config import UserRole, STAFF_ROLES, SYSTEM_ACTOR_ID


@dataclass(frozen=True)
class User:
    """Actor snapshot supplied by the identity provider."""

    id: str
    role: UserRole
    full_name: str = ""
    email: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


SYSTEM_USER = User(id=SYSTEM_ACTOR_ID, role=UserRole.SYSTEM, full_name="Workflow")


class IUserDirectory(ABC):
    """Interface for actor lookups."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        """Get user by id, or None if unknown."""

    @abstractmethod
    async def list_by_roles(self, roles: Sequence[UserRole]) -> List[User]:
        """List users holding any of ``roles``."""
