"""
Domain: Users (agents) who own enquiries, and the acting-user context.

Authentication is external; the API layer injects a `CurrentUser` built from
the identity collaborator and this module only answers coarse role questions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID


class Role(str, Enum):
    ADMIN = "Admin"
    SALES_HEAD = "Sales Head"
    TELECALLER = "Telecaller"
    SALES_EXECUTIVE = "Sales Executive"


# Roles allowed to manage rules, bulk operations, exports and SLA settings.
MANAGER_ROLES = (Role.ADMIN, Role.SALES_HEAD)

# Roles allowed to capture and work enquiries.
ENQUIRY_EDITOR_ROLES = (Role.ADMIN, Role.SALES_HEAD, Role.TELECALLER)


@dataclass(frozen=True, slots=True)
class User:
    """Agent record; only the fields the assignment engine needs."""

    user_id: UUID
    name: str
    role: str
    email: Optional[str] = None
    team: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class CurrentUser:
    """Opaque identity of the caller for a single request."""

    id: UUID
    role: str

    def has_role(self, *roles: Role | str) -> bool:
        wanted = {r.value if isinstance(r, Role) else r for r in roles}
        return self.role in wanted

    @property
    def is_telecaller(self) -> bool:
        return self.role.lower() == Role.TELECALLER.value.lower()


__all__ = ["CurrentUser", "ENQUIRY_EDITOR_ROLES", "MANAGER_ROLES", "Role", "User"]
