"""
User repository (read-only persistence).

Users are managed by the identity system; this service only reads the fields
the assignment engine needs (team, role, active flag).
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence
from uuid import UUID

from domain.user import User
from repositories.serialization import response_rows

_USERS_TABLE: str = "users"


def row_to_user(row: Mapping[str, Any]) -> User:
    return User(
        user_id=UUID(str(row["id"])),
        name=str(row.get("name") or ""),
        role=str(row.get("role") or ""),
        email=row.get("email"),
        team=row.get("team"),
        is_active=bool(row.get("is_active", True)),
    )


class UserRepository:
    def __init__(self, client: Any):
        self._client = client

    def _table(self) -> Any:
        return self._client.table(_USERS_TABLE)

    def get(self, user_id: UUID) -> Optional[User]:
        response = self._table().select("*").eq("id", str(user_id)).limit(1).execute()
        rows = response_rows(response, "fetch user")
        return row_to_user(rows[0]) if rows else None

    def get_many(self, user_ids: Sequence[UUID]) -> List[User]:
        if not user_ids:
            return []
        response = self._table().select("*").in_("id", [str(u) for u in user_ids]).execute()
        return [row_to_user(r) for r in response_rows(response, "fetch users")]

    def ids_with_role(self, role: str) -> List[UUID]:
        response = self._table().select("id").eq("role", role).execute()
        return [UUID(str(r["id"])) for r in response_rows(response, "fetch users by role")]


__all__ = ["UserRepository", "row_to_user"]
