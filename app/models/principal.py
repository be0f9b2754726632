from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from uuid import UUID

Role = Literal["user", "mentor", "admin"]
ROLES: tuple[Role, ...] = ("user", "mentor", "admin")


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from the auth provider's JWT.

    Carried through the request via FastAPI's dependency system.

        user_id: subject claim, the provider's user id (a UUID)
        role:    the single canonical ``role`` claim; anything missing or
                 unrecognised is treated as ``user``
        email / name: identity claims mirrored into our User record
    """

    user_id: str
    role: Role = "user"
    email: str = ""
    name: str = ""

    def has_role(self, role: str) -> bool:
        return self.role == role

    def is_admin(self) -> bool:
        return self.role == "admin"

    def is_staff(self) -> bool:
        return self.role in ("admin", "mentor")

    @property
    def uid(self) -> UUID:
        return UUID(self.user_id)
