from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from app.models.principal import Role


@dataclass(frozen=True, slots=True)
class User:
    """Local mirror of an auth-provider identity.

    Identity fields (email, name) are copied from token claims on sync;
    role and banned are owned by admin actions here.
    """

    id: UUID
    email: str
    name: str = ""
    role: Role = "user"
    banned: bool = False
    payment_customer_id: str | None = None
    created_at: int = 0
