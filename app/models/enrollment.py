from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

PENDING = "pending"
ACTIVE = "active"
CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class Enrollment:
    """One row per (user, course); the status carries the lifecycle.

    pending   -> checkout opened, payment not confirmed
    active    -> payment verified (or free course)
    cancelled -> revoked by an admin
    """

    id: UUID
    user_id: UUID
    course_id: UUID
    status: str = PENDING
    amount: int = 0
    payment_reference: str | None = None
    created_at: int = 0
    updated_at: int = 0

    @staticmethod
    def new(
        *,
        user_id: UUID,
        course_id: UUID,
        now: int,
        status: str = PENDING,
        amount: int = 0,
        payment_reference: str | None = None,
    ) -> Enrollment:
        return Enrollment(
            id=uuid4(),
            user_id=user_id,
            course_id=course_id,
            status=status,
            amount=amount,
            payment_reference=payment_reference,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE
