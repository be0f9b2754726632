"""Role -> capability table.

Routes never compare role strings; they ask for a capability and this
table decides which roles carry it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from app.models.principal import Principal

Capability = Literal[
    "learn",
    "course:manage",
    "quiz:manage",
    "live:host",
    "user:manage",
    "enrollment:manage",
]

CAPABILITIES: dict[str, frozenset[str]] = {
    "user": frozenset({"learn"}),
    "mentor": frozenset({"learn", "course:manage", "quiz:manage", "live:host"}),
    "admin": frozenset(
        {
            "learn",
            "course:manage",
            "quiz:manage",
            "live:host",
            "user:manage",
            "enrollment:manage",
        }
    ),
}


@dataclass(frozen=True, slots=True)
class Ok:
    principal: Principal


@dataclass(frozen=True, slots=True)
class Denied:
    role: str
    capability: str

    @property
    def reason(self) -> str:
        return f"role {self.role!r} lacks capability {self.capability!r}"


CapabilityCheck = Ok | Denied


def capabilities_for(role: str) -> frozenset[str]:
    return CAPABILITIES.get(role, frozenset())


def check_capability(principal: Principal, capability: str) -> CapabilityCheck:
    if capability in capabilities_for(principal.role):
        return Ok(principal)
    return Denied(role=principal.role, capability=capability)
