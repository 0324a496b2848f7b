"""
Principal -- the authenticated caller attached to every operation.

Token verification happens upstream; the kernel only sees the resulting
(user, organization, role) triple.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class UserRole(str, Enum):
    """Roles issued by the identity provider."""

    AKIMAT_ADMIN = "AKIMAT_ADMIN"
    KGU_ZKH_ADMIN = "KGU_ZKH_ADMIN"
    TOO_ADMIN = "TOO_ADMIN"
    CONTRACTOR_ADMIN = "CONTRACTOR_ADMIN"
    DRIVER = "DRIVER"


@dataclass(frozen=True)
class Principal:
    """
    Immutable caller identity.

    ``role`` is kept as the raw string from the token so that unknown roles
    survive to the access policy, which denies them explicitly.
    """

    user_id: UUID
    organization_id: UUID
    role: str

    @property
    def is_akimat(self) -> bool:
        return self.role == UserRole.AKIMAT_ADMIN.value

    @property
    def is_kgu(self) -> bool:
        return self.role == UserRole.KGU_ZKH_ADMIN.value

    @property
    def is_landfill_operator(self) -> bool:
        return self.role == UserRole.TOO_ADMIN.value

    @property
    def is_contractor(self) -> bool:
        return self.role == UserRole.CONTRACTOR_ADMIN.value

    @property
    def is_driver(self) -> bool:
        return self.role == UserRole.DRIVER.value
