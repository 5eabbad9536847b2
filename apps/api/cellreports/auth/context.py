"""The authenticated caller as seen by the service layer."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from cellreports.core.config import settings


@dataclass(frozen=True)
class CallerContext:
    """
    Normalized identity triple produced by the identity provider.

    Services trust it as given; they never re-derive the account or role.
    """

    user_id: UUID
    account_id: UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role.strip().lower() in settings.admin_role_set
