"""Principal abstraction for callers identified by the upstream gateway."""

from __future__ import annotations

from dataclasses import dataclass

from .core.enums import RoleName


@dataclass(frozen=True)
class CallerPrincipal:
    """Identity and role of the caller making a request."""

    user_id: str
    role: RoleName

    @property
    def id(self) -> str:
        return self.user_id

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN

    def can_act_for(self, owner_id: str) -> bool:
        """Owners act on their own records; administrators act on any."""
        return self.is_admin or self.user_id == owner_id

    @classmethod
    def system(cls) -> "CallerPrincipal":
        """Principal used by background jobs and the CLI."""
        return cls(user_id="system", role=RoleName.ADMIN)
