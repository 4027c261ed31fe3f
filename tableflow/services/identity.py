"""
Identity collaborator.

The core never authenticates anyone; it asks an identity provider who the
current actor is and scopes every store call to that actor's tenant.
"""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


class Role(str, enum.Enum):
    """The four staff roles."""
    ADMIN = "admin"
    WAITER = "waiter"
    CHEF = "chef"
    CASHIER = "cashier"

    @classmethod
    def normalize(cls, value: Optional[str]) -> "Role":
        """
        Map any spelling a profile may carry onto a role.

        Unknown or missing values fall back to WAITER, the least privileged
        floor role.
        """
        if not value:
            return cls.WAITER
        v = value.strip().lower()
        if v in ("waiter", "mesero", "mesera") or v.startswith("camarer"):
            return cls.WAITER
        if v == "chef" or "cocin" in v:
            return cls.CHEF
        if v in ("cashier", "cajero"):
            return cls.CASHIER
        if v in ("admin", "manager", "administrator"):
            return cls.ADMIN
        return cls.WAITER


@dataclass(frozen=True)
class Actor:
    """
    The resolved current user.

    Attributes:
        id: User id
        email: Login email
        role: Normalized role
        admin_id: Owning admin for staff accounts; None for admins
    """
    id: str
    email: str
    role: Role = Role.WAITER
    admin_id: Optional[str] = None

    @property
    def tenant_id(self) -> str:
        """Records created by staff belong to their admin's restaurant."""
        if self.role == Role.ADMIN or not self.admin_id:
            return self.id
        return self.admin_id

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class BaseIdentityProvider(ABC):
    """Abstract base class for identity providers."""

    @abstractmethod
    def current_actor(self) -> Actor:
        """Return the actor on whose behalf the core is acting."""
        pass


class StaticIdentityProvider(BaseIdentityProvider):
    """Identity fixed at construction; one per station session."""

    def __init__(self, actor: Actor):
        self._actor = actor

    def current_actor(self) -> Actor:
        return self._actor
