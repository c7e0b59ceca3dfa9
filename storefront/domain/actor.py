# storefront/domain/actor.py
from dataclasses import dataclass

ADMIN_ROLES = ("admin", "super-admin")


@dataclass(frozen=True)
class Actor:
    """Uwierzytelniony uzytkownik przekazywany jawnie do kazdej operacji."""

    id: int
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES
