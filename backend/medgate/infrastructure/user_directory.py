"""User Directory — in-memory account store behind the demo routes.

Invariants:
    - Email is unique (case-insensitive); a duplicate raises ConstraintViolation(UNIQUE)
    - Every stored role is a Role member
    - All operations are serialized by one lock

Design Decisions:
    - In-memory over a database: persistence schema is outside this service;
      the directory only has to behave like a constrained table
    - Raises typed ConstraintViolation, the contract we want real repositories to follow
"""

import itertools
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from medgate.core.domain_types import ConstraintKind, Role
from medgate.core.errors import ConstraintViolation, NotFoundError


@dataclass(frozen=True)
class UserRecord:
    id: int
    email: str
    role: Role
    first_name: str | None = None
    last_name: str | None = None
    department: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role.value,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "department": self.department,
            "created_at": self.created_at.isoformat(),
        }


class UserDirectory:
    """Thread-safe in-memory user table."""

    def __init__(self):
        self._users: dict[int, UserRecord] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def create(
        self,
        email: str,
        role: Role = Role.PATIENT,
        first_name: str | None = None,
        last_name: str | None = None,
        department: str | None = None,
    ) -> UserRecord:
        with self._lock:
            if any(u.email.lower() == email.lower() for u in self._users.values()):
                raise ConstraintViolation(
                    kind=ConstraintKind.UNIQUE,
                    message='duplicate key value violates unique constraint "users_email_key"',
                    constraint="users_email_key",
                )
            user = UserRecord(
                id=next(self._ids), email=email, role=Role(role),
                first_name=first_name, last_name=last_name, department=department,
            )
            self._users[user.id] = user
            return user

    def get(self, user_id: int) -> UserRecord:
        with self._lock:
            user = self._users.get(user_id)
        if user is None:
            raise NotFoundError("User", str(user_id))
        return user

    def update_role(
        self, user_id: int, role: Role, department: str | None = None,
    ) -> UserRecord:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise NotFoundError("User", str(user_id))
            updated = replace(user, role=Role(role), department=department or user.department)
            self._users[user_id] = updated
            return updated

    def search(
        self,
        search: str | None = None,
        role: Role | None = None,
        page: int = 1,
        limit: int = 10,
        descending: bool = True,
    ) -> tuple[list[UserRecord], int]:
        """Filtered page of users ordered by id, plus the total match count."""
        with self._lock:
            users = list(self._users.values())
        if role is not None:
            users = [u for u in users if u.role == role]
        if search:
            needle = search.lower()
            users = [
                u for u in users
                if needle in u.email.lower()
                or needle in (u.first_name or "").lower()
                or needle in (u.last_name or "").lower()
            ]
        users.sort(key=lambda u: u.id, reverse=descending)
        start = (page - 1) * limit
        return users[start:start + limit], len(users)
