"""Users that can authenticate against the server, and the resolved caller identity."""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any, Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class User:
    """A configured user.

    `password` is either plain text or `sha256:<hex digest>`.
    """

    id: int
    username: str
    display_name: str = ""
    password: str = ""
    is_admin: bool = False

    def check_password(self, candidate: str) -> bool:
        if not self.password:
            return False
        if self.password.startswith("sha256:"):
            digest = hashlib.sha256(candidate.encode("utf-8")).hexdigest()
            return hmac.compare_digest(digest, self.password[len("sha256:"):])
        return hmac.compare_digest(candidate.encode("utf-8"), self.password.encode("utf-8"))

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "display_name": self.display_name or self.username,
        }


@dataclass(frozen=True)
class Principal:
    """The identity a request runs as."""

    user_id: int | None
    username: str
    is_admin: bool = False
    read_only: bool = False
    via: str = "anonymous"  # anonymous, jwt, basic, stdio

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None

    @classmethod
    def anonymous(cls) -> "Principal":
        """Read-only caller used when authentication is not required."""
        return cls(user_id=None, username="anonymous", read_only=True)

    @classmethod
    def for_user(cls, user: User, via: str) -> "Principal":
        # Non-admin users may only call read-only tools
        return cls(
            user_id=user.id,
            username=user.username,
            is_admin=user.is_admin,
            read_only=not user.is_admin,
            via=via,
        )


class UserDirectory:
    """In-memory user lookup built from the server config."""

    def __init__(self, users: Iterable[User] = ()):
        self._users: dict[int, User] = {}
        for user in users:
            self.add(user)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "UserDirectory":
        users = []
        for entry in config.get("users") or []:
            users.append(
                User(
                    id=int(entry["id"]),
                    username=str(entry["username"]),
                    display_name=str(entry.get("display_name", "")),
                    password=str(entry.get("password", "")),
                    is_admin=bool(entry.get("admin", False)),
                )
            )
        logger.info(f"Loaded {len(users)} users")
        return cls(users)

    def add(self, user: User) -> None:
        self._users[user.id] = user

    def remove(self, user_id: int) -> None:
        self._users.pop(user_id, None)

    def get(self, user_id: int) -> User | None:
        return self._users.get(user_id)

    def exists(self, user_id: int) -> bool:
        return user_id in self._users

    def get_by_username(self, username: str) -> User | None:
        for user in self._users.values():
            if user.username == username:
                return user
        return None

    def authenticate(self, username: str, password: str) -> User | None:
        """Check credentials; returns the user or None."""
        user = self.get_by_username(username)
        if user is None or not user.check_password(password):
            return None
        return user

    def __len__(self) -> int:
        return len(self._users)
