"""JWT issue, validation, revocation and listing with an in-memory token registry."""

import dataclasses
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

import jwt

from woo_mcp.config.loader import Settings
from woo_mcp.mcp.errors import (
    InvalidExpirationError,
    InvalidTokenError,
    NotFoundError,
    TokenInvalidError,
    TokenLimitExceededError,
)
from woo_mcp.security.users import Principal, UserDirectory
from woo_mcp.utils.logging import get_logger

JWT_ALGORITHM = "HS256"

Clock = Callable[[], float]


@dataclass(frozen=True)
class TokenRecord:
    """Registry entry for one issued token. Replaced, never mutated."""

    jti: str
    user_id: int
    issued_at: int
    expires_at: int
    revoked: bool = False

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def is_valid(self, now: float) -> bool:
        return not self.revoked and not self.is_expired(now)


@dataclass(frozen=True)
class IssuedToken:
    """Token material returned to the client."""

    access_token: str
    jti: str
    user_id: int
    issued_at: int
    expires_at: int
    expires_in: int
    token_type: str = "Bearer"

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


class TokenManager:
    """
    Issues and validates HS256 bearer tokens.

    The registry is the source of truth for validity: a token with a good
    signature is still rejected once revoked, expired or garbage-collected.
    Writers (issue, revoke, gc) hold a lock; validate reads without it
    since records are immutable and dict lookups are atomic.
    """

    def __init__(
        self,
        users: UserDirectory,
        secret: str = "",
        issuer: str = "woo-mcp",
        min_ttl: int = 3600,
        max_ttl: int = 86400,
        max_active: int = 10,
        clock: Clock = time.time,
        logger: Any = None,
    ):
        self.users = users
        # Without a configured secret, tokens only live as long as the process
        self._secret = secret or secrets.token_hex(64)
        self.issuer = issuer
        self.min_ttl = min_ttl
        self.max_ttl = max_ttl
        self.max_active = max_active
        self._clock = clock
        self._tokens: dict[str, TokenRecord] = {}
        self._lock = threading.Lock()
        self.logger = logger or get_logger("tokens")

    @classmethod
    def from_settings(
        cls, settings: Settings, users: UserDirectory, clock: Clock = time.time
    ) -> "TokenManager":
        return cls(
            users=users,
            secret=settings.jwt_secret_key,
            issuer=settings.jwt_issuer,
            min_ttl=settings.token_min_ttl,
            max_ttl=settings.token_max_ttl,
            max_active=settings.token_max_active,
            clock=clock,
        )

    def now(self) -> int:
        return int(self._clock())

    def issue(self, user_id: int, requested_ttl: int) -> IssuedToken:
        """
        Issue a token for a user.

        Raises:
            InvalidExpirationError: requested_ttl is outside [min_ttl, max_ttl].
            NotFoundError: The user does not exist.
            TokenLimitExceededError: The user already holds max_active live tokens.
        """
        if isinstance(requested_ttl, bool) or not isinstance(requested_ttl, int):
            raise InvalidExpirationError("Expiration must be an integer number of seconds")
        if not self.min_ttl <= requested_ttl <= self.max_ttl:
            raise InvalidExpirationError(
                f"Expiration must be between {self.min_ttl} and {self.max_ttl} seconds"
            )
        if not self.users.exists(user_id):
            raise NotFoundError("user", str(user_id))

        with self._lock:
            now = self.now()
            # Drop this user's dead tokens before counting live ones
            for jti, record in list(self._tokens.items()):
                if record.user_id == user_id and not record.is_valid(now):
                    del self._tokens[jti]
            active = sum(1 for r in self._tokens.values() if r.user_id == user_id)
            if active >= self.max_active:
                raise TokenLimitExceededError(
                    f"Maximum of {self.max_active} active tokens per user reached"
                )

            jti = secrets.token_urlsafe(24)
            record = TokenRecord(
                jti=jti,
                user_id=user_id,
                issued_at=now,
                expires_at=now + requested_ttl,
            )
            self._tokens[jti] = record

        payload = {
            "iss": self.issuer,
            "iat": record.issued_at,
            "exp": record.expires_at,
            "user_id": user_id,
            "jti": jti,
        }
        access_token = jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)
        self.logger.info("Issued token", user_id=user_id, jti=jti, expires_in=requested_ttl)
        return IssuedToken(
            access_token=access_token,
            jti=jti,
            user_id=user_id,
            issued_at=record.issued_at,
            expires_at=record.expires_at,
            expires_in=requested_ttl,
        )

    def decode(self, credential: str) -> dict[str, Any]:
        """Verify the signature and required claims of a credential.

        Expiry is judged against the registry clock, not by PyJWT.
        """
        try:
            claims = jwt.decode(
                credential,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                issuer=self.issuer,
                options={
                    "require": ["iss", "iat", "exp", "jti"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.PyJWTError as e:
            raise InvalidTokenError(f"Token verification failed: {e}") from e

        if not isinstance(claims.get("user_id"), int) or not isinstance(claims.get("jti"), str):
            raise InvalidTokenError("Token is missing user_id or jti")
        return claims

    def validate(self, credential: str) -> Principal:
        """
        Resolve a bearer credential to the principal it was issued for.

        Raises:
            InvalidTokenError: Bad signature, bad claims, or the user is gone.
            TokenInvalidError: The jti is unknown, revoked or expired.
        """
        claims = self.decode(credential)
        record = self._tokens.get(claims["jti"])
        if record is None:
            raise TokenInvalidError("Token is not registered")
        if record.revoked:
            raise TokenInvalidError("Token has been revoked")
        if record.is_expired(self.now()):
            raise TokenInvalidError("Token has expired")
        if record.user_id != claims["user_id"]:
            raise InvalidTokenError("Token user does not match its registry entry")

        user = self.users.get(record.user_id)
        if user is None:
            raise InvalidTokenError("Token user no longer exists")
        return Principal.for_user(user, via="jwt")

    def revoke(self, jti: str) -> TokenRecord:
        """Mark a token revoked. Revoking twice is harmless."""
        with self._lock:
            record = self._tokens.get(jti)
            if record is None:
                raise NotFoundError("token", jti)
            if not record.revoked:
                record = dataclasses.replace(record, revoked=True)
                self._tokens[jti] = record
                self.logger.info("Revoked token", jti=jti, user_id=record.user_id)
        return record

    def list(self, user_id: int | None = None) -> list[TokenRecord]:
        """
        List tokens, optionally for one user.

        Expired tokens and tokens of deleted users are removed first.
        Revoked tokens stay listed until they expire.
        """
        with self._lock:
            self._collect_garbage()
            records = list(self._tokens.values())
        if user_id is not None:
            records = [r for r in records if r.user_id == user_id]
        return sorted(records, key=lambda r: r.issued_at, reverse=True)

    def _collect_garbage(self) -> int:
        now = self.now()
        dead = [
            jti
            for jti, record in self._tokens.items()
            if record.is_expired(now) or not self.users.exists(record.user_id)
        ]
        for jti in dead:
            del self._tokens[jti]
        if dead:
            self.logger.info("Collected expired tokens", count=len(dead))
        return len(dead)

    def __len__(self) -> int:
        return len(self._tokens)
