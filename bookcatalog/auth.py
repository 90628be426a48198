"""
Authentication service and the authorization gate for mutating calls.

Passwords are stored as salted PBKDF2-SHA256 hashes. A successful login
issues an opaque bearer token held in an in-process registry until it
expires. ``AuthorizationGate.authorize()`` is what the controllers call
before any create, update or delete: it only checks that the caller
holds a live token for an existing user.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
import time
from typing import Callable, Dict, Optional, Tuple

from .errors import InvalidCredentialsError, UnauthorizedError
from .models import Identity, RegisterRequest
from .storage import USER, EntityStore


logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 120_000
_HASH_PREFIX = "pbkdf2_sha256"


def _b64(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or _b64(secrets.token_bytes(16))
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("ascii"), PBKDF2_ITERATIONS)
    return f"{_HASH_PREFIX}${PBKDF2_ITERATIONS}${salt}${_b64(digest)}"


def check_password(password: str, encoded: str) -> bool:
    try:
        prefix, iterations, salt, expected = encoded.split("$")
    except ValueError:
        return False
    if prefix != _HASH_PREFIX:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("ascii"), int(iterations))
    return hmac.compare_digest(_b64(digest), expected)


def public_user(document: Dict) -> Dict:
    return {k: v for k, v in document.items() if k != "passwordHash"}


class AuthenticationService:
    """Registers users, issues bearer tokens and verifies them."""

    def __init__(
        self,
        store: EntityStore,
        token_ttl_seconds: int = 86400,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.token_ttl_seconds = token_ttl_seconds
        self._clock = clock
        self._tokens: Dict[str, Tuple[Identity, float]] = {}

    async def register(self, request: RegisterRequest) -> Dict:
        document = await self.store.insert(
            USER,
            {
                "firstname": request.firstname,
                "lastname": request.lastname,
                "email": request.email,
                "passwordHash": hash_password(request.password),
            },
        )
        logger.info("Registered user %s", document["email"])
        return public_user(document)

    async def login(self, email: str, password: str) -> Tuple[str, Dict]:
        user = await self.store.find_one(USER, {"email": email.strip().lower()})
        if user is None or not check_password(password, user["passwordHash"]):
            logger.info("Failed login for %s", email)
            raise InvalidCredentialsError("Invalid email or password")
        now = self._clock()
        self._purge_expired(now)
        token = secrets.token_urlsafe(32)
        identity = Identity(user_id=user["_id"], email=user["email"])
        self._tokens[token] = (identity, now + self.token_ttl_seconds)
        logger.info("Issued token for %s", identity.email)
        return token, public_user(user)

    async def verify(self, token: str) -> Identity:
        entry = self._tokens.get(token)
        if entry is None:
            raise UnauthorizedError("Not authorized: token is not recognized")
        identity, expires_at = entry
        if self._clock() >= expires_at:
            self._tokens.pop(token, None)
            raise UnauthorizedError("Not authorized: token expired, please login again")
        if await self.store.find_by_id(USER, identity.user_id) is None:
            self._tokens.pop(token, None)
            raise UnauthorizedError("Not authorized: user no longer exists")
        return identity

    def revoke(self, token: str) -> None:
        self._tokens.pop(token, None)

    def _purge_expired(self, now: float) -> None:
        expired = [token for token, (_, expires_at) in self._tokens.items() if expires_at <= now]
        for token in expired:
            del self._tokens[token]


class AuthorizationGate:
    """Presence check for a valid bearer credential."""

    scheme = "bearer"

    def __init__(self, auth: AuthenticationService) -> None:
        self.auth = auth

    async def authorize(self, credential: Optional[str]) -> Identity:
        """Return the caller's identity or raise ``UnauthorizedError``.

        ``credential`` is the raw ``Authorization`` header value.
        """
        if not credential or not credential.strip():
            raise UnauthorizedError("There is no token attached to header")
        parts = credential.split()
        if len(parts) != 2 or parts[0].lower() != self.scheme:
            raise UnauthorizedError("Malformed authorization header, expected 'Bearer <token>'")
        return await self.auth.verify(parts[1])
