"""User registration and the two interchangeable ways of proving who you are.

``TokenAuth`` hands out ES256 signed bearer tokens; ``SessionAuth`` keeps an
opaque token in the cache and points at it from the Flask session cookie.
An application uses exactly one of them, chosen by ``Settings.auth_mode``.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Callable, Optional, Protocol

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from flask import current_app, g, request, session
from loguru import logger
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import AuthenticationError, NotLoggedIn
from .models import Credential, User
from .storage import KeyValueCache, UserRepository

TOKEN_LIFETIME = timedelta(minutes=10)
REFRESH_LIFETIME = timedelta(minutes=5)
SESSION_LIFETIME = timedelta(minutes=10)


class SigningKey:
    """ES256 key pair that lives as long as the process."""

    algorithm = "ES256"

    def __init__(self, private_key: Optional[ec.EllipticCurvePrivateKey] = None) -> None:
        self._private_key = private_key or ec.generate_private_key(ec.SECP256R1())
        self._public_key = self._private_key.public_key()

    @classmethod
    def from_pem_file(cls, path: str) -> "SigningKey":
        with open(path, "rb") as fh:
            key = serialization.load_pem_private_key(fh.read(), password=None)
        if not isinstance(key, ec.EllipticCurvePrivateKey):
            raise ValueError(f"{path} does not hold an EC private key")
        return cls(key)

    def sign(self, claims: dict) -> str:
        return jwt.encode(claims, self._private_key, algorithm=self.algorithm)

    def verify(self, token: str) -> dict:
        """Return the claims of ``token``; raises :class:`jwt.InvalidTokenError`."""

        return jwt.decode(
            token,
            self._public_key,
            algorithms=[self.algorithm],
            options={"require": ["exp", "username"]},
        )


class UserService:
    def __init__(self, users: UserRepository) -> None:
        self._users = users

    def register(self, username: str, password: str) -> User:
        user = User(username=username, password_hash=generate_password_hash(password))
        self._users.add_user(user)
        logger.info("registered user {}", username)
        return user

    def check(self, username: str, password: str) -> None:
        """Raise :class:`AuthenticationError` unless the password matches."""

        try:
            user: Optional[User] = self._users.get_user(username)
        except KeyError:
            user = None

        if user is None or not check_password_hash(user.password_hash, password):
            logger.info("failed login for {}", username)
            raise AuthenticationError("incorrect user or password")


class Authenticator(Protocol):
    def login(self, username: str) -> dict:
        ...

    def authenticate(self) -> str:
        """Return the caller's username or raise :class:`AuthenticationError`."""

    def refresh(self, username: str) -> dict:
        ...

    def logout(self, username: str) -> dict:
        ...


class TokenAuth(Authenticator):
    def __init__(
        self,
        key: SigningKey,
        *,
        lifetime: timedelta = TOKEN_LIFETIME,
        refresh_lifetime: timedelta = REFRESH_LIFETIME,
    ) -> None:
        self._key = key
        self._lifetime = lifetime
        self._refresh_lifetime = refresh_lifetime

    def issue(self, username: str, lifetime: timedelta) -> Credential:
        # exp is carried with one second resolution.
        expires = (datetime.now(timezone.utc) + lifetime).replace(microsecond=0)
        token = self._key.sign({"username": username, "exp": expires})
        return Credential(token=token, expires=expires)

    def login(self, username: str) -> dict:
        return self.issue(username, self._lifetime).to_dict()

    def authenticate(self) -> str:
        header = request.headers.get("Authorization", "")
        token = header[len("Bearer "):] if header.startswith("Bearer ") else header
        token = token.strip()
        if not token:
            raise AuthenticationError("missing token")

        try:
            claims = self._key.verify(token)
        except jwt.InvalidTokenError as exc:
            logger.info("rejected token: {}", exc)
            raise AuthenticationError("invalid token") from exc
        return claims["username"]

    def refresh(self, username: str) -> dict:
        return self.issue(username, self._refresh_lifetime).to_dict()

    def logout(self, username: str) -> dict:
        # Tokens cannot be revoked; hand back one that is already expired.
        return self.issue(username, timedelta(0)).to_dict()


class SessionStore:
    """Server-side session tokens, kept in the cache until they expire."""

    def __init__(self, cache: KeyValueCache) -> None:
        self._cache = cache

    @staticmethod
    def _key(token: str) -> str:
        return f"session:{token}"

    def save(self, token: str, username: str, lifetime: timedelta) -> None:
        self._cache.set(self._key(token), username, lifetime)

    def lookup(self, token: str) -> Optional[str]:
        return self._cache.get(self._key(token))

    def delete(self, token: str) -> None:
        self._cache.delete(self._key(token))


class SessionAuth(Authenticator):
    def __init__(self, sessions: SessionStore, *, lifetime: timedelta = SESSION_LIFETIME) -> None:
        self._sessions = sessions
        self._lifetime = lifetime

    def _start(self, username: str) -> None:
        token = secrets.token_urlsafe(32)
        self._sessions.save(token, username, self._lifetime)
        session.clear()
        session.permanent = True
        session["username"] = username
        session["token"] = token

    def login(self, username: str) -> dict:
        self._start(username)
        return {"message": "User signed in"}

    def authenticate(self) -> str:
        token = session.get("token")
        username = self._sessions.lookup(token) if token else None
        if username is None:
            logger.info("no live session for cookie user {}", session.get("username"))
            raise NotLoggedIn("Not logged in")
        return username

    def refresh(self, username: str) -> dict:
        self._sessions.delete(session["token"])
        self._start(username)
        return {"message": "Session refreshed"}

    def logout(self, username: str) -> dict:
        token = session.get("token")
        if token:
            self._sessions.delete(token)
        session.clear()
        logger.info("signed out {}", username)
        return {"message": "Signed out"}


def login_required(view: Callable) -> Callable:
    """Reject the request unless the active authenticator accepts it."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        authenticator: Authenticator = current_app.config["AUTHENTICATOR"]
        g.username = authenticator.authenticate()
        return view(*args, **kwargs)

    return wrapped


__all__ = [
    "Authenticator",
    "SessionAuth",
    "SessionStore",
    "SigningKey",
    "TokenAuth",
    "UserService",
    "login_required",
]
