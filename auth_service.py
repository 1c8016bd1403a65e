from __future__ import annotations

import datetime
import logging
import secrets
import sqlite3

import bcrypt

from db import UserRepository, AuthSessionRepository, SettingsRepository
from errors import AuthError, StorageError, ValidationError

logger = logging.getLogger(__name__)


class AuthService:
    """Local users with bcrypt passwords and opaque bearer session tokens."""

    def __init__(
        self,
        user_repo: UserRepository,
        session_repo: AuthSessionRepository,
        settings: SettingsRepository,
    ) -> None:
        self.users = user_repo
        self.sessions = session_repo
        self.settings = settings

    def _peppered(self, password: str) -> bytes:
        pepper = self.settings.get_text("password_pepper", "")
        data = (password + pepper).encode("utf-8")
        # bcrypt only reads the first 72 bytes
        if len(data) > 72:
            raise ValidationError("Password too long")
        return data

    def hash_password(self, password: str) -> str:
        return bcrypt.hashpw(self._peppered(password), bcrypt.gensalt()).decode("utf-8")

    def verify_password(self, password: str, hashed: str) -> bool:
        try:
            data = self._peppered(password)
        except ValidationError:
            return False
        return bcrypt.checkpw(data, hashed.encode("utf-8"))

    def register(self, username: str, password: str) -> dict:
        username = (username or "").strip()
        if not username or not password:
            raise ValidationError("username and password required")
        if self.users.fetch_by_username(username) is not None:
            raise ValidationError("Username already taken")
        try:
            user_id = self.users.create(username, self.hash_password(password))
        except StorageError as e:
            if isinstance(e.__cause__, sqlite3.IntegrityError):
                raise ValidationError("Username already taken") from e
            raise
        logger.info("Registered user %s", username)
        return {"id": user_id, "username": username}

    def login(self, username: str, password: str) -> dict:
        user = self.users.fetch_by_username((username or "").strip())
        if user is None or not self.verify_password(password or "", user["password_hash"]):
            logger.warning("Failed login for %s", username)
            raise AuthError("Invalid credentials")
        hours = self.settings.get_int("session_hours", 720)
        now = datetime.datetime.now(datetime.timezone.utc)
        expires_at = (now + datetime.timedelta(hours=hours)).isoformat(timespec="microseconds")
        token = secrets.token_urlsafe(32)
        self.sessions.delete_expired(now.isoformat(timespec="microseconds"))
        self.sessions.create(user["id"], token, expires_at)
        return {"token": token, "expires_at": expires_at}

    def authenticate(self, token: str | None) -> dict:
        """Return ``{id, username}`` for a live token or raise :class:`AuthError`."""
        if not token:
            raise AuthError("Missing or invalid token")
        row = self.sessions.fetch_user(token)
        now = datetime.datetime.now(datetime.timezone.utc)
        if row is None or datetime.datetime.fromisoformat(row["expires_at"]) <= now:
            raise AuthError("Missing or invalid token")
        return {"id": row["id"], "username": row["username"]}

    def logout(self, token: str) -> None:
        self.sessions.delete(token)
