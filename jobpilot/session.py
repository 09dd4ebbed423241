"""Session lifecycle: login, signup, restore and logout."""

import logging
import sqlite3
from typing import Any, Optional

import requests
from pydantic import ValidationError

from .errors import AuthError, error_message
from .models import AuthUser
from .session_store import SessionStore

logger = logging.getLogger(__name__)


class SessionContext:
    """In-memory session state shared by the gateway and the stores.

    Token and user are only ever set or cleared together.
    """

    def __init__(self) -> None:
        self.token: Optional[str] = None
        self.user: Optional[AuthUser] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) and self.user is not None

    @property
    def user_id(self) -> Optional[int]:
        return self.user.id if self.user is not None else None

    def install(self, token: str, user: AuthUser) -> None:
        self.token = token
        self.user = user

    def clear(self) -> None:
        self.token = None
        self.user = None


class SessionManager:
    """Owns the session pair and its persisted copy."""

    def __init__(
        self,
        context: SessionContext,
        gateway,
        store: SessionStore,
        auth_prefix: str = "/api/auth",
    ):
        self.context = context
        self.gateway = gateway
        self.store = store
        self.auth_prefix = "/" + auth_prefix.strip("/")
        self.loading = False
        self.error: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.context.is_authenticated

    @property
    def user(self) -> Optional[AuthUser]:
        return self.context.user

    @property
    def token(self) -> Optional[str]:
        return self.context.token

    def signup(self, email: str, password: str, name: Optional[str] = None) -> AuthUser:
        """Register a new account and start a session for it."""
        payload = {"email": email, "password": password}
        if name:
            payload["name"] = name
        return self._authenticate("register", payload, "Sign up failed")

    def login(self, email: str, password: str) -> AuthUser:
        """Exchange credentials for a session."""
        return self._authenticate(
            "login", {"email": email, "password": password}, "Login failed"
        )

    def logout(self) -> None:
        """Drop the session in memory and on disk."""
        self.context.clear()
        try:
            self.store.clear()
        except sqlite3.Error as e:
            logger.error(f"Failed to clear persisted session: {e}")
        logger.info("Logged out")

    def restore(self) -> bool:
        """Rebuild the session from persisted state at startup.

        A cached user profile is trusted as is. Without one the token is
        validated against the backend, and a rejected token logs out.
        """
        token = self.store.load_token()
        if not token:
            logger.debug("No persisted session to restore")
            return False

        user = self.store.load_user()
        if user is not None:
            self.context.install(token, user)
            logger.info(f"Restored session for user {user.id} from cache")
            return True

        try:
            user = self._fetch_me(token)
        except (requests.RequestException, ValidationError) as e:
            logger.warning(f"Persisted session is no longer valid, logging out: {e}")
            self.logout()
            return False

        self._set_session(token, user)
        logger.info(f"Restored session for user {user.id}")
        return True

    def _authenticate(self, action: str, payload: dict, fallback: str) -> AuthUser:
        self.loading = True
        self.error = None
        try:
            data = self.gateway.post(f"{self.auth_prefix}/{action}", payload)
            return self._finish_login(data)
        except AuthError as e:
            self.error = e.message
            raise
        except requests.RequestException as e:
            self.error = error_message(e, fallback)
            raise AuthError(self.error) from e
        except ValidationError as e:
            self.error = fallback
            raise AuthError(fallback) from e
        finally:
            self.loading = False

    def _finish_login(self, data: Any) -> AuthUser:
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise AuthError("No token returned from server")

        profile = data.get("user")
        if isinstance(profile, dict):
            user = AuthUser.model_validate(profile)
        else:
            user = self._fetch_me(token)

        self._set_session(token, user)
        logger.info(f"Logged in as user {user.id}")
        return user

    def _fetch_me(self, token: str) -> AuthUser:
        data = self.gateway.get(f"{self.auth_prefix}/me", token=token)
        return AuthUser.model_validate(data)

    def _set_session(self, token: str, user: AuthUser) -> None:
        self.store.save(token, user)
        self.context.install(token, user)
