"""Error taxonomy and user-facing message resolution."""

from typing import Optional

import requests


class JobPilotError(Exception):
    """Base class for errors raised by the client core."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(JobPilotError):
    """Credentials rejected, or the session token is invalid or expired."""


class FetchError(JobPilotError):
    """Application or interview retrieval failed."""


class MutationError(JobPilotError):
    """The backend rejected a write."""


class UpdateError(MutationError):
    pass


class DeleteError(MutationError):
    pass


class SaveError(MutationError):
    pass


class MergeWarning(UserWarning):
    """Interview list could not be merged. Logged, never surfaced."""


def _server_message(response: Optional[requests.Response]) -> Optional[str]:
    if response is None:
        return None

    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        for key in ("message", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    elif isinstance(payload, str) and payload.strip():
        return payload.strip()

    text = response.text if isinstance(response.text, str) else ""
    return text.strip() or None


def error_message(exc: BaseException, fallback: str) -> str:
    """Resolve the message to show for a failed remote call.

    Precedence: the server's error payload, then the transport-level
    exception text, then the operation's fallback.
    """
    if isinstance(exc, requests.RequestException):
        message = _server_message(exc.response)
        if message:
            return message

    text = str(exc).strip()
    return text or fallback
