"""HTTP client for the JobPilot backend."""

import logging
from typing import Any, Optional

import requests
from requests.auth import AuthBase

from .config import Config
from .session import SessionContext

logger = logging.getLogger(__name__)


class BearerAuth(AuthBase):
    """Attach the session token to outgoing requests.

    The token is read when the request is prepared, not when the hook is
    built, so logging out takes effect on the next call. With no token the
    header is omitted entirely.
    """

    def __init__(self, context: SessionContext, token: Optional[str] = None):
        self.context = context
        self.token = token

    def __call__(self, request: requests.PreparedRequest) -> requests.PreparedRequest:
        token = self.token or self.context.token
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
        else:
            request.headers.pop("Authorization", None)
        return request


class RemoteGateway:
    """Thin wrapper over a `requests.Session` bound to one backend."""

    def __init__(
        self,
        base_url: str,
        context: SessionContext,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.context = context
        self.timeout = timeout
        self.http = session or requests.Session()

    @classmethod
    def from_config(cls, config: Config, context: SessionContext) -> "RemoteGateway":
        return cls(config.api_base_url, context, timeout=config.request_timeout)

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "RemoteGateway":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        token: Optional[str] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        `token` overrides the session token for this call only. Raises
        `requests.HTTPError` for error statuses. An empty body yields None
        and a non-JSON body is returned as text.
        """
        url = self.url(path)
        logger.debug(f"{method} {url}")

        response = self.http.request(
            method,
            url,
            json=json,
            auth=BearerAuth(self.context, token),
            timeout=self.timeout,
        )
        response.raise_for_status()

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            # Some endpoints acknowledge with plain text.
            return response.text

    def get(self, path: str, **kwargs) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, payload: Any = None, **kwargs) -> Any:
        return self.request("POST", path, json=payload, **kwargs)

    def patch(self, path: str, payload: Any = None, **kwargs) -> Any:
        return self.request("PATCH", path, json=payload, **kwargs)

    def delete(self, path: str, **kwargs) -> Any:
        return self.request("DELETE", path, **kwargs)
