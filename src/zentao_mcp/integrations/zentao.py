from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Optional

import httpx

from zentao_mcp.core.config import DEFAULT_REQUEST_TIMEOUT, ZentaoConfig
from zentao_mcp.core.errors import AuthError, RequestError, ResponseShapeError

logger = logging.getLogger("zentao_mcp.zentao")

_BODY_PREVIEW = 500


def _decode(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return resp.text


class CredentialHolder:
    """Lazily exchanges the account password for a session token.

    Both outcomes are kept for the lifetime of the holder: the token is
    reused without another round trip, and a failed exchange is re-raised
    on every later call. There is no refresh; a token the backend later
    rejects surfaces as a ``RequestError``.
    """

    def __init__(self, http: httpx.Client, username: str, password: str) -> None:
        self._http = http
        self._username = username
        self._password = password
        self._token: Optional[str] = None
        self._failure: Optional[AuthError] = None

    @staticmethod
    def password_digest(password: str) -> str:
        return hashlib.md5(password.encode("utf-8")).hexdigest()

    def get_token(self) -> str:
        if self._token:
            return self._token
        if self._failure is not None:
            raise self._failure
        try:
            self._token = self._exchange()
        except AuthError as exc:
            self._failure = exc
            raise
        return self._token

    def _exchange(self) -> str:
        logger.debug("Requesting session token for %s", self._username)
        payload = {"account": self._username, "password": self.password_digest(self._password)}
        try:
            resp = self._http.post("/tokens", json=payload)
        except httpx.HTTPError as exc:
            raise AuthError(f"Login failed: {exc}") from exc
        body = _decode(resp)
        if resp.status_code not in (200, 201):
            raise AuthError(
                f"Login failed: HTTP {resp.status_code} {str(body)[:_BODY_PREVIEW]}",
                status_code=resp.status_code,
                body=body,
            )
        token = body.get("token") if isinstance(body, dict) else None
        if not token:
            raise AuthError(
                f"Login failed: response has no token: {str(body)[:_BODY_PREVIEW]}",
                status_code=resp.status_code,
                body=body,
            )
        return str(token)


class ZentaoClient:
    """Thin authenticated JSON client for the ZenTao REST API."""

    def __init__(
        self,
        config: ZentaoConfig,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config
        self._http = httpx.Client(base_url=config.base_url, timeout=timeout, transport=transport)
        self.credentials = CredentialHolder(self._http, config.username, config.password)

    @property
    def username(self) -> str:
        return self.config.username

    def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        form: dict[str, str] | None = None,
    ) -> Any:
        """Send an authenticated request and return the decoded body.

        Raises ``RequestError`` on transport failures and non-2xx statuses.
        """
        token = self.credentials.get_token()
        logger.debug(
            "%s %s params=%s json=%s form=%s",
            method, path, bool(params), json_body is not None, form is not None,
        )
        kwargs: dict[str, Any] = {"params": params, "headers": {"Token": token}}
        if json_body is not None:
            kwargs["json"] = json_body
        elif form is not None:
            kwargs["data"] = form
        try:
            resp = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise RequestError(f"{method} {path} failed: {exc}") from exc
        body = _decode(resp)
        logger.debug("%s %s -> %s", method, path, resp.status_code)
        if not resp.is_success:
            message = body.get("message") if isinstance(body, dict) else None
            raise RequestError(
                f"{method} {path} failed: HTTP {resp.status_code} {message or str(body)[:_BODY_PREVIEW]}",
                status_code=resp.status_code,
                body=body,
            )
        return body

    def get_object(self, path: str, key: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET a single resource that may or may not be wrapped under ``key``."""
        payload = self.request("GET", path, params=params)
        if isinstance(payload, dict):
            inner = payload.get(key)
            if isinstance(inner, dict):
                return inner
            if key not in payload:
                return payload
        raise ResponseShapeError(f"GET {path}: expected an object, got {str(payload)[:_BODY_PREVIEW]}", payload)

    def get_list(
        self,
        path: str,
        key: str,
        params: dict[str, Any] | None = None,
        required: bool = True,
    ) -> list[Any]:
        """GET a listing that is either a bare list or ``{key: [...]}``.

        A missing key yields ``[]`` unless ``required`` is set.
        """
        payload = self.request("GET", path, params=params)
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict):
            items = payload.get(key)
            if isinstance(items, list):
                return items
            if items is None and not required:
                return []
        raise ResponseShapeError(f"GET {path}: expected a {key} list, got {str(payload)[:_BODY_PREVIEW]}", payload)

    def close(self) -> None:
        self._http.close()
