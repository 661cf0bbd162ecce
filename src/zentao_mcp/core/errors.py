"""Error taxonomy for the ZenTao backend layer."""
from __future__ import annotations

from typing import Any


class ZentaoError(RuntimeError):
    pass


class AuthError(ZentaoError):
    """Credential exchange failed. Fatal until the process restarts."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RequestError(ZentaoError):
    """Non-2xx status or transport failure on an authenticated call."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ResponseShapeError(ZentaoError):
    """Success status, but the payload is missing the fields we need."""

    def __init__(self, message: str, payload: Any = None) -> None:
        super().__init__(message)
        self.payload = payload


class ValidationError(ZentaoError):
    pass


class CreationError(ZentaoError):
    pass


class NotInitializedError(ZentaoError):
    pass
