from __future__ import annotations

import hashlib

import pytest

from tests.fakes import make_config
from zentao_mcp.core.errors import AuthError, RequestError
from zentao_mcp.core.session import ZentaoSession


def test_token_is_fetched_once(session, backend) -> None:
    backend.projects = [{"id": 1}]
    backend.products = [{"id": 2}]
    session.get_products()
    session.get_projects(refresh=True)
    token_calls = backend.calls_to("POST", "/tokens")
    assert len(token_calls) == 1
    assert token_calls[0].body == {
        "account": "alice",
        "password": hashlib.md5(b"secret").hexdigest(),
    }


def test_auth_error_carries_status_and_body(settings, backend) -> None:
    backend.token_status = 403
    backend.token_body = {"error": "bad password"}
    s = ZentaoSession(make_config(), settings, transport=backend.transport())
    with pytest.raises(AuthError) as excinfo:
        s.get_products()
    assert excinfo.value.status_code == 403
    assert excinfo.value.body == {"error": "bad password"}
    s.close()


def test_auth_error_when_token_missing(settings, backend) -> None:
    backend.token_body = {"status": "ok"}
    s = ZentaoSession(make_config(), settings, transport=backend.transport())
    with pytest.raises(AuthError, match="no token"):
        s.client.credentials.get_token()
    s.close()


def test_backend_errors_surface_as_request_errors(session, backend) -> None:
    with pytest.raises(RequestError) as excinfo:
        session.get_task_detail(12345)
    assert excinfo.value.status_code == 404
    assert "task not found" in str(excinfo.value)


def test_failed_exchange_is_not_retried(settings, backend) -> None:
    backend.token_status = 500
    backend.token_body = {"error": "down"}
    s = ZentaoSession(make_config(), settings, transport=backend.transport())
    for _ in range(2):
        with pytest.raises(AuthError):
            s.get_products()
    assert len(backend.calls_to("POST", "/tokens")) == 1
    s.close()
