from __future__ import annotations

import pytest

from tests.fakes import FakeZentao, make_config, make_settings
from zentao_mcp.core import logging_config
from zentao_mcp.core.session import ZentaoSession


class Clock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def isolated_log_dir(tmp_path, monkeypatch):
    """Keep log files, including the central audit mirror, under tmp_path."""
    log_dir = str(tmp_path / "logs")
    monkeypatch.setenv("ZENTAO_LOG_DIR", log_dir)
    monkeypatch.setattr(logging_config, "_log_dir", None)
    return log_dir


@pytest.fixture
def backend() -> FakeZentao:
    return FakeZentao()


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def session(backend, settings, clock):
    s = ZentaoSession(make_config(), settings, transport=backend.transport(), clock=clock)
    yield s
    s.close()
