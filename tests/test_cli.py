from __future__ import annotations

import json

from typer.testing import CliRunner

from zentao_mcp import __version__
from zentao_mcp.cli import app

runner = CliRunner()


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_configure_writes_config(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("ZENTAO_CONFIG_DIR", str(tmp_path))
    result = runner.invoke(app, [
        "configure",
        "--url", "https://zentao.example.com/",
        "--username", "carol",
        "--password", "pw",
    ])
    assert result.exit_code == 0, result.output
    saved = json.loads((tmp_path / "config.json").read_text())
    assert saved == {
        "url": "https://zentao.example.com/",
        "username": "carol",
        "password": "pw",
        "api_version": "v1",
    }
