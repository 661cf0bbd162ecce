from __future__ import annotations

import sys
from typing import Optional

import typer
import uvicorn
from dotenv import load_dotenv

app = typer.Typer(add_completion=False)


def _load_env() -> None:
    load_dotenv()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind host (default: ZENTAO_HOST or 127.0.0.1)"),
    port: Optional[int] = typer.Option(None, help="Bind port (default: ZENTAO_PORT or 18791)"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Serve MCP over HTTP at /mcp."""
    _load_env()
    from zentao_mcp.core.config import Settings

    settings = Settings.from_env()
    uvicorn.run(
        "zentao_mcp.core.gateway:create_app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        factory=True,
    )


@app.command()
def stdio() -> None:
    """Serve MCP over stdin/stdout, one JSON-RPC message per line."""
    _load_env()
    from zentao_mcp.core.config import Settings
    from zentao_mcp.core.logging_config import setup_logging
    from zentao_mcp.mcp.protocol import MCPProtocolHandler
    from zentao_mcp.mcp.stdio import serve_stdio

    settings = Settings.from_env()
    setup_logging(log_dir=settings.log_dir, log_level=settings.log_level, debug=settings.debug)
    handler = MCPProtocolHandler(settings)
    try:
        serve_stdio(handler, sys.stdin, sys.stdout)
    finally:
        if handler.session is not None:
            handler.session.close()


@app.command()
def configure(
    url: str = typer.Option(..., envvar="ZENTAO_URL", help="ZenTao base URL, e.g. https://zentao.example.com"),
    username: str = typer.Option(..., envvar="ZENTAO_USERNAME", help="Account name"),
    password: str = typer.Option(..., envvar="ZENTAO_PASSWORD", prompt=True, hide_input=True, help="Account password"),
    api_version: str = typer.Option("v1", envvar="ZENTAO_API_VERSION", help="REST API version"),
) -> None:
    """Store the ZenTao connection settings."""
    _load_env()
    from zentao_mcp.core.config import ZentaoConfig, save_config

    path = save_config(ZentaoConfig(url=url, username=username, password=password, api_version=api_version))
    typer.echo(f"Configuration saved to {path}")


@app.command()
def version() -> None:
    from zentao_mcp import __version__

    typer.echo(__version__)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
