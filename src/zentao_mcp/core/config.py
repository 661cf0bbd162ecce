from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger("zentao_mcp.config")

DEFAULT_API_VERSION = "v1"
DEFAULT_REQUEST_TIMEOUT = 10.0
LEGACY_CONFIG_DIR = Path(os.getcwd()) / ".zentao"


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes"}


@dataclass
class Settings:
    log_level: str
    log_dir: str
    data_dir: str
    config_dir: str
    cache_dir: str
    debug: bool
    api_version: str
    request_timeout: float
    host: str
    port: int
    mcp_token: str | None

    @staticmethod
    def from_env() -> "Settings":
        default_home = str(Path(os.path.expanduser("~")) / ".zentao")
        config_dir = os.getenv("ZENTAO_CONFIG_DIR", "").strip() or default_home
        return Settings(
            log_level=os.getenv("ZENTAO_LOG_LEVEL", "info"),
            log_dir=os.getenv("ZENTAO_LOG_DIR") or str(Path(default_home) / "logs"),
            data_dir=os.getenv("ZENTAO_DATA_DIR") or str(Path(default_home) / "data"),
            config_dir=config_dir,
            cache_dir=os.getenv("ZENTAO_CACHE_DIR", "").strip() or str(Path(default_home) / "cache"),
            debug=_truthy(os.getenv("ZENTAO_DEBUG")),
            api_version=os.getenv("ZENTAO_API_VERSION", "").strip() or DEFAULT_API_VERSION,
            request_timeout=DEFAULT_REQUEST_TIMEOUT,
            host=os.getenv("ZENTAO_HOST", "127.0.0.1"),
            port=int(os.getenv("ZENTAO_PORT", "18791")),
            mcp_token=os.getenv("ZENTAO_MCP_TOKEN") or None,
        )

    @property
    def projects_cache_path(self) -> Path:
        return Path(self.cache_dir) / "projects.json"


@dataclass
class ZentaoConfig:
    """Connection details for one ZenTao deployment."""

    url: str
    username: str
    password: str
    api_version: str = DEFAULT_API_VERSION

    @property
    def base_url(self) -> str:
        return f"{self.url.rstrip('/')}/api.php/{self.api_version}"

    def is_complete(self) -> bool:
        return bool(self.url and self.username and self.password)

    def public_view(self) -> dict[str, str]:
        return {"url": self.url, "username": self.username, "api_version": self.api_version}


def normalize_config(raw: dict[str, Any]) -> ZentaoConfig:
    api_version = str(
        raw.get("api_version") or raw.get("apiVersion") or os.getenv("ZENTAO_API_VERSION") or DEFAULT_API_VERSION
    ).strip()
    return ZentaoConfig(
        url=str(raw.get("url") or "").strip(),
        username=str(raw.get("username") or "").strip(),
        password=str(raw.get("password") or ""),
        api_version=api_version or DEFAULT_API_VERSION,
    )


def config_candidates(settings: Settings) -> list[Path]:
    files = [Path(settings.config_dir) / "config.json", LEGACY_CONFIG_DIR / "config.json"]
    unique: list[Path] = []
    for path in files:
        resolved = path.resolve()
        if resolved not in unique:
            unique.append(resolved)
    return unique


def _read_config_file(path: Path) -> Optional[ZentaoConfig]:
    if not path.exists():
        return None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", path, exc)
        return None
    if not isinstance(raw, dict):
        logger.warning("Ignoring config file %s: expected a JSON object", path)
        return None
    config = normalize_config(raw)
    return config if config.is_complete() else None


def load_config(settings: Settings | None = None) -> Optional[ZentaoConfig]:
    """Resolve connection config: environment first, then config files."""
    settings = settings or Settings.from_env()
    from_env = normalize_config({
        "url": os.getenv("ZENTAO_URL"),
        "username": os.getenv("ZENTAO_USERNAME"),
        "password": os.getenv("ZENTAO_PASSWORD"),
        "api_version": settings.api_version,
    })
    if from_env.is_complete():
        return from_env
    for path in config_candidates(settings):
        config = _read_config_file(path)
        if config:
            return config
    return None


def save_config(config: ZentaoConfig, settings: Settings | None = None) -> Path:
    settings = settings or Settings.from_env()
    normalized = normalize_config(asdict(config))
    path = Path(settings.config_dir) / "config.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(normalized), indent=2), encoding="utf-8")
    return path
