"""Configuration loading from environment variables and scenesync.toml."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

logger = logging.getLogger(__name__)

_HOME_DIR = Path.home() / ".scenesync"
_CONFIG_FILENAME = "scenesync.toml"
_DEFAULT_API_URL = "http://127.0.0.1:9056"

MIN_POLL_MINUTES = 5
MAX_POLL_MINUTES = 60


@dataclass
class ApiConfig:
    """Bot HTTP API connection."""

    url: str = _DEFAULT_API_URL
    api_key: str = ""
    timeout: int = 30
    # Deprecated: identities now come from the API key.
    user_ids: list[str] = field(default_factory=list)


@dataclass
class VaultConfig:
    """Where scene documents live."""

    root: Path = field(default_factory=Path.cwd)
    scenes_folder: str = "RP Scenes"
    base_path: str = ""


@dataclass
class PollingConfig:
    """Reconciliation triggers."""

    enabled: bool = True
    interval_minutes: int = 15
    settle_delay: float = 1.0
    watch_interval: float = 2.0


@dataclass
class SceneSyncConfig:
    """Top-level scenesync configuration."""

    api: ApiConfig = field(default_factory=ApiConfig)
    vault: VaultConfig = field(default_factory=VaultConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    pid_file: Path = _HOME_DIR / "scenesync.pid"
    log_level: str = "INFO"


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _split_ids(value: object) -> list[str]:
    if isinstance(value, list):
        items = [str(v) for v in value]
    else:
        items = str(value).split(",")
    return [item.strip() for item in items if item.strip()]


def _clamp_interval(minutes: int) -> int:
    return max(MIN_POLL_MINUTES, min(MAX_POLL_MINUTES, minutes))


def load_config(config_path: Path | None = None) -> SceneSyncConfig:
    """Load configuration from environment variables and optional scenesync.toml.

    Priority: environment variables > scenesync.toml > defaults.
    """
    file_data: dict = {}
    if config_path:
        if config_path.exists():
            file_data = tomllib.loads(config_path.read_text())
        else:
            logger.warning("Config file %s not found; using environment and defaults", config_path)
    else:
        # Search current dir and ~/.scenesync/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, _HOME_DIR / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    api_data = file_data.get("api", {})
    vault_data = file_data.get("vault", {})
    polling_data = file_data.get("polling", {})

    api_url = os.getenv("SCENESYNC_API_URL", api_data.get("url", "")).strip()

    config = SceneSyncConfig(
        api=ApiConfig(
            url=(api_url or _DEFAULT_API_URL).rstrip("/"),
            api_key=os.getenv("SCENESYNC_API_KEY", api_data.get("api_key", "")).strip(),
            timeout=int(os.getenv("SCENESYNC_TIMEOUT", api_data.get("timeout", 30))),
            user_ids=_split_ids(os.getenv("SCENESYNC_USER_IDS", api_data.get("user_ids", []))),
        ),
        vault=VaultConfig(
            root=Path(os.getenv("SCENESYNC_VAULT", vault_data.get("root", str(Path.cwd()))))
            .expanduser(),
            scenes_folder=os.getenv(
                "SCENESYNC_SCENES_FOLDER", vault_data.get("scenes_folder", "RP Scenes")
            ).strip("/"),
            base_path=os.getenv("SCENESYNC_BASE_PATH", vault_data.get("base_path", "")),
        ),
        polling=PollingConfig(
            enabled=_as_bool(os.getenv("SCENESYNC_POLLING", polling_data.get("enabled", True))),
            interval_minutes=_clamp_interval(
                int(os.getenv("SCENESYNC_POLL_INTERVAL", polling_data.get("interval_minutes", 15)))
            ),
            settle_delay=float(polling_data.get("settle_delay", 1.0)),
            watch_interval=float(polling_data.get("watch_interval", 2.0)),
        ),
        log_level=os.getenv("SCENESYNC_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
