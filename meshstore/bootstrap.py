# bootstrap.py
from __future__ import annotations
import io
import logging
import os
import secrets
import time
import tomllib
from pathlib import Path

# pip install toml platformdirs
import toml
from platformdirs import user_data_dir

from .datastore import DataStore, IngestPool
from .packets import build_identity_packet
from .store import Store

APP_NAME = "meshstore"
DEFAULT_MAX_SESSIONS = 4
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(level: str | int = "INFO"):
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _app_dir(profile="default") -> Path:
    d = Path(user_data_dir(APP_NAME)) / profile
    d.mkdir(parents=True, exist_ok=True)
    return d


def _default_cfg(dirpath: Path, alias: str, max_sessions: int, log_level: str) -> dict:
    return {
        "storage": {"path": str(dirpath / "store.sqlite")},
        "user": {"alias": alias},
        "ingest": {"max_sessions": max_sessions},
        "logging": {"level": log_level},
        "node": {"profile": dirpath.name, "created_at": int(time.time())},
        "version": 1,
    }


def _write_toml(path: Path, cfg: dict):
    with io.open(path, "w", encoding="utf-8") as f:
        toml.dump(cfg, f)


def load_settings(path: str | Path) -> dict:
    with open(path, "rb") as f:
        return tomllib.load(f)


def ensure_initialized(
    profile: str | None = None,
    settings_path: str | None = None,
    alias: str | None = None,
    max_sessions: int | None = None,
    data_dir: str | None = None,
):
    """
    Auto-creates settings.toml on first run.
    Returns (cfg_path, cfg_dict).
    Env overrides:
      MESH_PROFILE, MESH_ALIAS, MESH_MAX_SESSIONS, MESH_LOG_LEVEL
    """
    profile = profile or os.getenv("MESH_PROFILE", "default")
    alias = alias or os.getenv("MESH_ALIAS", f"user-{secrets.token_hex(3)}")
    if max_sessions is None:
        max_sessions = int(os.getenv("MESH_MAX_SESSIONS", DEFAULT_MAX_SESSIONS))
    log_level = os.getenv("MESH_LOG_LEVEL", "INFO")

    if data_dir:
        d = Path(data_dir) / profile
        d.mkdir(parents=True, exist_ok=True)
    else:
        d = _app_dir(profile)
    cfg_file = Path(settings_path) if settings_path else (d / "settings.toml")

    if not cfg_file.exists():
        cfg = _default_cfg(d, alias, max_sessions, log_level)
        _write_toml(cfg_file, cfg)
        logger.info("wrote new settings for profile %r to %s", profile, cfg_file)
    else:
        cfg = load_settings(cfg_file)

    return str(cfg_file), cfg


def open_datastore(cfg: dict) -> DataStore:
    """Open the configured store, minting the local identity on first use."""
    ds = DataStore(Store(cfg["storage"]["path"]))
    if ds.get_primary_local_peer() is None:
        alias = (cfg.get("user") or {}).get("alias") or "anonymous"
        ds.mint_local_identity(alias, build_identity_packet)
    return ds


def open_ingest_pool(ds: DataStore, cfg: dict) -> IngestPool:
    max_sessions = int((cfg.get("ingest") or {}).get("max_sessions", DEFAULT_MAX_SESSIONS))
    return IngestPool(ds, max_sessions=max_sessions)
