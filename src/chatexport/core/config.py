"""Configuration loader for chatexport."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

log = logging.getLogger(__name__)

DEFAULTS: dict = {
    "home": "~/.chatexport",
    "log_level": "warning",
    "app_name": "AI Chat",
    "export": {
        "format": "markdown",
        "target": "local",
        "output_dir": ".",
        "message_filter": "all",
        "label_language": "tr",
        "date_stamp_mode": "none",
        "syntax_highlight": True,
    },
    "navigation": {
        "load_timeout_seconds": 20,
        "settle_seconds": 1.2,
        "extract_attempts": 16,
        "extract_retry_seconds": 0.8,
    },
    # Weak-extraction scoring. Tuned empirically; only needs to be good
    # enough to trigger a fallback extraction pass.
    "scoring": {
        "min_single_text_length": 40,
        "rich_bonus": 80,
        "per_message": 20,
        "weak_total": 90,
    },
    "cache": {
        "image_capacity": 100,
    },
    "targets": {
        "notion": {
            "token": "keyring",
            "parent_page_id": "",
            "api_version": "2022-06-28",
        },
        "gdrive": {
            "token": "keyring",
        },
        "onedrive": {
            "token": "keyring",
            "simple_upload_limit_mb": 4,
            "chunk_size_mb": 5,
        },
    },
}


def resolve_home() -> Path:
    """Resolve CHATEXPORT_HOME: env var > default ~/.chatexport."""
    env_home = os.environ.get("CHATEXPORT_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path("~/.chatexport").expanduser().resolve()


def config_path(home: Path | None = None) -> Path:
    """Return the path to config.yaml."""
    if home is None:
        home = resolve_home()
    return home / "config.yaml"


def load_config(path: Path | None = None) -> dict:
    """Load config.yaml and merge with defaults.

    Args:
        path: Explicit path to config.yaml. If None, uses default location.

    Returns:
        Merged configuration dict.
    """
    if path is None:
        path = config_path()

    user_config: dict = {}
    if path.exists():
        try:
            raw = path.read_text(encoding="utf-8")
            user_config = yaml.safe_load(raw) or {}
        except (OSError, yaml.YAMLError):
            log.warning("Failed to read config at %s, using defaults", path, exc_info=True)

    merged = _deep_merge(DEFAULTS, user_config)

    home_str = os.environ.get("CHATEXPORT_HOME") or merged.get("home", "~/.chatexport")
    merged["home"] = str(Path(home_str).expanduser().resolve())

    return merged


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
