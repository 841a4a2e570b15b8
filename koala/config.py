"""Persisted configuration management."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .models import Config

CONFIG_PATH = (Path.home() / ".koala" / "config.json").expanduser()
APP_DIR = CONFIG_PATH.parent


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded or saved."""


def load_config() -> Config:
    if not CONFIG_PATH.exists():
        return Config()
    try:
        payload = json.loads(CONFIG_PATH.read_text())
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to parse configuration file: {exc}") from exc
    known = {f.name for f in fields(Config)}
    unknown = set(payload) - known
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
    return Config(**payload)


def save_config(config: Config) -> None:
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    data = {k: v for k, v in asdict(config).items() if v is not None}
    CONFIG_PATH.write_text(json.dumps(data, indent=2))


def update_config(**kwargs: Any) -> Config:
    config = load_config()
    for key, value in kwargs.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            raise ConfigError(f"Unknown configuration key: {key}")
    save_config(config)
    return config


def apply_env_overrides(config: Config, environ: Optional[Dict[str, str]] = None) -> Config:
    """Return a copy of ``config`` with deployment environment variables applied."""

    env = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}

    credentials = env.get("KOALA_GOOGLE_CREDENTIALS") or env.get("GOOGLE_APPLICATION_CREDENTIALS")
    if credentials:
        overrides["google_credentials"] = credentials
    if env.get("KOALA_DB_PATH"):
        overrides["db_path"] = env["KOALA_DB_PATH"]
    try:
        if env.get("PORT"):
            overrides["port"] = int(env["PORT"])
        if env.get("KOALA_AI_TIMEOUT"):
            overrides["ai_timeout"] = float(env["KOALA_AI_TIMEOUT"])
    except ValueError as exc:
        raise ConfigError(f"Invalid numeric environment override: {exc}") from exc

    return replace(config, **overrides)


def resolve_config() -> Config:
    """Load the stored configuration and layer environment overrides on top."""

    return apply_env_overrides(load_config())


def database_path(config: Config) -> Path:
    if config.db_path:
        return Path(config.db_path).expanduser()
    return APP_DIR / "records.db"
