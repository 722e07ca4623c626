"""Load Nexus configuration from config.yaml, with env-var overrides."""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("nexus")

REPO_DIR = Path(__file__).resolve().parent.parent.parent
_DEFAULT_CONFIG_PATH = REPO_DIR / "config" / "config.yaml"

DEFAULTS: dict[str, Any] = {
    "database": {
        "path": str(REPO_DIR / "config" / "nexus.db"),
    },
    "assistant": {
        "api_key": None,
        "assistant_id": None,
        "base_url": "https://api.openai.com/v1",
        "beta_header": "assistants=v2",
        "poll_interval": 1.0,
        "chat_max_attempts": 30,
        "analyze_max_attempts": 60,
        "request_timeout": 30,
    },
    "auth": {
        "session_ttl_hours": 24,
    },
    "cors_origins": ["http://localhost:5173", "http://127.0.0.1:5173"],
    "log_dir": str(REPO_DIR / "logs"),
    "log_level": "INFO",
}


def load_env_local(env_file: Path | None = None) -> None:
    """Load .env.local into os.environ without clobbering existing values."""
    env_file = env_file or REPO_DIR / ".env.local"
    if not env_file.is_file():
        return
    for line in env_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" in line:
            key, _, value = line.partition("=")
            os.environ.setdefault(key.strip(), value.strip())


def load_config(config_path: Path | str | None = None) -> dict[str, Any]:
    """Load configuration from YAML file, with env-var overrides.

    An explicitly passed path must exist. When no path is given and the
    default file is absent, the built-in defaults are used.

    Environment variable overrides (if set):
        NEXUS_DB_PATH     -> database.path
        OPENAI_API_KEY    -> assistant.api_key
        ASSISTANT_ID      -> assistant.assistant_id
        OPENAI_BASE_URL   -> assistant.base_url
        NEXUS_LOG_DIR     -> log_dir
        NEXUS_LOG_LEVEL   -> log_level
    """
    cfg = copy.deepcopy(DEFAULTS)

    path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH
    if path.exists():
        with open(path, encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Config file must contain a mapping: {path}")
        _deep_merge(cfg, raw)
    elif config_path:
        raise FileNotFoundError(f"Config file not found: {path}")

    _env_override(cfg, "NEXUS_DB_PATH", "database", "path")
    _env_override(cfg, "OPENAI_API_KEY", "assistant", "api_key")
    _env_override(cfg, "ASSISTANT_ID", "assistant", "assistant_id")
    _env_override(cfg, "OPENAI_BASE_URL", "assistant", "base_url")
    _env_override(cfg, "NEXUS_LOG_DIR", "log_dir")
    _env_override(cfg, "NEXUS_LOG_LEVEL", "log_level")

    _validate(cfg)
    return cfg


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    for key, val in override.items():
        if isinstance(val, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], val)
        else:
            base[key] = val


def _env_override(cfg: dict, env_key: str, *keys: str) -> None:
    """Override a nested config value from an environment variable."""
    val = os.environ.get(env_key)
    if val is None:
        return
    target = cfg
    for k in keys[:-1]:
        target = target.setdefault(k, {})
    target[keys[-1]] = val


def _validate(cfg: dict[str, Any]) -> None:
    """Validate numeric settings; missing AI credentials are only warned about."""
    assistant = cfg["assistant"]
    try:
        assistant["poll_interval"] = float(assistant["poll_interval"])
        assistant["chat_max_attempts"] = int(assistant["chat_max_attempts"])
        assistant["analyze_max_attempts"] = int(assistant["analyze_max_attempts"])
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid assistant polling settings: {exc}") from exc

    if assistant["poll_interval"] < 0:
        raise ValueError("assistant.poll_interval must be >= 0")
    if assistant["chat_max_attempts"] < 1 or assistant["analyze_max_attempts"] < 1:
        raise ValueError("assistant max attempts must be >= 1")

    if not assistant.get("api_key"):
        logger.warning("OPENAI_API_KEY is not set; assistant endpoints will report a configuration error")
    if not assistant.get("assistant_id"):
        logger.warning("ASSISTANT_ID is not set; assistant endpoints will report a configuration error")


def setup_logging(cfg: dict[str, Any]) -> None:
    """Configure root logging: stderr + rotating file."""
    log_dir = Path(cfg["log_dir"])
    log_dir.mkdir(parents=True, exist_ok=True)

    from logging.handlers import RotatingFileHandler

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    root = logging.getLogger("nexus")
    root.setLevel(getattr(logging, str(cfg.get("log_level", "INFO")).upper(), logging.INFO))
    if root.handlers:
        return

    # stderr
    sh = logging.StreamHandler()
    sh.setFormatter(fmt)
    root.addHandler(sh)

    # rotating file
    fh = RotatingFileHandler(log_dir / "nexus.log", maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    root.addHandler(fh)
