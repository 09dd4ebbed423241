"""Configuration management."""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel

BASE_DIR = Path(__file__).parent.parent


class Config(BaseModel):
    """Client configuration."""

    api_base_url: str
    auth_prefix: str = "/api/auth"
    request_timeout: float = 10.0
    session_db: Path = BASE_DIR / "data" / "session.sqlite"
    # Visible scope when no session user is resolved: nothing unless enabled.
    show_all_when_anonymous: bool = False
    log_level: str = "INFO"


_config: Optional[Config] = None


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from YAML file."""
    global _config

    if _config is not None:
        return _config

    if config_path is None:
        config_path = BASE_DIR / "config" / "config.yaml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}. "
            "Copy config/config.yaml.example to config/config.yaml and fill in your settings."
        )

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    _config = Config(**data)
    return _config


def get_config() -> Config:
    """Get the loaded configuration."""
    if _config is None:
        return load_config()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next load reads from disk."""
    global _config
    _config = None
