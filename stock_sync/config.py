"""
Configuration management for the Stock Sync API.
"""

import json
import re
from pathlib import Path
from typing import Dict, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    woo_config_path: str = Field(default="./woo_config.json")
    redis_url: str = Field(default="redis://localhost:6379/0")
    log_level: str = Field(default="INFO")

    # Stock sync jobs
    job_ttl_seconds: int = Field(default=1800, ge=60)
    job_lock_ttl_seconds: int = Field(default=120, ge=5)
    max_upload_bytes: int = Field(default=5 * 1024 * 1024, ge=1)
    default_chunk_size: int = Field(default=25, ge=5, le=200)


_settings = Settings()


def load_stores_config(config_path: Optional[str] = None) -> Dict:
    """
    Load stores configuration from JSON file.

    Args:
        config_path: Optional path to config file. If None, uses WOO_CONFIG_PATH.

    Returns:
        Dict with 'stores' key.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config is invalid.
    """
    path = Path(config_path or _settings.woo_config_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError("Config must be a JSON object")

    if "stores" not in data:
        raise ValueError("Config must have 'stores' key")

    return data


def get_all_stores(config_path: Optional[str] = None) -> Dict[str, Dict]:
    """
    Get all stores configuration.

    Args:
        config_path: Optional path to config file.

    Returns:
        Dict mapping store names to their configs.
    """
    config = load_stores_config(config_path)
    return config.get("stores", {})


def generate_store_id(store_name: str) -> str:
    """
    Generate a stable store_id (slug) from store name.

    Args:
        store_name: Store display name.

    Returns:
        URL-safe slug.
    """
    slug = re.sub(r'[^\w\s-]', '', store_name.lower())
    slug = re.sub(r'[-\s]+', '-', slug)
    return slug.strip('-')


def get_settings() -> Settings:
    """Get application settings."""
    return _settings
