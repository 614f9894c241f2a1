from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel


class PostgrestConfig(BaseModel):
    """Configuration for a PostgREST (or Supabase) record store."""

    url: Optional[str] = None
    api_key: Optional[str] = None
    timeout: float = 10.0


class StoreConfig(BaseModel):
    """Record store configuration settings."""

    backend: Literal["inmemory", "sql", "postgrest"] = "inmemory"
    database_url: Optional[str] = None
    postgrest: PostgrestConfig = PostgrestConfig()


class DisplayConfig(BaseModel):
    """Sizes used by the presentation surfaces."""

    executions_page_size: int = 50
    steps_page_size: int = 100
    trend_days: int = 30


class FlowscopeConfig(BaseModel):
    """Top-level configuration model."""

    store: StoreConfig = StoreConfig()
    display: DisplayConfig = DisplayConfig()
    log_level: str = "WARNING"


def load_config(path: Optional[str] = None) -> FlowscopeConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to FLOWSCOPE_CONFIG env
            variable or 'flowscope.yaml' in the current directory.
    """

    config_path = path or os.getenv("FLOWSCOPE_CONFIG", "flowscope.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = FlowscopeConfig(**data)
    else:
        config = FlowscopeConfig()

    env_db_url = os.getenv("FLOWSCOPE_DATABASE_URL")
    if env_db_url:
        config.store.database_url = env_db_url
    env_rest_url = os.getenv("FLOWSCOPE_POSTGREST_URL")
    if env_rest_url:
        config.store.postgrest.url = env_rest_url
    env_rest_key = os.getenv("FLOWSCOPE_POSTGREST_KEY")
    if env_rest_key:
        config.store.postgrest.api_key = env_rest_key
    return config
