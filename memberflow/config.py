from __future__ import annotations

import os
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_EXECUTION_LIST_LIMIT,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_STEP_TIMEOUT_SECONDS,
)


class EngineConfig(BaseModel):
    """Execution engine settings."""

    step_timeout_seconds: float = Field(default=DEFAULT_STEP_TIMEOUT_SECONDS, gt=0)
    execution_list_limit: int = Field(default=DEFAULT_EXECUTION_LIST_LIMIT, ge=1)


class HttpConfig(BaseModel):
    """Settings for the webhook HTTP client."""

    timeout_seconds: float = Field(default=DEFAULT_HTTP_TIMEOUT_SECONDS, gt=0)
    default_headers: Dict[str, str] = Field(default_factory=dict)


class MemberflowConfig(BaseModel):
    """Top-level configuration model."""

    engine: EngineConfig = EngineConfig()
    http: HttpConfig = HttpConfig()
    database_url: Optional[str] = None
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> MemberflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to MEMBERFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("MEMBERFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = MemberflowConfig(**data)
    else:
        config = MemberflowConfig()

    env_db_url = os.getenv("MEMBERFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
