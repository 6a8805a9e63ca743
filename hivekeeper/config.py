"""
Cleanup engine configuration loader.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from hivekeeper.errors import ConfigError

DEFAULT_CONFIG_PATH = Path("configs/hivekeeper.yaml")
ENV_PREFIX = "HIVEKEEPER_"


class CleanupConfig(BaseModel):
    """Cleanup engine configuration."""
    dry_run: bool = False
    page_size: int = Field(500, gt=0)
    delete_batch_size: int = Field(1000, gt=0, le=1000)
    scheduler_delay_seconds: float = Field(300, gt=0)
    retention_period_days: int = Field(7, ge=0)
    repository_cleanup_delay_seconds: float = Field(86400, gt=0)
    db_path: str = "data/hivekeeper.db"
    aws_region: Optional[str] = None
    metrics_port: Optional[int] = None


def _from_yaml(config_path: Path) -> Dict[str, Any]:
    with open(config_path, 'r') as f:
        config_data = yaml.safe_load(f) or {}
    if not isinstance(config_data, dict):
        raise ConfigError(f"Configuration file {config_path} must contain a mapping")
    # Settings may sit at the top level or under a 'hivekeeper' section
    return dict(config_data.get("hivekeeper", config_data))


def _from_env() -> Dict[str, str]:
    overrides = {}
    for name in CleanupConfig.model_fields:
        value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if value is not None and value != "":
            overrides[name] = value
    return overrides


def load_cleanup_config(config_path: Optional[Path] = None) -> CleanupConfig:
    """
    Load the cleanup configuration.

    Values come from the YAML file (``configs/hivekeeper.yaml`` unless given),
    then ``HIVEKEEPER_*`` environment variables, which win. A ``.env`` file is
    loaded first if present. A missing default file means defaults apply; a
    missing explicit file is an error.
    """
    load_dotenv()

    explicit = config_path is not None
    config_path = Path(config_path) if explicit else DEFAULT_CONFIG_PATH

    config_data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            config_data = _from_yaml(config_path)
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse configuration file {config_path}: {e}") from e
    elif explicit:
        raise ConfigError(f"Configuration file not found: {config_path}")

    config_data.update(_from_env())

    try:
        return CleanupConfig(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid cleanup configuration: {e}") from e
