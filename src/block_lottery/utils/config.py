"""
Configuration Management
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from block_lottery.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = Path("config") / "lottery.conf"

_ENV_SECTIONS = {
    "LOTTERY_": "lottery",
    "BLOCKCHAIN_": "blockchain",
    "OPERATOR_": "operator",
}


class LotterySettings(BaseModel):
    """Typed view of the ``lottery`` config section."""

    owner: str
    pool_address: str = "lottery-pool"
    ticket_price: int = 1_000_000
    min_players: int = 2
    min_blocks: int = 100
    winner_count: int = 3


class ChainSettings(BaseModel):
    """Typed view of the ``blockchain`` config section."""

    rpc_url: Optional[str] = None
    rpc_timeout: float = 10.0


class OperatorSettings(BaseModel):
    """Typed view of the ``operator`` config section."""

    auto_start_rounds: bool = True
    check_interval: float = 30.0


def load_config(config_file: Optional[Path] = None, env_file: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from files and environment variables"""
    # Load .env from the working directory unless told otherwise
    load_dotenv(env_file or Path(".env"))

    config: Dict[str, Any] = {}

    if config_file is None:
        config_file = Path(os.getenv("LOTTERY_CONFIG_FILE", str(DEFAULT_CONFIG_FILE)))
    config_file = Path(config_file)

    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                config.update(json.load(f))
            logger.info(f"Loaded configuration from {config_file}")
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in config file {config_file}: {e}")
            raise
    else:
        logger.warning(f"Config file {config_file} not found. Will only use environment variables.")

    # Override with environment variables, defined in .env
    config = _apply_env_overrides(config)

    logger.debug(f"Configuration after applying environment overrides: {json.dumps(config, indent=2)}")

    return config


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration"""
    for key, value in os.environ.items():
        # Convert key from PREFIX_NAME to section.name format
        for prefix, section in _ENV_SECTIONS.items():
            if key.startswith(prefix):
                name = key[len(prefix):].lower()
                break
        else:
            continue

        # LOTTERY_CONFIG_FILE only selects the file
        if section == "lottery" and name == "config_file":
            continue

        config.setdefault(section, {})[name] = value

    return config


def get_config_value(config: Dict[str, Any], key_path: str, default=None):
    """Get configuration value by dot-separated key path"""
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


def lottery_settings(config: Dict[str, Any]) -> LotterySettings:
    return LotterySettings.model_validate(config.get("lottery", {}))


def chain_settings(config: Dict[str, Any]) -> ChainSettings:
    return ChainSettings.model_validate(config.get("blockchain", {}))


def operator_settings(config: Dict[str, Any]) -> OperatorSettings:
    return OperatorSettings.model_validate(config.get("operator", {}))
