"""
Transfer Configuration

Loads node and chain settings from a YAML file, falling back to defaults
for anything missing. AVAIL_NODE_URL overrides the endpoint.
"""

import os
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Dict, Optional, Any

import yaml
from loguru import logger


DEFAULT_NODE_URL = "wss://turing-rpc.avail.so/ws"
NODE_URL_ENV = "AVAIL_NODE_URL"

_INT_FIELDS = ("ss58_format", "default_decimals", "display_decimals")
_STR_FIELDS = ("node_url", "crypto_type", "default_token", "transfer_call")


def _as_int(name: str, value: Any) -> int:
    # YAML gives "42" for quoted numbers; bools are ints to Python but never valid here
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _as_float(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None


@dataclass
class TransferConfig:
    """Settings for one transaction manager"""
    node_url: str = DEFAULT_NODE_URL
    ss58_format: int = 42  # Avail / generic Substrate
    crypto_type: str = "sr25519"
    default_decimals: int = 18
    default_token: str = "AVAIL"
    display_decimals: int = 4
    finalization_timeout: Optional[float] = 600.0  # seconds, None waits forever
    transfer_call: str = "transfer_keep_alive"
    type_registry: Optional[Dict[str, Any]] = field(default=None)

    def __post_init__(self):
        for name in _INT_FIELDS:
            setattr(self, name, _as_int(name, getattr(self, name)))
        for name in _STR_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"{name} must be a non-empty string, got {value!r}")
        if self.finalization_timeout is not None:
            self.finalization_timeout = _as_float('finalization_timeout', self.finalization_timeout)
        if self.type_registry is not None and not isinstance(self.type_registry, dict):
            raise ValueError(f"type_registry must be a mapping, got {type(self.type_registry).__name__}")

        if self.crypto_type not in ("sr25519", "ed25519"):
            raise ValueError(f"Unsupported crypto type: {self.crypto_type}")
        if self.finalization_timeout is not None and self.finalization_timeout <= 0:
            raise ValueError("finalization_timeout must be positive or null")
        if self.display_decimals < 0:
            raise ValueError("display_decimals must not be negative")

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "TransferConfig":
        """
        Load configuration from YAML

        Args:
            config_path: Path to config file (optional)

        Returns:
            TransferConfig with file values over defaults, env over both

        Raises:
            ValueError: A known key holds a value of the wrong type or range
        """
        values: Dict[str, Any] = {}

        if config_path:
            try:
                config_file = Path(config_path)
                if config_file.exists():
                    with open(config_file, 'r', encoding='utf-8') as f:
                        raw = yaml.safe_load(f) or {}

                    if not isinstance(raw, dict):
                        logger.warning(
                            f"Config file {config_file} holds a {type(raw).__name__}, "
                            f"not a mapping, using defaults"
                        )
                    else:
                        known = {fld.name for fld in fields(cls)}
                        for key, value in raw.items():
                            if key in known:
                                values[key] = value
                            else:
                                logger.warning(f"Ignoring unknown config key: {key}")

                        logger.info(f"Loaded config from {config_file}")
                else:
                    logger.warning(f"Config file {config_file} not found, using defaults")

            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config from {config_path}: {e}, using defaults")
                values = {}

        env_url = os.getenv(NODE_URL_ENV)
        if env_url:
            values['node_url'] = env_url

        return cls(**values)

    def with_endpoint(self, node_url: Optional[str]) -> "TransferConfig":
        """Copy with a different endpoint (None keeps the current one)"""
        if not node_url:
            return self
        data = asdict(self)
        data['node_url'] = node_url
        return TransferConfig(**data)
