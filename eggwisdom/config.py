"""
EggWisdom configuration - centralized settings for the rewards engine.

Configuration Hierarchy (highest to lowest priority):
1. Environment variables (EGGWISDOM_<SECTION>_<FIELD>)
2. Config file (JSON, TOML or YAML)
3. Default values

Example:
    config = EggWisdomConfig.load("eggwisdom.toml")
    print(config.boost.multiplier_scheme)

    # EGGWISDOM_BOOST_MULTIPLIER_SCHEME=tier overrides the file
"""

from __future__ import annotations

import json
import logging
import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import toml
import yaml

from .rewards.amounts import Ratio
from .rewards.boost import BoostNotifier, BoostRegistry, BoostStore, BurnPrimitive

logger = logging.getLogger(__name__)

_TRUE_STRINGS = ("1", "true", "yes", "on")
_FALSE_STRINGS = ("0", "false", "no", "off")

MULTIPLIER_SCHEMES = ("flat", "tier")


# =============================================================================
# Configuration Sections
# =============================================================================

@dataclass
class BoostConfig:
    """Boost multiplier scheme."""
    multiplier_scheme: str = "flat"  # "flat" -> flat_multiplier; "tier" -> per-tier multiplier
    flat_multiplier: str = "2.0"

    def __post_init__(self):
        if self.multiplier_scheme not in MULTIPLIER_SCHEMES:
            raise ValueError(f"multiplier_scheme must be one of {MULTIPLIER_SCHEMES}")
        self.flat_multiplier = str(self.flat_multiplier)
        if Ratio.of(self.flat_multiplier) < Ratio.ONE:
            raise ValueError("flat_multiplier must be at least 1")

    def resolved_flat_multiplier(self) -> Optional[Ratio]:
        if self.multiplier_scheme == "tier":
            return None
        return Ratio.of(self.flat_multiplier)


@dataclass
class NetworkConfig:
    """Flow network the contract lives on. Informational; no transport here."""
    access_node: str = "https://rest-testnet.onflow.org"
    network: str = "testnet"
    contract_address: str = "0xed1691ab54f4f8d4"
    discovery_wallet: str = "https://fcl-discovery.onflow.org/testnet/authn"


@dataclass
class AccountsConfig:
    """Payout accounts."""
    platform_account: str = "0xed1691ab54f4f8d4"


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "text"  # "json" or "text"
    file: Optional[str] = None
    redact: bool = True

    def __post_init__(self):
        # Env overrides and hand-written files deliver flags as strings.
        if isinstance(self.redact, str):
            lowered = self.redact.strip().lower()
            if lowered in _TRUE_STRINGS:
                self.redact = True
            elif lowered in _FALSE_STRINGS:
                self.redact = False
            else:
                raise ValueError(f"logging.redact must be a boolean, got {self.redact!r}")
        elif not isinstance(self.redact, bool):
            raise ValueError(f"logging.redact must be a boolean, got {self.redact!r}")
        if self.format.strip().lower() not in ("text", "json"):
            raise ValueError(f"logging.format must be 'text' or 'json', got {self.format!r}")


# =============================================================================
# Main Configuration
# =============================================================================

@dataclass
class EggWisdomConfig:
    """All configuration sections."""
    boost: BoostConfig = field(default_factory=BoostConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    accounts: AccountsConfig = field(default_factory=AccountsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(
        cls,
        config_file: Optional[Union[str, Path]] = None,
        env_prefix: str = "EGGWISDOM",
    ) -> "EggWisdomConfig":
        """
        Load configuration with hierarchy: env vars > config file > defaults.

        Args:
            config_file: Path to config file (JSON, TOML or YAML)
            env_prefix: Prefix for environment variables
        """
        config_dict: Dict[str, Any] = {}

        if config_file:
            config_dict = cls._load_file(Path(config_file))

        config_dict = cls._apply_env_overrides(config_dict, env_prefix)

        return cls._from_dict(config_dict)

    @classmethod
    def _load_file(cls, path: Path) -> Dict[str, Any]:
        """Load configuration from file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return {}

        content = path.read_text()

        if path.suffix == ".json":
            parsed = json.loads(content)
        elif path.suffix == ".toml":
            parsed = tomllib.loads(content)
        elif path.suffix in {".yaml", ".yml"}:
            parsed = yaml.safe_load(content)
        else:
            logger.warning(f"Unknown config file format: {path.suffix}")
            return {}

        if not isinstance(parsed, dict):
            logger.warning(f"Config file must be a mapping at top level: {path}")
            return {}
        return parsed

    @classmethod
    def _apply_env_overrides(cls, config: Dict[str, Any], prefix: str) -> Dict[str, Any]:
        """Apply environment variable overrides."""
        for key, value in os.environ.items():
            if not key.startswith(f"{prefix}_"):
                continue

            # EGGWISDOM_BOOST_MULTIPLIER_SCHEME -> boost.multiplier_scheme
            parts = key[len(prefix) + 1:].lower().split("_")
            if len(parts) < 2:
                continue

            section = parts[0]
            if section not in _SECTIONS:
                continue
            field_name = "_".join(parts[1:])

            config.setdefault(section, {})
            config[section][field_name] = cls._parse_env_value(value)

        return config

    @staticmethod
    def _parse_env_value(value: str) -> Any:
        """Parse environment variable value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False
        # Numbers stay strings: amounts and ratios are parsed as exact decimals.
        return value

    @classmethod
    def _from_dict(cls, config_dict: Dict[str, Any]) -> "EggWisdomConfig":
        """Build config object from dictionary."""
        return cls(
            boost=BoostConfig(**config_dict.get("boost", {})),
            network=NetworkConfig(**config_dict.get("network", {})),
            accounts=AccountsConfig(**config_dict.get("accounts", {})),
            logging=LoggingConfig(**config_dict.get("logging", {})),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to file (TOML for .toml, JSON otherwise)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        if path.suffix == ".toml":
            data = self.to_dict()
            # TOML has no null.
            if data["logging"]["file"] is None:
                del data["logging"]["file"]
            path.write_text(toml.dumps(data))
        else:
            path.write_text(self.to_json())

    def validate(self) -> None:
        """Validate cross-field constraints not covered by __post_init__."""
        if not self.accounts.platform_account:
            raise ValueError("accounts.platform_account must be set")

        if self.logging.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid logging level: {self.logging.level}")

        if self.logging.format not in ("json", "text"):
            raise ValueError(f"Invalid logging format: {self.logging.format}")


_SECTIONS = ("boost", "network", "accounts", "logging")


def build_registry(
    config: EggWisdomConfig,
    burner: BurnPrimitive,
    store: Optional[BoostStore] = None,
    notifier: Optional[BoostNotifier] = None,
) -> BoostRegistry:
    """Create a BoostRegistry using the configured multiplier scheme."""
    return BoostRegistry(
        burner,
        store=store,
        notifier=notifier,
        flat_multiplier=config.boost.resolved_flat_multiplier(),
    )


# =============================================================================
# Global Config Instance
# =============================================================================

_global_config: Optional[EggWisdomConfig] = None


def get_config() -> EggWisdomConfig:
    """Get global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = EggWisdomConfig.load()
    return _global_config


def set_config(config: EggWisdomConfig) -> None:
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Reset global configuration to None (forces reload)."""
    global _global_config
    _global_config = None
