"""
HerbChain Configuration System

Unified configuration management with YAML files, environment variables,
validation, and runtime updates.

Configuration Sources (in order of precedence):
    1. Environment variables (HERBCHAIN_*)
    2. Runtime overrides
    3. User config file (~/.herbchain/config.yaml)
    4. Project config file (./herbchain.yaml)
    5. Default values
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import yaml

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConfigError(Exception):
    """Configuration error."""
    pass


class ValidationError(ConfigError):
    """Configuration validation error."""
    pass


@dataclass
class ConfigValue(Generic[T]):
    """
    A single configuration value with metadata.

    Supports default values, environment variable binding,
    validation, and change callbacks.
    """
    default: T
    env_var: Optional[str] = None
    description: str = ""
    validator: Optional[Callable[[T], bool]] = None
    _value: Optional[T] = field(default=None, repr=False)
    _callbacks: List[Callable[[T, T], None]] = field(default_factory=list, repr=False)

    def get(self) -> T:
        """Get the current value."""
        # Check environment variable first
        if self.env_var and self.env_var in os.environ:
            try:
                return self.env_value()
            except ValidationError as e:
                logger.warning("Ignoring environment override: %s", e)

        # Return set value or default
        return self._value if self._value is not None else self.default

    def env_value(self) -> T:
        """Coerce and validate the bound environment variable."""
        raw = os.environ[self.env_var]
        try:
            value = self._coerce(raw)
        except (ValueError, ArithmeticError) as e:
            raise ValidationError(
                f"{self.env_var}={raw!r} is not a valid {type(self.default).__name__}"
            ) from e
        if self.validator and not self.validator(value):
            raise ValidationError(f"{self.env_var}={raw!r} failed validation")
        return value

    def set(self, value: T) -> None:
        """Set the value with validation."""
        if isinstance(self.default, Decimal) and not isinstance(value, Decimal):
            value = Decimal(str(value))  # type: ignore
        if self.validator and not self.validator(value):
            raise ValidationError(f"Invalid value for config: {value}")

        old_value = self._value
        self._value = value

        # Notify callbacks
        for callback in self._callbacks:
            callback(old_value, value)

    def reset(self) -> None:
        """Drop any runtime override."""
        self._value = None

    def _coerce(self, value: str) -> T:
        """Coerce string value to target type."""
        target_type = type(self.default)

        if target_type == bool:
            return value.lower() in ("true", "1", "yes", "on")  # type: ignore
        elif target_type == int:
            return int(value)  # type: ignore
        elif target_type == float:
            return float(value)  # type: ignore
        elif target_type == Decimal:
            return Decimal(value)  # type: ignore
        elif target_type == list:
            return value.split(",")  # type: ignore
        else:
            return value  # type: ignore

    def on_change(self, callback: Callable[[T, T], None]) -> None:
        """Register a change callback."""
        self._callbacks.append(callback)


@dataclass
class LedgerConfig:
    """Configuration for the contract engine's protocol constants."""
    tolerance_ratio: ConfigValue[Decimal] = field(default_factory=lambda: ConfigValue(
        default=Decimal("0.02"),
        env_var="HERBCHAIN_TOLERANCE_RATIO",
        description="Allowed claimed/measured deviation before a dispute (0-1)",
        validator=lambda x: Decimal("0") <= x < Decimal("1"),
    ))
    fraud_penalty: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=10,
        env_var="HERBCHAIN_FRAUD_PENALTY",
        description="Reputation deducted from a registrant whose claim is disputed",
        validator=lambda x: x >= 0,
    ))
    verification_reward: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=1,
        env_var="HERBCHAIN_VERIFICATION_REWARD",
        description="Reputation added to registrant and verifier on a clean verification",
        validator=lambda x: x >= 0,
    ))
    production_reward: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=2,
        env_var="HERBCHAIN_PRODUCTION_REWARD",
        description="Reputation added to a manufacturer on successful production",
        validator=lambda x: x >= 0,
    ))
    quality_block_penalty: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=5,
        env_var="HERBCHAIN_QUALITY_BLOCK_PENALTY",
        description="Reputation deducted when production is blocked by quality",
        validator=lambda x: x >= 0,
    ))
    initial_reputation: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=100,
        env_var="HERBCHAIN_INITIAL_REPUTATION",
        description="Starting reputation for known and newly seen actors",
    ))


@dataclass
class QualityConfig:
    """Quality gate thresholds per role."""
    min_score_to_register: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=50,
        env_var="HERBCHAIN_MIN_SCORE_REGISTER",
        description="Minimum collector score before registration is submitted",
        validator=lambda x: 0 <= x <= 100,
    ))
    min_score_to_transfer: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=70,
        env_var="HERBCHAIN_MIN_SCORE_TRANSFER",
        description="Minimum supplier score for a transfer",
        validator=lambda x: 0 <= x <= 100,
    ))
    min_score_to_consume: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=60,
        env_var="HERBCHAIN_MIN_SCORE_CONSUME",
        description="Minimum manufacturer score for production",
        validator=lambda x: 0 <= x <= 100,
    ))
    excellent_score: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=90,
        env_var="HERBCHAIN_EXCELLENT_SCORE",
        description="Score at or above which a snapshot is rated Excellent",
        validator=lambda x: 0 <= x <= 100,
    ))


@dataclass
class PersistenceConfig:
    """Configuration for snapshot persistence."""
    snapshot_path: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="herbchain.json",
        env_var="HERBCHAIN_SNAPSHOT_PATH",
        description="File the full ledger snapshot is saved to",
        validator=lambda x: bool(x.strip()),
    ))
    autosave: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=True,
        env_var="HERBCHAIN_AUTOSAVE",
        description="Save a snapshot after every mutating operation",
    ))


@dataclass
class ObservabilityConfig:
    """Configuration for Observability."""
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="info",
        env_var="HERBCHAIN_LOG_LEVEL",
        description="Log level (debug, info, warning, error)",
        validator=lambda x: x in ("debug", "info", "warning", "error", "critical"),
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="json",
        env_var="HERBCHAIN_LOG_FORMAT",
        description="Log format (json, text)",
        validator=lambda x: x in ("json", "text"),
    ))


@dataclass
class HerbChainConfig:
    """
    Root configuration for HerbChain.

    Aggregates all component configurations and provides
    export functionality.
    """
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    quality: QualityConfig = field(default_factory=QualityConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        def extract_values(obj: Any) -> Any:
            if isinstance(obj, ConfigValue):
                value = obj.get()
                return str(value) if isinstance(value, Decimal) else value
            elif hasattr(obj, "__dataclass_fields__"):
                return {k: extract_values(getattr(obj, k)) for k in obj.__dataclass_fields__}
            return obj

        return extract_values(self)

    def to_yaml(self) -> str:
        """Convert to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False)


def apply_dict(config: HerbChainConfig, data: Dict[str, Any]) -> None:
    """Apply nested dictionary values onto a configuration tree."""
    def apply_to_config(config_obj: Any, values: Dict[str, Any]) -> None:
        for key, value in values.items():
            if not hasattr(config_obj, key):
                raise ConfigError(f"Unknown config key: {key}")
            attr = getattr(config_obj, key)
            if isinstance(attr, ConfigValue):
                attr.set(value)
            elif hasattr(attr, "__dataclass_fields__") and isinstance(value, dict):
                apply_to_config(attr, value)
            else:
                raise ConfigError(f"Invalid config section: {key}")

    apply_to_config(config, data)


def load_config_file(path: Union[str, Path]) -> HerbChainConfig:
    """Build a fresh configuration from one YAML file."""
    config = HerbChainConfig()
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data:
        apply_dict(config, data)
    return config


class ConfigManager:
    """
    Configuration manager with file loading and environment binding.

    Thread-safe singleton that manages configuration lifecycle.
    """

    _instance: Optional["ConfigManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "ConfigManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._config = HerbChainConfig()
        self._config_paths: List[Path] = []
        self._watchers: List[Callable[[HerbChainConfig], None]] = []
        self._initialized = True

    @property
    def config(self) -> HerbChainConfig:
        """Get the current configuration."""
        return self._config

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if data:
            apply_dict(self._config, data)
            self._config_paths.append(path)

    def load_defaults(self) -> None:
        """Load default configuration files if they exist."""
        default_paths = [
            Path.home() / ".herbchain" / "config.yaml",
            Path("config/herbchain.yaml"),
            Path("herbchain.yaml"),
        ]

        for path in default_paths:
            if path.exists():
                try:
                    self.load_from_file(path)
                except (ConfigError, yaml.YAMLError) as e:
                    logger.warning("Ignoring unreadable config file %s: %s", path, e)

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value by path.

        Example: config.set("quality.min_score_to_transfer", 75)
        """
        parts = path.split(".")
        obj = self._config

        for part in parts[:-1]:
            obj = getattr(obj, part)

        attr = getattr(obj, parts[-1])
        if isinstance(attr, ConfigValue):
            attr.set(value)
        else:
            raise ConfigError(f"Invalid config path: {path}")

    def get(self, path: str) -> Any:
        """
        Get a configuration value by path.

        Example: config.get("ledger.tolerance_ratio")
        """
        parts = path.split(".")
        obj = self._config

        for part in parts:
            obj = getattr(obj, part)

        if isinstance(obj, ConfigValue):
            return obj.get()
        return obj

    def watch(self, callback: Callable[[HerbChainConfig], None]) -> None:
        """Register a callback for configuration changes."""
        self._watchers.append(callback)

    def reload(self) -> None:
        """Reload configuration from all loaded files."""
        for path in self._config_paths:
            if path.exists():
                self.load_from_file(path)

        for watcher in self._watchers:
            watcher(self._config)

    def reset(self) -> None:
        """Restore every value to its default and forget loaded files."""
        self._config = HerbChainConfig()
        self._config_paths = []

    def validate(self) -> List[str]:
        """
        Validate all configuration values.

        Returns list of validation errors.
        """
        errors: List[str] = []

        def validate_config(obj: Any, path: str = "") -> None:
            if isinstance(obj, ConfigValue):
                try:
                    if obj.env_var and obj.env_var in os.environ:
                        obj.env_value()
                    value = obj.get()
                    if obj.validator and not obj.validator(value):
                        errors.append(f"{path}: validation failed for value {value}")
                except Exception as e:
                    errors.append(f"{path}: {e}")
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    field_path = f"{path}.{field_name}" if path else field_name
                    validate_config(getattr(obj, field_name), field_path)

        validate_config(self._config)
        return errors

    def export_schema(self) -> Dict[str, Any]:
        """Export configuration schema for documentation."""
        schema: Dict[str, Any] = {"properties": {}}

        def extract_schema(obj: Any, properties: Dict[str, Any]) -> None:
            if isinstance(obj, ConfigValue):
                properties["type"] = type(obj.default).__name__
                properties["default"] = str(obj.default)
                properties["description"] = obj.description
                if obj.env_var:
                    properties["env_var"] = obj.env_var
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    properties[field_name] = {}
                    extract_schema(getattr(obj, field_name), properties[field_name])

        extract_schema(self._config, schema["properties"])
        return schema


def get_config() -> HerbChainConfig:
    """Get the current HerbChain configuration."""
    return ConfigManager().config


def get_config_manager() -> ConfigManager:
    """Get the configuration manager instance."""
    return ConfigManager()
