"""
LAYLAA Configuration System

Unified configuration management with YAML files, environment variables and
validation.

Configuration Sources (in order of precedence):
    1. Environment variables (LAYLAA_*)
    2. Runtime overrides / loaded files
    3. Default values

Default file locations checked by ``load_defaults``:
    ./laylaa.yaml, ./config/laylaa.yaml, ~/.laylaa/config.yaml

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import yaml

from laylaa.errors import ConfigError

T = TypeVar("T")

CATALOG_MODES = ("single", "multi")


@dataclass
class ConfigValue(Generic[T]):
    """
    A single configuration value with metadata.

    Supports default values, environment variable binding and validation.
    """
    default: T
    env_var: Optional[str] = None
    description: str = ""
    validator: Optional[Callable[[T], bool]] = None
    secret: bool = False  # Don't log or export if True
    _value: Optional[T] = field(default=None, repr=False)

    def get(self) -> T:
        """Get the current value."""
        if self.env_var and self.env_var in os.environ:
            return self._coerce(os.environ[self.env_var])
        return self._value if self._value is not None else self.default

    def set(self, value: Any) -> None:
        """Set the value with coercion and validation."""
        if isinstance(value, str) and not isinstance(self.default, str):
            value = self._coerce(value)
        elif isinstance(self.default, Decimal) and not isinstance(value, Decimal):
            value = Decimal(str(value))
        elif isinstance(self.default, float) and isinstance(value, int):
            value = float(value)
        if self.validator and not self.validator(value):
            raise ConfigError(f"Invalid value for config: {value!r}")
        self._value = value

    def reset(self) -> None:
        self._value = None

    def _coerce(self, value: str) -> T:
        """Coerce string value to target type."""
        target_type = type(self.default)

        try:
            if target_type == bool:
                return value.lower() in ("true", "1", "yes", "on")  # type: ignore
            elif target_type == int:
                return int(value)  # type: ignore
            elif target_type == float:
                return float(value)  # type: ignore
            elif target_type == Decimal:
                return Decimal(value)  # type: ignore
        except (ValueError, ArithmeticError):
            raise ConfigError(
                f"Cannot convert {value!r} to {target_type.__name__}"
                + (f" ({self.env_var})" if self.env_var else "")
            ) from None
        return value  # type: ignore


@dataclass
class LedgerConfig:
    """External ledger endpoint and signing material."""
    url: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="wss://s.altnet.rippletest.net:51233",
        env_var="LAYLAA_LEDGER_URL",
        description="XRPL websocket endpoint",
        validator=lambda x: x.startswith(("ws://", "wss://")),
    ))
    timeout_seconds: ConfigValue[float] = field(default_factory=lambda: ConfigValue(
        default=30.0,
        env_var="LAYLAA_LEDGER_TIMEOUT",
        description="Per-request timeout",
        validator=lambda x: x > 0,
    ))
    explorer_url: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="https://testnet.xrpl.org",
        env_var="LAYLAA_EXPLORER_URL",
        description="Block explorer base URL",
    ))
    issuer_secret: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="",
        env_var="LAYLAA_ISSUER_SECRET",
        description="Issuer wallet seed",
        secret=True,
    ))
    holder_secret: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="",
        env_var="LAYLAA_HOLDER_SECRET",
        description="Holder wallet seed",
        secret=True,
    ))


@dataclass
class CatalogConfig:
    """Which token catalog is active."""
    mode: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="multi",
        env_var="LAYLAA_CATALOG_MODE",
        description="Catalog mode (single, multi)",
        validator=lambda x: x in CATALOG_MODES,
    ))


@dataclass
class BurnConfig:
    """Burn settings."""
    success_code: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="tesSUCCESS",
        env_var="LAYLAA_BURN_SUCCESS_CODE",
        description="Ledger result code that counts as a settled burn",
    ))
    default_amount: ConfigValue[Decimal] = field(default_factory=lambda: ConfigValue(
        default=Decimal("100"),
        env_var="LAYLAA_BURN_AMOUNT",
        description="Default burn amount",
        validator=lambda x: x > 0,
    ))


@dataclass
class IssuanceConfig:
    """Bulk issuance settings."""
    per_token_amount: ConfigValue[Decimal] = field(default_factory=lambda: ConfigValue(
        default=Decimal("1000"),
        env_var="LAYLAA_ISSUE_AMOUNT",
        description="Units issued per token type",
        validator=lambda x: x > 0,
    ))
    trust_limit: ConfigValue[Decimal] = field(default_factory=lambda: ConfigValue(
        default=Decimal("100000"),
        env_var="LAYLAA_TRUST_LIMIT",
        description="Trust line limit requested per token type",
        validator=lambda x: x > 0,
    ))
    pacing_seconds: ConfigValue[float] = field(default_factory=lambda: ConfigValue(
        default=1.0,
        env_var="LAYLAA_PACING_SECONDS",
        description="Minimum delay between submissions",
        validator=lambda x: x >= 0,
    ))
    max_attempts: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=3,
        env_var="LAYLAA_RETRY_MAX_ATTEMPTS",
        description="Attempts per submission on transport failure",
        validator=lambda x: x >= 1,
    ))
    base_delay_seconds: ConfigValue[float] = field(default_factory=lambda: ConfigValue(
        default=1.0,
        env_var="LAYLAA_RETRY_BASE_DELAY",
        description="Base retry delay in seconds",
        validator=lambda x: x >= 0,
    ))
    max_delay_seconds: ConfigValue[float] = field(default_factory=lambda: ConfigValue(
        default=30.0,
        env_var="LAYLAA_RETRY_MAX_DELAY",
        description="Retry delay cap in seconds",
        validator=lambda x: x >= 0,
    ))
    jitter_factor: ConfigValue[float] = field(default_factory=lambda: ConfigValue(
        default=0.5,
        env_var="LAYLAA_RETRY_JITTER",
        description="Jitter factor (0-1) added to exponential backoff",
        validator=lambda x: 0 <= x <= 1,
    ))


@dataclass
class ProofConfig:
    """Proof assembly and persistence."""
    include_media_id: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=False,
        env_var="LAYLAA_PROOF_INCLUDE_MEDIA_ID",
        description="Commit mediaId into proofHash",
    ))
    output_dir: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="burn-proofs",
        env_var="LAYLAA_PROOF_DIR",
        description="Directory for saved proof records",
    ))
    recipient: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="MIDNIGHT_WALLET_ADDRESS_HERE",
        env_var="LAYLAA_PROOF_RECIPIENT",
        description="Verification-chain recipient key placed in circuit inputs",
    ))


@dataclass
class ObservabilityConfig:
    """Logging."""
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="info",
        env_var="LAYLAA_LOG_LEVEL",
        description="Log level (debug, info, warning, error)",
        validator=lambda x: x in ("debug", "info", "warning", "error", "critical"),
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="text",
        env_var="LAYLAA_LOG_FORMAT",
        description="Log format (json, text)",
        validator=lambda x: x in ("json", "text"),
    ))


@dataclass
class LaylaaConfig:
    """
    Root configuration.

    Aggregates all component configurations.
    """
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    burn: BurnConfig = field(default_factory=BurnConfig)
    issuance: IssuanceConfig = field(default_factory=IssuanceConfig)
    proof: ProofConfig = field(default_factory=ProofConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def to_dict(self, include_secrets: bool = False) -> Dict[str, Any]:
        """Convert to dictionary. Secret values are masked unless requested."""
        def extract_values(obj: Any) -> Any:
            if isinstance(obj, ConfigValue):
                value = obj.get()
                if obj.secret and not include_secrets:
                    return "***" if value else ""
                if isinstance(value, Decimal):
                    return str(value)
                return value
            elif hasattr(obj, "__dataclass_fields__"):
                return {k: extract_values(getattr(obj, k)) for k in obj.__dataclass_fields__}
            return obj

        return extract_values(self)


class ConfigManager:
    """
    Configuration manager with file loading and environment binding.

    Thread-safe singleton that manages configuration lifecycle. Tests and
    embedded callers may also build a ``LaylaaConfig`` directly.
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

        self._config = LaylaaConfig()
        self._config_paths: List[Path] = []
        self._initialized = True

    @classmethod
    def reset_instance(cls) -> None:
        """Drop the singleton (used by tests)."""
        with cls._lock:
            cls._instance = None

    @property
    def config(self) -> LaylaaConfig:
        return self._config

    @property
    def loaded_paths(self) -> List[Path]:
        return list(self._config_paths)

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data:
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration root must be a mapping: {path}")
            self._apply_dict(data)
        self._config_paths.append(path)

    def load_defaults(self) -> None:
        """Load default configuration files if they exist."""
        default_paths = [
            Path("laylaa.yaml"),
            Path("config/laylaa.yaml"),
            Path.home() / ".laylaa" / "config.yaml",
        ]

        for path in default_paths:
            if path.exists():
                self.load_from_file(path)

    def _apply_dict(self, data: Dict[str, Any]) -> None:
        """Apply dictionary values to configuration."""
        def apply_to_config(config_obj: Any, values: Dict[str, Any], prefix: str) -> None:
            for key, value in values.items():
                path = f"{prefix}.{key}" if prefix else key
                if key not in config_obj.__dataclass_fields__:
                    raise ConfigError(f"Unknown config key: {path}")
                attr = getattr(config_obj, key)
                if isinstance(attr, ConfigValue):
                    attr.set(value)
                elif hasattr(attr, "__dataclass_fields__") and isinstance(value, dict):
                    apply_to_config(attr, value, path)
                else:
                    raise ConfigError(f"Invalid config section: {path}")

        apply_to_config(self._config, data, "")

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value by path.

        Example: config.set("issuance.pacing_seconds", 0.5)
        """
        attr = self._resolve(path)
        if not isinstance(attr, ConfigValue):
            raise ConfigError(f"Invalid config path: {path}")
        attr.set(value)

    def get(self, path: str) -> Any:
        """
        Get a configuration value by path.

        Example: config.get("catalog.mode")
        """
        obj = self._resolve(path)
        if isinstance(obj, ConfigValue):
            return obj.get()
        return obj

    def is_secret(self, path: str) -> bool:
        attr = self._resolve(path)
        return isinstance(attr, ConfigValue) and attr.secret

    def _resolve(self, path: str) -> Any:
        obj: Any = self._config
        for part in path.split("."):
            # a ConfigValue is a leaf; its own fields are not config paths
            if isinstance(obj, ConfigValue) or part not in getattr(obj, "__dataclass_fields__", {}):
                raise ConfigError(f"Invalid config path: {path}")
            obj = getattr(obj, part)
        return obj

    def validate(self) -> List[str]:
        """
        Validate all configuration values.

        Returns list of validation errors.
        """
        errors: List[str] = []

        def validate_config(obj: Any, path: str = "") -> None:
            if isinstance(obj, ConfigValue):
                try:
                    value = obj.get()
                    if obj.validator and not obj.validator(value):
                        shown = "***" if obj.secret else value
                        errors.append(f"{path}: validation failed for value {shown}")
                except ConfigError as e:
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
                properties["default"] = "" if obj.secret else str(obj.default)
                properties["description"] = obj.description
                if obj.env_var:
                    properties["env_var"] = obj.env_var
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    properties[field_name] = {}
                    extract_schema(getattr(obj, field_name), properties[field_name])

        extract_schema(self._config, schema["properties"])
        return schema


def get_config() -> LaylaaConfig:
    """Get the current configuration."""
    return ConfigManager().config


def get_config_manager() -> ConfigManager:
    """Get the configuration manager instance."""
    return ConfigManager()
