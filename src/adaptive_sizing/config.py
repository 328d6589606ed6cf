"""Configuration management module for the adaptive sizing engine."""

import json
import logging
import math
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv

from .models import RegimeLabel

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass(frozen=True)
class CompoundConfig:
    """Auto-compounding settings."""
    enabled: bool = False
    percentage: float = 0.5         # share of each profit reinvested (0-1)
    threshold_profit: float = 5.0   # cumulative profit before compounding starts
    max_multiplier: float = 2.0     # cap relative to the original size


@dataclass(frozen=True)
class FeeSchedule:
    """Exchange fee rates as ratios (0.001 = 0.1%)."""
    maker: float = 0.001
    taker: float = 0.001
    funding: float = 0.0001


@dataclass(frozen=True)
class RiskConfig:
    """Risk-adjusted sizer parameters."""
    min_size: float = 200.0
    max_size: float = 500.0
    target_profit: float = 1.0
    leverage_target_profit: float = 3.0
    avg_trade_minutes: float = 5.0
    min_minutes: float = 1.0
    max_minutes: float = 600.0

    # Drawdown de-risking
    drawdown_light: float = 0.05
    drawdown_medium: float = 0.10
    drawdown_heavy: float = 0.20
    drawdown_light_mult: float = 0.9
    drawdown_medium_mult: float = 0.8
    drawdown_heavy_mult: float = 0.5

    # Win-rate adjustment
    high_win_rate: float = 0.85
    low_win_rate: float = 0.60
    high_win_rate_mult: float = 1.1
    low_win_rate_mult: float = 0.8

    # Risk level display thresholds
    low_volatility: float = 0.004
    high_volatility: float = 0.01


def _default_regime_multipliers() -> Dict[str, float]:
    return {
        RegimeLabel.BULL.value: 1.2,   # larger in bullish trends
        RegimeLabel.BEAR.value: 1.0,
        RegimeLabel.CHOP.value: 0.8,   # smaller in choppy markets
    }


@dataclass(frozen=True)
class Configuration:
    """Complete sizing configuration for one user.

    Instances are immutable. Edits produce a new record that replaces the
    old one as a whole.
    """
    base_position_size: float = 100.0
    min_multiplier: float = 0.5
    max_multiplier: float = 1.5

    # Streak scaling
    wins_to_increase: int = 3
    losses_to_decrease: int = 2
    increase_step: float = 0.10
    decrease_step: float = 0.20     # losses de-risk faster than wins re-risk

    # Regime scaling
    enable_regime_scaling: bool = True
    regime_multipliers: Dict[str, float] = field(default_factory=_default_regime_multipliers)
    regime_confidence_floor: float = 0.30

    compound: CompoundConfig = field(default_factory=CompoundConfig)
    fee_schedule: FeeSchedule = field(default_factory=FeeSchedule)
    risk: RiskConfig = field(default_factory=RiskConfig)

    def regime_target(self, label: RegimeLabel | None) -> float:
        """Target multiplier for a regime label, 1.0 when unknown."""
        if label is None:
            return 1.0
        return self.regime_multipliers.get(label.value, 1.0)

    def validate(self) -> None:
        """Validate the whole record.

        Raises:
            ConfigValidationError: If any field is out of range.
        """
        problems = []

        numbers = {
            "base_position_size": self.base_position_size,
            "min_multiplier": self.min_multiplier,
            "max_multiplier": self.max_multiplier,
            "increase_step": self.increase_step,
            "decrease_step": self.decrease_step,
            "regime_confidence_floor": self.regime_confidence_floor,
            "compound.percentage": self.compound.percentage,
            "compound.threshold_profit": self.compound.threshold_profit,
            "compound.max_multiplier": self.compound.max_multiplier,
            "fee_schedule.maker": self.fee_schedule.maker,
            "fee_schedule.taker": self.fee_schedule.taker,
            "fee_schedule.funding": self.fee_schedule.funding,
        }
        for f in fields(RiskConfig):
            numbers[f"risk.{f.name}"] = getattr(self.risk, f.name)
        for label, value in self.regime_multipliers.items():
            numbers[f"regime_multipliers.{label}"] = value

        non_finite = [
            name for name, value in numbers.items()
            if not isinstance(value, (int, float)) or not math.isfinite(value)
        ]
        if non_finite:
            raise ConfigValidationError(
                f"Non-numeric or non-finite configuration fields: {', '.join(non_finite)}"
            )

        if self.base_position_size <= 0:
            problems.append("base_position_size (must be > 0)")
        if self.min_multiplier <= 0:
            problems.append("min_multiplier (must be > 0)")
        if self.min_multiplier > self.max_multiplier:
            problems.append("min_multiplier (must be <= max_multiplier)")
        if not self.min_multiplier <= 1.0 <= self.max_multiplier:
            problems.append("min_multiplier/max_multiplier (must bracket 1.0)")
        if self.wins_to_increase < 1:
            problems.append("wins_to_increase (must be >= 1)")
        if self.losses_to_decrease < 1:
            problems.append("losses_to_decrease (must be >= 1)")
        if self.increase_step < 0 or self.decrease_step < 0:
            problems.append("increase_step/decrease_step (must be >= 0)")
        if not 0 <= self.regime_confidence_floor < 1:
            problems.append("regime_confidence_floor (must be in [0, 1))")

        valid_labels = {label.value for label in RegimeLabel}
        for label, value in self.regime_multipliers.items():
            if label not in valid_labels:
                problems.append(f"regime_multipliers.{label} (unknown regime)")
            elif value <= 0:
                problems.append(f"regime_multipliers.{label} (must be > 0)")

        if not 0 < self.compound.percentage <= 1:
            problems.append("compound.percentage (must be in (0, 1])")
        if self.compound.threshold_profit < 0:
            problems.append("compound.threshold_profit (must be >= 0)")
        if self.compound.max_multiplier < 1:
            problems.append("compound.max_multiplier (must be >= 1)")

        for name in ("maker", "taker", "funding"):
            if not 0 <= getattr(self.fee_schedule, name) < 0.1:
                problems.append(f"fee_schedule.{name} (must be in [0, 0.1))")

        if self.risk.min_size <= 0 or self.risk.min_size > self.risk.max_size:
            problems.append("risk.min_size/max_size (must satisfy 0 < min <= max)")
        if self.risk.min_minutes <= 0 or self.risk.min_minutes > self.risk.max_minutes:
            problems.append("risk.min_minutes/max_minutes (must satisfy 0 < min <= max)")
        if self.risk.target_profit <= 0 or self.risk.leverage_target_profit <= 0:
            problems.append("risk.target_profit (must be > 0)")
        if self.risk.avg_trade_minutes <= 0:
            problems.append("risk.avg_trade_minutes (must be > 0)")

        if problems:
            raise ConfigValidationError(
                f"Invalid configuration fields: {', '.join(problems)}"
            )

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            "base_position_size": self.base_position_size,
            "min_multiplier": self.min_multiplier,
            "max_multiplier": self.max_multiplier,
            "wins_to_increase": self.wins_to_increase,
            "losses_to_decrease": self.losses_to_decrease,
            "increase_step": self.increase_step,
            "decrease_step": self.decrease_step,
            "enable_regime_scaling": self.enable_regime_scaling,
            "regime_multipliers": dict(self.regime_multipliers),
            "regime_confidence_floor": self.regime_confidence_floor,
            "compound": {f.name: getattr(self.compound, f.name) for f in fields(CompoundConfig)},
            "fee_schedule": {f.name: getattr(self.fee_schedule, f.name) for f in fields(FeeSchedule)},
            "risk": {f.name: getattr(self.risk, f.name) for f in fields(RiskConfig)},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], strict: bool = False) -> "Configuration":
        """Build a configuration from a dictionary.

        Args:
            data: Serialized configuration.
            strict: Require every field, including every field of the
                compound, fee_schedule and risk sections. Used when saving, since
                partial records are never merged into existing state.

        Raises:
            ConfigValidationError: If strict and fields are missing, or
                values cannot be parsed.
        """
        if strict:
            missing = [f.name for f in fields(cls) if f.name not in data]
            for name, section_cls in _SECTIONS.items():
                section = data.get(name)
                if isinstance(section, dict):
                    missing.extend(
                        f"{name}.{f.name}" for f in fields(section_cls) if f.name not in section
                    )
            if missing:
                raise ConfigValidationError(
                    f"Incomplete configuration record, missing: {', '.join(missing)}"
                )

        defaults = cls()
        try:
            return cls(
                base_position_size=float(data.get("base_position_size", defaults.base_position_size)),
                min_multiplier=float(data.get("min_multiplier", defaults.min_multiplier)),
                max_multiplier=float(data.get("max_multiplier", defaults.max_multiplier)),
                wins_to_increase=int(data.get("wins_to_increase", defaults.wins_to_increase)),
                losses_to_decrease=int(data.get("losses_to_decrease", defaults.losses_to_decrease)),
                increase_step=float(data.get("increase_step", defaults.increase_step)),
                decrease_step=float(data.get("decrease_step", defaults.decrease_step)),
                enable_regime_scaling=_parse_bool(
                    data.get("enable_regime_scaling", defaults.enable_regime_scaling)
                ),
                regime_multipliers={
                    str(k).upper(): float(v)
                    for k, v in data.get("regime_multipliers", defaults.regime_multipliers).items()
                },
                regime_confidence_floor=float(
                    data.get("regime_confidence_floor", defaults.regime_confidence_floor)
                ),
                compound=_section(CompoundConfig, data.get("compound", {})),
                fee_schedule=_section(FeeSchedule, data.get("fee_schedule", {})),
                risk=_section(RiskConfig, data.get("risk", {})),
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigValidationError(f"Unparseable configuration: {e}")


def _section(section_cls, data: dict[str, Any]):
    """Build a nested config section, ignoring unknown keys."""
    known = {f.name: f for f in fields(section_cls)}
    values = {}
    for name, value in data.items():
        if name not in known:
            logger.warning(f"Ignoring unknown {section_cls.__name__} field '{name}'")
            continue
        values[name] = _parse_bool(value) if known[name].type in (bool, "bool") else float(value)
    return section_cls(**values)


_SECTIONS = {
    "compound": CompoundConfig,
    "fee_schedule": FeeSchedule,
    "risk": RiskConfig,
}

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}


def _parse_bool(value: Any) -> bool:
    """Parse a JSON or environment boolean. "false" is False."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValueError(f"not a boolean: {value!r}")


DEFAULT_CONFIG = Configuration()


class ConfigManager:
    """Loads configuration from a JSON file with environment overrides."""

    ENV_OVERRIDES = {
        "SIZING_BASE_POSITION_SIZE": "base_position_size",
        "SIZING_MIN_MULTIPLIER": "min_multiplier",
        "SIZING_MAX_MULTIPLIER": "max_multiplier",
    }

    def __init__(self, config_path: str | Path | None = None, load_env: bool = True):
        """Initialize configuration manager.

        Args:
            config_path: Path to sizing JSON file. If None, uses default location.
            load_env: Whether to load .env file. Set to False for testing.
        """
        self.config_path = Path(config_path) if config_path else Path("config/sizing.json")
        self._config: Configuration | None = None
        self._load_env = load_env
        if load_env:
            load_dotenv()

    def load(self) -> Configuration:
        """Load configuration from file and environment variables.

        Returns:
            Loaded and validated Configuration.

        Raises:
            ConfigValidationError: If the configuration is invalid.
        """
        config = Configuration.from_dict(self._load_json())
        config = self._override_from_env(config)
        config.validate()
        self._config = config
        logger.info(f"Loaded sizing configuration from {self.config_path}")
        return config

    def _load_json(self) -> dict[str, Any]:
        """Load JSON configuration file."""
        if not self.config_path.exists():
            return {}

        with open(self.config_path) as f:
            try:
                return json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigValidationError(f"Invalid JSON in {self.config_path}: {e}")

    def _override_from_env(self, config: Configuration) -> Configuration:
        """Apply environment overrides, returning a new record."""
        if not self._load_env:
            return config

        try:
            top = {
                attr: float(value)
                for var, attr in self.ENV_OVERRIDES.items()
                if (value := os.getenv(var))
            }
            if top:
                config = replace(config, **top)

            if enabled := os.getenv("SIZING_COMPOUND_ENABLED"):
                config = replace(
                    config,
                    compound=replace(config.compound, enabled=_parse_bool(enabled)),
                )

            fees = {}
            if taker := os.getenv("SIZING_TAKER_FEE"):
                fees["taker"] = float(taker)
            if maker := os.getenv("SIZING_MAKER_FEE"):
                fees["maker"] = float(maker)
            if funding := os.getenv("SIZING_FUNDING_FEE"):
                fees["funding"] = float(funding)
            if fees:
                config = replace(config, fee_schedule=replace(config.fee_schedule, **fees))
        except ValueError as e:
            raise ConfigValidationError(f"Invalid environment override: {e}")

        return config

    @staticmethod
    def db_path(default: str = "data/sizing.db") -> str:
        """Database path for the config store."""
        return os.getenv("SIZING_DB_PATH", default)

    @property
    def config(self) -> Configuration:
        """Get loaded configuration."""
        if not self._config:
            raise ConfigValidationError("Configuration not loaded. Call load() first.")
        return self._config
