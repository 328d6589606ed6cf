"""Pytest configuration and shared fixtures."""

import json
import os
import tempfile
from dataclasses import replace
from pathlib import Path

import pytest

from adaptive_sizing.config import CompoundConfig, Configuration, ConfigManager
from adaptive_sizing.persistence import ConfigStore


@pytest.fixture
def temp_config_dir():
    """Create a temporary directory for config files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def default_config():
    """Default sizing configuration."""
    return Configuration()


@pytest.fixture
def compounding_config():
    """Configuration with compounding enabled at a $5 threshold."""
    return replace(
        Configuration(),
        compound=CompoundConfig(enabled=True, percentage=0.5, threshold_profit=5.0, max_multiplier=2.0),
    )


@pytest.fixture
def valid_config_data():
    """Return a complete, valid configuration record."""
    return {
        "base_position_size": 100.0,
        "min_multiplier": 0.5,
        "max_multiplier": 1.5,
        "wins_to_increase": 3,
        "losses_to_decrease": 2,
        "increase_step": 0.1,
        "decrease_step": 0.2,
        "enable_regime_scaling": True,
        "regime_multipliers": {"BULL": 1.2, "BEAR": 1.0, "CHOP": 0.8},
        "regime_confidence_floor": 0.3,
        "compound": {
            "enabled": False,
            "percentage": 0.5,
            "threshold_profit": 5.0,
            "max_multiplier": 2.0,
        },
        "fee_schedule": {
            "maker": 0.001,
            "taker": 0.001,
            "funding": 0.0001,
        },
        "risk": {
            "min_size": 200.0,
            "max_size": 500.0,
            "target_profit": 1.0,
            "leverage_target_profit": 3.0,
            "avg_trade_minutes": 5.0,
            "min_minutes": 1.0,
            "max_minutes": 600.0,
            "drawdown_light": 0.05,
            "drawdown_medium": 0.10,
            "drawdown_heavy": 0.20,
            "drawdown_light_mult": 0.9,
            "drawdown_medium_mult": 0.8,
            "drawdown_heavy_mult": 0.5,
            "high_win_rate": 0.85,
            "low_win_rate": 0.60,
            "high_win_rate_mult": 1.1,
            "low_win_rate_mult": 0.8,
            "low_volatility": 0.004,
            "high_volatility": 0.01,
        },
    }


@pytest.fixture
def config_file(temp_config_dir, valid_config_data):
    """Create a temporary config file with valid data."""
    config_path = temp_config_dir / "sizing.json"
    with open(config_path, "w") as f:
        json.dump(valid_config_data, f)
    return config_path


@pytest.fixture
def config_manager(config_file):
    """Create a ConfigManager with valid config and no env overrides."""
    return ConfigManager(config_path=config_file, load_env=False)


@pytest.fixture
def temp_store():
    """Create temporary config store for testing."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    store = ConfigStore(path)

    yield store

    try:
        os.unlink(path)
    except OSError:
        pass
