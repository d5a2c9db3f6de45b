from __future__ import annotations

import os
from pathlib import Path

import pytest

from fairline.pricing.configuration import (
    ConfigurationError,
    PricingConfig,
    load_pricing_config,
    validate_pricing_config,
)

ROOT = Path(__file__).resolve().parents[2]


def test_default_configuration_loads(isolated_env: Path) -> None:
    config = load_pricing_config()
    assert isinstance(config, PricingConfig)
    assert config.margin.margin_fraction == 0.0
    assert config.goals.sensitivity == pytest.approx(0.07)
    assert config.solver.max_iterations == 100
    assert validate_pricing_config(config) == []


def test_shipped_configuration_matches_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("FAIRLINE_"):
            monkeypatch.delenv(key, raising=False)
    config = load_pricing_config(base_path=ROOT / "config" / "pricing.yaml")
    assert config == PricingConfig()

    trading = load_pricing_config(
        base_path=ROOT / "config" / "pricing.yaml", environment="trading"
    )
    assert trading.environment == "trading"
    assert trading.margin.margin_fraction == pytest.approx(0.05)
    assert trading.margin.multi_way == pytest.approx(0.12)


def test_configuration_layers_and_env_overrides(
    isolated_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    base = isolated_env / "pricing.yaml"
    base.write_text(
        """
margin:
  margin_fraction: 0.02
goals:
  sensitivity: 0.05
  rate_floor: 0.1
lines:
  max_balanced_lines: 3
"""
    )
    env_override = isolated_env / "pricing.production.yaml"
    env_override.write_text(
        """
margin:
  margin_fraction: 0.04
goals:
  sensitivity: 0.06
"""
    )
    extra_override = isolated_env / "override.yaml"
    extra_override.write_text(
        """
goals:
  sensitivity: 0.08
"""
    )

    monkeypatch.setenv("FAIRLINE_PRICING_ENV", "production")
    monkeypatch.setenv("FAIRLINE_PRICING_CONFIG", str(extra_override))
    monkeypatch.setenv("FAIRLINE_PRICING__margin__multi_way_fraction", "0.1")
    monkeypatch.setenv("FAIRLINE_PRICING__points__method", "linear")

    config = load_pricing_config(base_path=base)

    assert config.environment == "production"
    assert config.margin.margin_fraction == pytest.approx(0.04)
    assert config.margin.multi_way == pytest.approx(0.1)
    assert config.goals.sensitivity == pytest.approx(0.08)
    assert config.points.method == "linear"
    # Untouched values still merge through
    assert config.goals.rate_floor == pytest.approx(0.1)
    assert config.lines.max_balanced_lines == 3


def test_environment_argument_beats_variable(
    isolated_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    base = isolated_env / "pricing.yaml"
    base.write_text("margin:\n  margin_fraction: 0.01\n")
    (isolated_env / "pricing.staging.yaml").write_text("margin:\n  margin_fraction: 0.03\n")
    monkeypatch.setenv("FAIRLINE_PRICING_ENV", "production")

    config = load_pricing_config(base_path=base, environment="staging")

    assert config.environment == "staging"
    assert config.margin.margin_fraction == pytest.approx(0.03)


def test_environment_token_substitution(
    isolated_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    base = isolated_env / "pricing.yaml"
    monkeypatch.setenv("DESK_NAME", "overnight")
    base.write_text('environment: "${DESK_NAME}"\n')

    config = load_pricing_config(base_path=base)

    assert config.environment == "overnight"


def test_missing_explicit_path_raises(isolated_env: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_pricing_config(base_path=isolated_env / "missing.yaml")


def test_non_mapping_yaml_is_rejected(isolated_env: Path) -> None:
    base = isolated_env / "pricing.yaml"
    base.write_text("- just\n- a list\n")
    with pytest.raises(TypeError):
        load_pricing_config(base_path=base)


def test_validation_collects_errors() -> None:
    config = PricingConfig()
    config.margin.margin_fraction = -0.1
    config.goals.max_goal_cap = 5
    config.solver.tolerance = 0.0

    with pytest.raises(ConfigurationError) as excinfo:
        validate_pricing_config(config)

    message = str(excinfo.value)
    assert "margin.margin_fraction must be non-negative" in message
    assert "goals.max_goal_cap must not be below goals.base_goal_cap" in message
    assert "solver.tolerance must be greater than zero" in message


def test_validation_returns_warnings() -> None:
    config = PricingConfig()
    config.margin.margin_fraction = 0.3
    config.goals.sensitivity = -0.01

    warnings = validate_pricing_config(config)

    assert len(warnings) == 2
    assert any("25%" in message for message in warnings)


def test_mistyped_values_raise_configuration_error(isolated_env: Path) -> None:
    base = isolated_env / "pricing.yaml"
    base.write_text("margin:\n  margin_fraction: lots\n")

    with pytest.raises(ConfigurationError) as excinfo:
        load_pricing_config(base_path=base)

    message = str(excinfo.value)
    assert message.startswith("Configuration could not be parsed:")
    assert "- margin.margin_fraction:" in message
