from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Literal, Mapping, MutableMapping, Sequence

import yaml
from pydantic import BaseModel, Field, ValidationError

ENVIRONMENT_VARIABLE = "FAIRLINE_PRICING_ENV"
EXTRA_CONFIG_VARIABLE = "FAIRLINE_PRICING_CONFIG"
ENV_OVERRIDE_PREFIX = "FAIRLINE_PRICING__"
DEFAULT_CONFIG_PATH = Path("config/pricing.yaml")


class MarginConfig(BaseModel):
    """Bookmaker overround applied on top of fair probabilities."""

    margin_fraction: float = 0.0
    multi_way_fraction: float | None = None
    probability_ceiling: float = 0.999

    @property
    def multi_way(self) -> float:
        if self.multi_way_fraction is None:
            return self.margin_fraction
        return self.multi_way_fraction


class GoalModelConfig(BaseModel):
    """Controls for the correlated goal model and its calibration."""

    sensitivity: float = 0.07
    rate_floor: float = 0.05
    base_goal_cap: int = 10
    max_goal_cap: int = 40
    tail_tolerance: float = 1e-4
    default_correlation: float = 0.15
    correlation_ceiling: float = 3.0
    bracket_start: float = 0.1
    calibration_iterations: int = 40
    calibration_tolerance: float = 1e-7
    total_goal_lines: List[float] = Field(
        default_factory=lambda: [0.5, 1.5, 2.5, 3.5, 4.5]
    )
    correct_score_limit: int = 10


class SolverConfig(BaseModel):
    """Iteration ceilings and tolerances for the root finders."""

    max_iterations: int = 100
    tolerance: float = 1e-8
    rally_iterations: int = 60
    rally_tolerance: float = 1e-12
    distribution_tolerance: float = 1e-6


class PointsModelConfig(BaseModel):
    """How expected set points are derived from a per-set probability."""

    method: Literal["rally", "linear"] = "rally"
    a: float = 15.5
    b: float = 7.5
    rally_target: int = 11


class LineConfig(BaseModel):
    """Candidate grids used to build totals and handicap lines."""

    totals_offsets: List[int] = Field(default_factory=lambda: [-2, -1, 0, 1, 2])
    handicap_base: float = 1.5
    handicap_offsets: List[float] = Field(default_factory=lambda: [-1.0, 0.0, 1.0])
    points_total_offsets: List[float] = Field(
        default_factory=lambda: [-4.0, -2.0, 0.0, 2.0, 4.0]
    )
    points_handicap_offsets: List[float] = Field(
        default_factory=lambda: [-2.0, -1.0, 0.0, 1.0, 2.0]
    )
    balance_tolerance: float = 0.01
    max_balanced_lines: int = 2
    max_points_lines: int = 1
    extreme_tolerance: float = 1e-6


class PricingConfig(BaseModel):
    """Aggregate configuration passed explicitly into every pricing call."""

    environment: str = "default"
    margin: MarginConfig = Field(default_factory=MarginConfig)
    goals: GoalModelConfig = Field(default_factory=GoalModelConfig)
    solver: SolverConfig = Field(default_factory=SolverConfig)
    points: PointsModelConfig = Field(default_factory=PointsModelConfig)
    lines: LineConfig = Field(default_factory=LineConfig)


class ConfigurationError(ValueError):
    """Raised when pricing configuration validation fails."""


_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise TypeError(f"Configuration at {path} must be a mapping")
    return dict(data)


def _merge_layers(base: Dict[str, Any], layer: Mapping[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = dict(base)
    for key, value in layer.items():
        if (
            key in merged
            and isinstance(merged[key], Mapping)
            and isinstance(value, Mapping)
        ):
            merged[key] = _merge_layers(dict(merged[key]), value)
        else:
            merged[key] = value
    return merged


def _resolve_env_tokens(value: Any) -> Any:
    if isinstance(value, str):
        return _ENV_PATTERN.sub(lambda match: os.getenv(match.group(1), ""), value)
    if isinstance(value, Mapping):
        return {k: _resolve_env_tokens(v) for k, v in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [_resolve_env_tokens(item) for item in value]
    return value


def _coerce_env_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        lowered = raw.lower()
        if lowered in {"true", "false"}:
            return lowered == "true"
        return raw


def _set_nested(mapping: MutableMapping[str, Any], path: Iterable[str], value: Any) -> None:
    segments = list(path)
    if not segments:
        return
    head, *tail = segments
    key = head.lower().replace("-", "_")
    if not tail:
        mapping[key] = value
        return
    child = mapping.get(key)
    if not isinstance(child, MutableMapping):
        child = {}
    else:
        child = dict(child)
    mapping[key] = child
    _set_nested(child, tail, value)


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    updated = dict(data)
    for key, raw_value in os.environ.items():
        if not key.startswith(ENV_OVERRIDE_PREFIX):
            continue
        suffix = key[len(ENV_OVERRIDE_PREFIX) :]
        if not suffix:
            continue
        path = [segment for segment in suffix.split("__") if segment]
        if not path:
            continue
        _set_nested(updated, path, _coerce_env_value(raw_value))
    return updated


def load_pricing_config(
    *,
    base_path: str | os.PathLike[str] | None = None,
    environment: str | None = None,
    extra_paths: Sequence[str | os.PathLike[str]] | None = None,
) -> PricingConfig:
    """Load layered configuration for the pricing engines.

    The loader merges ``config/pricing.yaml`` (when present) with optional
    environment-specific overrides (``config/pricing.<env>.yaml``), additional
    override files, and environment variable overrides that use
    ``FAIRLINE_PRICING__`` prefixes.  An explicit ``base_path`` must exist.
    Values of the wrong type raise :class:`ConfigurationError`.
    """

    if base_path is not None:
        config_path = Path(base_path)
        data = _load_yaml(config_path)
    else:
        config_path = DEFAULT_CONFIG_PATH
        data = _load_yaml(config_path) if config_path.exists() else {}

    env_name = environment or os.getenv(ENVIRONMENT_VARIABLE) or data.get("environment")
    if isinstance(env_name, str):
        env_path = config_path.with_name(f"{config_path.stem}.{env_name}{config_path.suffix}")
        if env_path.exists():
            data = _merge_layers(data, _load_yaml(env_path))
        data["environment"] = env_name

    merged = dict(data)
    override_sources: list[Path] = []
    if extra_paths:
        override_sources.extend(Path(path) for path in extra_paths)
    env_overrides = os.getenv(EXTRA_CONFIG_VARIABLE)
    if env_overrides:
        override_sources.extend(Path(token) for token in env_overrides.split(os.pathsep) if token)

    for override in override_sources:
        if override.exists():
            merged = _merge_layers(merged, _load_yaml(override))

    merged = _apply_env_overrides(merged)
    merged = _resolve_env_tokens(merged)

    try:
        return PricingConfig.model_validate(merged)
    except ValidationError as exc:
        bullet_list = "\n".join(
            f"- {'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise ConfigurationError(f"Configuration could not be parsed:\n{bullet_list}") from exc


def validate_pricing_config(config: PricingConfig) -> list[str]:
    """Validate a :class:`PricingConfig` instance.

    Args:
        config: Parsed configuration object to validate.

    Returns:
        A list of warning messages. The function raises
        :class:`ConfigurationError` if any fatal issues are detected.
    """

    errors: list[str] = []
    warnings: list[str] = []

    margin = config.margin
    if margin.margin_fraction < 0:
        errors.append("margin.margin_fraction must be non-negative")
    elif margin.margin_fraction > 0.25:
        warnings.append(
            "margin.margin_fraction exceeds 25%; priced probabilities will be heavily clipped"
        )
    if margin.multi_way_fraction is not None and margin.multi_way_fraction < 0:
        errors.append("margin.multi_way_fraction must be non-negative")
    if not 0 < margin.probability_ceiling <= 1:
        errors.append("margin.probability_ceiling must be within (0, 1]")

    goals = config.goals
    if goals.rate_floor <= 0:
        errors.append("goals.rate_floor must be greater than zero")
    if goals.base_goal_cap < 1:
        errors.append("goals.base_goal_cap must be at least 1")
    if goals.max_goal_cap < goals.base_goal_cap:
        errors.append("goals.max_goal_cap must not be below goals.base_goal_cap")
    if not 0 < goals.tail_tolerance < 1:
        errors.append("goals.tail_tolerance must be within (0, 1)")
    if goals.default_correlation < 0:
        errors.append("goals.default_correlation must be non-negative")
    if goals.correlation_ceiling <= 0:
        errors.append("goals.correlation_ceiling must be greater than zero")
    if goals.bracket_start <= 0:
        errors.append("goals.bracket_start must be greater than zero")
    if goals.calibration_iterations <= 0:
        errors.append("goals.calibration_iterations must be greater than zero")
    if goals.calibration_tolerance <= 0:
        errors.append("goals.calibration_tolerance must be greater than zero")
    if goals.correct_score_limit <= 0:
        errors.append("goals.correct_score_limit must be greater than zero")
    if goals.sensitivity < 0:
        warnings.append(
            "goals.sensitivity is negative; higher-rated sides will be priced as weaker"
        )
    if goals.max_goal_cap > 60:
        warnings.append("goals.max_goal_cap above 60 makes goal grids slow to evaluate")

    solver = config.solver
    for name in ("max_iterations", "rally_iterations"):
        if getattr(solver, name) <= 0:
            errors.append(f"solver.{name} must be greater than zero")
    for name in ("tolerance", "rally_tolerance", "distribution_tolerance"):
        if getattr(solver, name) <= 0:
            errors.append(f"solver.{name} must be greater than zero")

    points = config.points
    if points.rally_target < 2:
        errors.append("points.rally_target must be at least 2")
    if points.method == "linear" and points.a + points.b <= 0:
        warnings.append("points.a + points.b is not positive; expected set points clip to zero")

    lines = config.lines
    if not lines.totals_offsets:
        errors.append("lines.totals_offsets cannot be empty")
    if lines.handicap_base <= 0:
        errors.append("lines.handicap_base must be greater than zero")
    if lines.balance_tolerance < 0:
        errors.append("lines.balance_tolerance must be non-negative")
    if lines.max_balanced_lines <= 0:
        errors.append("lines.max_balanced_lines must be greater than zero")
    if lines.max_points_lines <= 0:
        errors.append("lines.max_points_lines must be greater than zero")
    if not 0 <= lines.extreme_tolerance < 0.5:
        errors.append("lines.extreme_tolerance must be within [0, 0.5)")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise ConfigurationError(f"Configuration validation failed:\n{bullet_list}")

    return warnings


__all__ = [
    "ConfigurationError",
    "GoalModelConfig",
    "LineConfig",
    "MarginConfig",
    "PointsModelConfig",
    "PricingConfig",
    "SolverConfig",
    "load_pricing_config",
    "validate_pricing_config",
]
