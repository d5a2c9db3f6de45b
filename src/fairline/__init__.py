"""
fairline: probabilistic pricing of match, series and points markets.

This package turns a rating difference, a fair win probability or a
per-event win probability into full outcome distributions and priced
two-way and multi-way markets with an explicit bookmaker margin.
"""

from importlib.metadata import PackageNotFoundError, version

try:  # pragma: no cover - exercised in packaging workflows
    __version__ = version("fairline")
except PackageNotFoundError:  # pragma: no cover - local editable installs
    __version__ = "0.0.0"

_EXPORTS = {
    # Pricing entry points
    "price_goal_markets": ".pricing.goals",
    "price_series_markets": ".pricing.series",
    "price_format_markets": ".pricing.formats",
    "price_format_markets_from_odds": ".pricing.formats",
    # Configuration
    "PricingConfig": ".pricing.configuration",
    "load_pricing_config": ".pricing.configuration",
    "get_settings": ".config",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> object:  # pragma: no cover - thin lazy importer
    from importlib import import_module

    target_module = _EXPORTS.get(name)
    if not target_module:
        raise AttributeError(f"module {__name__} has no attribute {name}")
    module = import_module(target_module, __name__)
    attr = getattr(module, name)
    globals()[name] = attr
    return attr


def __dir__() -> list[str]:  # pragma: no cover - trivial
    return sorted(list(globals().keys()) + __all__)
