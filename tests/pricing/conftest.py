from __future__ import annotations

import os
from pathlib import Path

import pytest

from fairline.pricing.configuration import MarginConfig, PricingConfig
from fairline.pricing.models import LeagueBaseline, TeamRating


@pytest.fixture()
def pricing_config() -> PricingConfig:
    return PricingConfig()


@pytest.fixture()
def margined_config() -> PricingConfig:
    return PricingConfig(margin=MarginConfig(margin_fraction=0.05, multi_way_fraction=0.1))


@pytest.fixture()
def home_team() -> TeamRating:
    return TeamRating(team_id="ars", display_name="Arsenal", current_rating=12.0)


@pytest.fixture()
def away_team() -> TeamRating:
    return TeamRating(team_id="che", display_name="Chelsea", current_rating=8.0)


@pytest.fixture()
def league() -> LeagueBaseline:
    return LeagueBaseline(avg_home_goals=1.5, avg_away_goals=1.1, draw_rate=0.27)


@pytest.fixture()
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run from an empty directory with no ``FAIRLINE_*`` variables set."""

    for key in list(os.environ):
        if key.startswith("FAIRLINE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
