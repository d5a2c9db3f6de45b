"""Command line interface for the fairline pricing engines."""

from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from typing import Any, Callable, Dict, Iterable, List, Sequence

import polars as pl

from ..config import FairlineSettings, OutputFormat, get_settings
from .configuration import (
    ConfigurationError,
    PricingConfig,
    load_pricing_config,
    validate_pricing_config,
)
from .errors import PricingError
from .formats import price_format_markets, price_format_markets_from_odds
from .goals import price_goal_markets
from .logging import configure_logging
from .models import (
    FormatMarkets,
    GoalMarkets,
    LeagueBaseline,
    MarketLine,
    PointsMarkets,
    PricedMarket,
    ScoreState,
    SeriesMarkets,
    TeamRating,
)
from .series import price_series_markets
from .tables import distribution_frame, lines_frame, market_frame, scores_frame
from .utils import american_to_decimal, probability_to_american


@dataclasses.dataclass(slots=True)
class CommandContext:
    """Runtime objects shared across command handlers."""

    config: PricingConfig
    settings: FairlineSettings
    output: OutputFormat


CommandHandler = Callable[[CommandContext, argparse.Namespace], None]


@dataclasses.dataclass(slots=True)
class Subcommand:
    """Container describing a CLI sub-command."""

    name: str
    help: str
    configure: Callable[[argparse.ArgumentParser], None]
    handler: CommandHandler

    def add_to_parser(
        self,
        subparsers,
        parent: argparse.ArgumentParser,
    ) -> argparse.ArgumentParser:
        parser = subparsers.add_parser(self.name, parents=[parent], help=self.help)
        self.configure(parser)
        parser.set_defaults(handler=self.handler, command=self.name)
        return parser


class SubcommandApp:
    """Registry that wires handlers into an :class:`argparse` parser."""

    def __init__(self, description: str | None = None) -> None:
        self._commands: list[Subcommand] = []
        self._description = description

    def command(
        self,
        name: str,
        *,
        help: str,
        configure: Callable[[argparse.ArgumentParser], None],
    ) -> Callable[[CommandHandler], CommandHandler]:
        """Register ``handler`` as a sub-command with configuration callback."""

        def _decorator(handler: CommandHandler) -> CommandHandler:
            if not callable(handler):
                raise TypeError("Command handlers must be callable")
            self._commands.append(
                Subcommand(name=name, help=help, configure=configure, handler=handler)
            )
            return handler

        return _decorator

    @property
    def commands(self) -> Sequence[Subcommand]:
        return tuple(self._commands)

    def build_parser(self) -> argparse.ArgumentParser:
        parent = argparse.ArgumentParser(add_help=False)
        parent.add_argument("--config", dest="config_file")
        parent.add_argument("--environment", dest="config_environment")
        parent.add_argument(
            "--output", choices=[choice.value for choice in OutputFormat], default=None
        )
        parent.add_argument("--log-level", dest="log_level")
        parent.add_argument(
            "--margin",
            type=float,
            default=None,
            help="Override margin.margin_fraction for this run.",
        )

        parser = argparse.ArgumentParser(description=self._description)
        subparsers = parser.add_subparsers(dest="command", required=True)
        for command in self._commands:
            command.add_to_parser(subparsers, parent)
        return parser


APP = SubcommandApp(description=__doc__)


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------


def _parse_score(value: str) -> ScoreState:
    try:
        left, right = value.replace(":", "-").split("-")
        return ScoreState(side_a_wins=int(left), side_b_wins=int(right))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"score must look like '2-1', got {value!r}"
        ) from exc


def _configure_goals_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--home-rating", type=float, required=True)
    parser.add_argument("--away-rating", type=float, required=True)
    parser.add_argument("--home-name", default="Home")
    parser.add_argument("--away-name", default="Away")
    parser.add_argument("--avg-home-goals", type=float, default=1.5)
    parser.add_argument("--avg-away-goals", type=float, default=1.1)
    parser.add_argument(
        "--draw-rate",
        type=float,
        default=None,
        help="League draw rate used to calibrate goal correlation.",
    )


def _configure_series_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--probability",
        type=float,
        required=True,
        help="Probability that side A wins a single frame.",
    )
    parser.add_argument("--best-of", type=int, required=True)
    parser.add_argument("--score", type=_parse_score, default=None)


def _configure_format_parser(parser: argparse.ArgumentParser) -> None:
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--probability",
        type=float,
        help="Fair probability that side A wins the match.",
    )
    source.add_argument(
        "--odds",
        type=float,
        nargs=2,
        metavar=("ODDS_A", "ODDS_B"),
        help="Two-way decimal prices to strip the overround from.",
    )
    source.add_argument(
        "--american",
        nargs=2,
        metavar=("PRICE_A", "PRICE_B"),
        help="Two-way American prices such as +150 -180.",
    )
    parser.add_argument("--format", dest="series_format", default="bo5")
    parser.add_argument("--score", type=_parse_score, default=None)


def _configure_validate_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--warnings-as-errors",
        action="store_true",
        help="Fail validation when configuration warnings are encountered.",
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _american(probability: float) -> int | None:
    if not 0.0 < probability < 1.0:
        return None
    return probability_to_american(probability)


def _line_payload(line: MarketLine) -> Dict[str, Any]:
    return {
        "label": line.label,
        "line": line.line,
        "fair_a": line.fair_probability_a,
        "fair_b": line.fair_probability_b,
        "margined_a": line.margined_probability_a,
        "margined_b": line.margined_probability_b,
        "american_a": _american(line.margined_probability_a),
        "american_b": _american(line.margined_probability_b),
    }


def _lines_payload(lines: Iterable[MarketLine]) -> List[Dict[str, Any]]:
    return [_line_payload(line) for line in lines]


def _market_payload(market: PricedMarket) -> Dict[str, Any]:
    return {
        selection.label: {
            "fair": selection.fair_probability,
            "margined": selection.margined_probability,
        }
        for selection in market.selections
    }


def _points_payload(points: PointsMarkets) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "method": points.method,
        "expected_set_points": points.expected_set_points,
        "expected_match_points": points.expected_match_points,
        "expected_points_handicap": points.expected_points_handicap,
        "totals_lines": _lines_payload(points.totals_lines),
        "handicap_lines": _lines_payload(points.handicap_lines),
    }
    if points.first_set_total is not None:
        payload["first_set_total"] = _line_payload(points.first_set_total)
    if points.rally is not None:
        payload["rally_probability"] = points.rally.rally_probability
    return payload


def _goals_payload(markets: GoalMarkets) -> Dict[str, Any]:
    return {
        "home": markets.home.display_name,
        "away": markets.away.display_name,
        "lambda_home": markets.lambda_home,
        "lambda_away": markets.lambda_away,
        "p_home": markets.p_home,
        "p_draw": markets.p_draw,
        "p_away": markets.p_away,
        "calibrated_correlation": markets.calibrated_correlation,
        "calibration_method": markets.calibration.method,
        "goal_cap": markets.goal_cap,
        "match_result": _market_payload(markets.match_result),
        "totals_lines": _lines_payload(markets.totals_lines),
        "both_teams_to_score": _line_payload(markets.both_teams_to_score),
        "correct_scores": dict(markets.correct_scores),
    }


def _series_payload(markets: SeriesMarkets) -> Dict[str, Any]:
    return {
        "best_of": markets.best_of,
        "first_to": markets.first_to,
        "score": [markets.state.frames_a, markets.state.frames_b],
        "match": _line_payload(markets.match),
        "frames_distribution": {
            str(count): probability for count, probability in markets.frames_distribution.items()
        },
        "expected_frames": markets.expected_frames,
        "totals_lines": _lines_payload(markets.totals_lines),
        "handicap_lines": _lines_payload(markets.handicap_lines),
        "engine_version": markets.engine_version,
    }


def _format_payload(markets: FormatMarkets) -> Dict[str, Any]:
    return {
        "format": markets.format.key,
        "fair_match_probability": markets.fair_match_probability,
        "set_probability": markets.set_probability,
        "match": _line_payload(markets.match),
        "first_set": _line_payload(markets.first_set),
        "correct_score": dict(markets.correct_score_distribution),
        "total_sets": {
            str(count): probability for count, probability in markets.total_sets.items()
        },
        "expected_sets": markets.expected_sets,
        "totals_lines": _lines_payload(markets.totals_lines),
        "handicap_lines": _lines_payload(markets.handicap_lines),
        "points": _points_payload(markets.points),
        "engine_version": markets.engine_version,
    }


def _emit_json(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2))


def _emit_tables(frames: Sequence[tuple[str, pl.DataFrame]]) -> None:
    for title, frame in frames:
        if frame.is_empty():
            continue
        print(title)
        print(frame)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@APP.command(
    "validate-config",
    help="Validate pricing configuration",
    configure=_configure_validate_parser,
)
def _cmd_validate_config(context: CommandContext, args: argparse.Namespace) -> None:
    config = context.config
    try:
        warnings = validate_pricing_config(config)
    except ConfigurationError as exc:
        print("Configuration invalid:")
        for line in str(exc).splitlines()[1:]:
            text = line if line.startswith("-") else f"- {line}"
            print(text)
        raise SystemExit(1) from exc

    print(f"Configuration '{config.environment}' is valid.")
    if warnings:
        print("Warnings:")
        for message in warnings:
            print(f"- {message}")
        if getattr(args, "warnings_as_errors", False):
            raise SystemExit(2)


@APP.command(
    "goals",
    help="Price 1X2, goal totals and correct scores from team ratings",
    configure=_configure_goals_parser,
)
def _cmd_goals(context: CommandContext, args: argparse.Namespace) -> None:
    markets = price_goal_markets(
        TeamRating(team_id="home", display_name=args.home_name, current_rating=args.home_rating),
        TeamRating(team_id="away", display_name=args.away_name, current_rating=args.away_rating),
        LeagueBaseline(
            avg_home_goals=args.avg_home_goals,
            avg_away_goals=args.avg_away_goals,
            draw_rate=args.draw_rate,
        ),
        context.config,
    )
    if context.output is OutputFormat.TABLE:
        _emit_tables(
            [
                ("Match result", market_frame(markets.match_result)),
                ("Total goals", lines_frame(markets.totals_lines)),
                ("Both teams to score", lines_frame([markets.both_teams_to_score])),
                ("Correct score", scores_frame(markets.correct_scores)),
            ]
        )
        return
    _emit_json(_goals_payload(markets))


@APP.command(
    "series",
    help="Price a best-of-N series from a per-frame probability",
    configure=_configure_series_parser,
)
def _cmd_series(context: CommandContext, args: argparse.Namespace) -> None:
    markets = price_series_markets(
        args.probability,
        args.best_of,
        state=args.score,
        margin=context.config.margin,
        config=context.config,
    )
    if context.output is OutputFormat.TABLE:
        _emit_tables(
            [
                ("Match winner", lines_frame([markets.match])),
                ("Frames played", distribution_frame(markets.frames_distribution, "frames")),
                ("Total frames", lines_frame(markets.totals_lines)),
                ("Frame handicap", lines_frame(markets.handicap_lines)),
            ]
        )
        return
    _emit_json(_series_payload(markets))


@APP.command(
    "format",
    help="Price set-based markets from a fair match probability or odds",
    configure=_configure_format_parser,
)
def _cmd_format(context: CommandContext, args: argparse.Namespace) -> None:
    odds = args.odds
    if args.american is not None:
        odds = [american_to_decimal(price) for price in args.american]
    if odds is not None:
        markets = price_format_markets_from_odds(
            odds[0],
            odds[1],
            args.series_format,
            config=context.config,
            state=args.score,
        )
    else:
        markets = price_format_markets(
            args.probability,
            args.series_format,
            config=context.config,
            state=args.score,
        )
    if context.output is OutputFormat.TABLE:
        points = markets.points
        point_lines = list(points.totals_lines) + list(points.handicap_lines)
        if points.first_set_total is not None:
            point_lines.append(points.first_set_total)
        _emit_tables(
            [
                ("Match and first set", lines_frame([markets.match, markets.first_set])),
                ("Correct score", market_frame(markets.correct_score)),
                ("Total sets", distribution_frame(markets.total_sets, "sets")),
                ("Set lines", lines_frame(markets.totals_lines + markets.handicap_lines)),
                ("Points", lines_frame(point_lines)),
            ]
        )
        return
    _emit_json(_format_payload(markets))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    return APP.build_parser()


def _load_config(args: argparse.Namespace, settings: FairlineSettings) -> PricingConfig:
    base_path = args.config_file or settings.config_path
    config = load_pricing_config(
        base_path=base_path,
        environment=args.config_environment or settings.environment,
    )
    if args.margin is not None:
        margin = config.margin.model_copy(update={"margin_fraction": args.margin})
        config = config.model_copy(update={"margin": margin})
    return config


def _dispatch(args: argparse.Namespace) -> None:
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)
    config = _load_config(args, settings)
    output = OutputFormat(args.output) if args.output else settings.output
    context = CommandContext(config=config, settings=settings, output=output)
    handler: CommandHandler = args.handler
    if args.command != "validate-config":
        try:
            warnings = validate_pricing_config(config)
        except ConfigurationError as exc:
            print(str(exc), file=sys.stderr)
            raise SystemExit(1) from exc
        for message in warnings:
            print(f"[config-warning] {message}", file=sys.stderr)
    handler(context, args)


def main(argv: Sequence[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        _dispatch(args)
    except PricingError as exc:
        print(str(exc), file=sys.stderr)
        raise SystemExit(2) from exc
    except ConfigurationError as exc:
        print(str(exc), file=sys.stderr)
        raise SystemExit(1) from exc


__all__ = ["APP", "main"]


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
