"""
Shared helpers for parsers and converters.

- percent and grade derivation per title
- string assertions used by lookups
- timestamp parsing
- pydantic validation with submitter-readable failure messages
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from score_import.failures import InternalFailure, InvalidScoreFailure
from score_import.games import Game, get_game_config


@dataclass
class ParserResult:
    """
    What a parser hands to the importer.

    Attributes:
        iterable: Raw items, one converter call each
        context: Format-specific context shared by every item
        game: Title the items belong to
        converter: Async converter function for this format
    """

    iterable: Iterable
    context: Any
    game: Game
    converter: Callable
    import_type: Optional[str] = None
    extra: dict = field(default_factory=dict)


# --- Validation ---
_TYPE_TAGS = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    dict: "object",
    list: "array",
    type(None): "null",
}


def type_tag(value) -> str:
    """Short, submitter-facing name for a value's type."""
    return _TYPE_TAGS.get(type(value), type(value).__name__)


def format_field_path(loc: tuple, prefix: str = "") -> str:
    parts = [prefix] if prefix else []
    for part in loc:
        if isinstance(part, int):
            if parts:
                parts[-1] = f"{parts[-1]}[{part}]"
            else:
                parts.append(f"[{part}]")
        else:
            parts.append(str(part))
    return ".".join(parts)


def format_validation_error(err: PydanticValidationError, prefix: str = "") -> str:
    """
    Turn the first pydantic error into "path | constraint. | Received value [type]."

    Args:
        err: pydantic ValidationError
        prefix: Optional path prefix, e.g. "head"

    Returns:
        Human-readable message
    """
    first = err.errors()[0]
    path = format_field_path(tuple(first.get("loc", ())), prefix)
    msg = first.get("msg", "Invalid value").rstrip(".")

    if first.get("type") == "missing":
        received = "Received nothing [missing]."
    else:
        value = first.get("input")
        received = f"Received {value!r} [{type_tag(value)}]."

    return f"{path} | {msg}. | {received}"


def validate_item(model, data, prefix: str = ""):
    """
    Validate a raw item against a pydantic model.

    Raises:
        InvalidScoreFailure: On any schema violation
    """
    if not isinstance(data, dict):
        raise InvalidScoreFailure(f"Expected an object, received {type_tag(data)}.")

    try:
        return model.model_validate(data)
    except PydanticValidationError as err:
        raise InvalidScoreFailure(format_validation_error(err, prefix)) from err


# --- Score Utils ---
def calculate_percent(game, score: float, chart) -> float:
    """
    Derive percent from a raw score using the title's formula.

    Args:
        game: Title identifier
        score: Raw score
        chart: Chart the score was achieved on

    Returns:
        Percent (not clamped)

    Raises:
        InternalFailure: If the chart lacks data the formula needs
    """
    game = Game(game)

    if game in (Game.IIDX, Game.BMS):
        notecount = chart.data.get("notecount")
        if not notecount:
            raise InternalFailure(f"Chart {chart.chart_id} has no notecount - cannot calculate percent.")
        return (100 * score) / (notecount * 2)

    if game in (Game.SDVX, Game.USC):
        return score / 100_000

    if game in (Game.DDR, Game.CHUNITHM):
        return score / 10_000

    if game == Game.GITADORA:
        return float(score)

    raise InternalFailure(f"No percent calculation for {game.value}.")


def get_grade_from_percent(game, percent: float) -> str:
    """
    Highest grade whose boundary is at or below percent.

    Raises:
        InvalidScoreFailure: If percent is below every boundary
    """
    config = get_game_config(game)

    for grade, boundary in reversed(list(zip(config.grades, config.grade_boundaries))):
        if percent >= boundary:
            return grade

    raise InvalidScoreFailure(f"Could not resolve grade for percent {percent}.")


def assert_percent_in_range(game, percent: float, song, chart) -> None:
    """
    Reject scores whose percent exceeds the title maximum.

    Raises:
        InvalidScoreFailure: If percent is above the maximum or negative
    """
    percent_max = get_game_config(game).percent_max

    if percent > percent_max:
        raise InvalidScoreFailure(
            f"{song.title} ({chart.playtype} {chart.difficulty}): "
            f"Percent was greater than {percent_max}% ({percent:.2f}%)"
        )

    if percent < 0:
        raise InvalidScoreFailure(
            f"{song.title} ({chart.playtype} {chart.difficulty}): Percent was negative ({percent:.2f}%)"
        )


def get_grade_and_percent(game, score: float, song, chart) -> tuple[float, str]:
    percent = calculate_percent(game, score, chart)
    assert_percent_in_range(game, percent, song, chart)
    return percent, get_grade_from_percent(game, percent)


# --- String Asserts ---
def assert_str_as_positive_int(value, error_message: str) -> int:
    """
    Parse a stringified positive integer.

    Raises:
        InvalidScoreFailure: With error_message if value is not one
    """
    text = str(value).strip()
    if not text.isdigit() or int(text) <= 0:
        raise InvalidScoreFailure(error_message)
    return int(text)


def assert_str_as_difficulty(value: str, game, playtype: str) -> str:
    """
    Check a difficulty label against the title's difficulties for a playtype.

    Raises:
        InvalidScoreFailure: If the label is not valid
    """
    config = get_game_config(game)

    if playtype not in config.difficulties:
        raise InvalidScoreFailure(f"Invalid playtype {playtype} for {config.game.value}.")

    if value not in config.difficulties[playtype]:
        raise InvalidScoreFailure(
            f"Invalid difficulty {value} - expected any of {', '.join(config.difficulties[playtype])}."
        )

    return value


def assert_lamp(value: str, game) -> str:
    config = get_game_config(game)
    if value not in config.lamps:
        raise InvalidScoreFailure(
            f"Invalid lamp {value} - expected any of {', '.join(config.lamps)}."
        )
    return value


# --- Dates ---
def parse_date_from_string(value: Optional[str]) -> Optional[int]:
    """
    Parse an ISO-8601 timestamp into epoch milliseconds.

    Naive timestamps are treated as UTC. Unparsable input gives None rather
    than a failure, since a missing timestamp only keeps a score out of sessions.
    """
    if not value:
        return None

    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return int(parsed.timestamp() * 1000)
