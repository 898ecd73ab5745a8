"""
BATCH-MANUAL Ingestion

BATCH-MANUAL is the generic JSON score format: a header naming the service
and title, and a body of scores that identify their chart through one of
several match types. It is used both for file uploads and for direct
submissions from clients.

Usage:
    from score_import.ingestion.batch_manual import parse_batch_manual
    parser_result = parse_batch_manual(payload, "file/batch-manual", logger)
"""

import json
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from score_import import catalog
from score_import.config import MAX_COMMENT_LENGTH, MAX_INPUT_SIZE
from score_import.failures import (
    InternalFailure,
    InvalidScoreFailure,
    KTDataNotFoundFailure,
    ScoreImportFatalError,
)
from score_import.games import Game, is_valid_game, valid_games
from score_import.ingestion.common import (
    ParserResult,
    assert_lamp,
    assert_str_as_difficulty,
    assert_str_as_positive_int,
    format_validation_error,
    get_grade_and_percent,
    type_tag,
    validate_item,
)
from score_import.models import ConverterResult, DryScore, DryScoreData
from score_import.utils import log_severe, validate_input_size

NonNegativeStrictInt = Annotated[int, Field(ge=0, strict=True)]

_SERVICE_SUFFIXES = {
    "ir/direct-manual": " (DIRECT-MANUAL)",
    "file/batch-manual": " (BATCH-MANUAL)",
}


@dataclass(frozen=True)
class BatchManualContext:
    service: str
    game: Game
    version: Optional[str] = None


class BatchManualHead(BaseModel):
    model_config = ConfigDict(extra="forbid")

    service: StrictStr = Field(min_length=3, max_length=15)
    game: StrictStr
    version: Optional[StrictStr] = None


class BatchManualScore(BaseModel):
    model_config = ConfigDict(extra="forbid")

    score: float
    lamp: StrictStr
    matchType: Literal[
        "bmsChartHash",
        "hash",
        "ddrSongHash",
        "songHash",
        "songID",
        "kamaitachiSongID",
        "songTitle",
        "title",
        "inGameID",
    ]
    identifier: StrictStr = Field(min_length=1)
    playtype: Optional[StrictStr] = None
    difficulty: Optional[StrictStr] = None
    timeAchieved: Optional[StrictInt] = Field(default=None, gt=0)
    comment: Optional[StrictStr] = Field(default=None, min_length=1, max_length=MAX_COMMENT_LENGTH)
    hitData: Optional[dict[str, NonNegativeStrictInt]] = None
    hitMeta: Optional[dict[str, Any]] = None

    @field_validator("score", mode="before")
    @classmethod
    def _score_is_number(cls, value):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ValueError("Expected a non-negative number")
        return value


# --- Parsing ---
def parse_batch_manual(payload, import_type: str, logger) -> ParserResult:
    """
    Validate the structure of a BATCH-MANUAL payload.

    Only the header and the shape of the body are checked here. Each body item
    is validated by the converter, so one bad score cannot sink the batch.

    Args:
        payload: Decoded JSON object, or raw JSON text/bytes
        import_type: "file/batch-manual" or "ir/direct-manual"
        logger: Logger for this import

    Returns:
        ParserResult over the body items

    Raises:
        ScoreImportFatalError: If the payload is structurally unusable
    """
    if isinstance(payload, (str, bytes)):
        try:
            validate_input_size(payload, MAX_INPUT_SIZE)
            payload = json.loads(payload)
        except ValueError as e:
            raise ScoreImportFatalError(400, f"Invalid BATCH-MANUAL (Could not parse JSON: {e})")

    if not isinstance(payload, dict):
        raise ScoreImportFatalError(
            400, f"Invalid BATCH-MANUAL (Not an object, received {type_tag(payload)}.)"
        )

    head = payload.get("head")
    if not isinstance(head, dict) or "game" not in head:
        raise ScoreImportFatalError(400, "Could not retrieve head.game - is this valid BATCH-MANUAL?")

    if not isinstance(head["game"], str) or not is_valid_game(head["game"]):
        raise ScoreImportFatalError(
            400, f"Invalid game {head['game']} - expected any of {', '.join(valid_games())}"
        )

    try:
        parsed_head = BatchManualHead.model_validate(head)
    except PydanticValidationError as err:
        raise ScoreImportFatalError(400, f"Invalid BATCH-MANUAL: {format_validation_error(err, 'head')}")

    body = payload.get("body")
    if not isinstance(body, list):
        raise ScoreImportFatalError(
            400, f"Invalid BATCH-MANUAL: body | Expected an array. | Received {body!r} [{type_tag(body)}]."
        )

    context = BatchManualContext(
        service=parsed_head.service,
        game=Game(parsed_head.game),
        version=parsed_head.version,
    )

    logger.debug(f"Parsed BATCH-MANUAL header for {context.game.value} with {len(body)} items.")

    return ParserResult(
        iterable=body,
        context=context,
        game=context.game,
        converter=convert_batch_manual,
        import_type=import_type,
    )


# --- Conversion ---
async def convert_batch_manual(store, data, context: BatchManualContext, import_type: str, logger) -> ConverterResult:
    """
    Convert one BATCH-MANUAL score into a dry score plus its song and chart.

    Raises:
        InvalidScoreFailure: Schema violation, bad lamp/difficulty or out-of-range percent
        KTDataNotFoundFailure: The referenced song or chart does not exist
        InternalFailure: Catalog desync or an impossible match type
    """
    item = validate_item(BatchManualScore, data)
    game = context.game

    assert_lamp(item.lamp, game)

    song, chart = await resolve_match_type(store, item, context, import_type, logger)

    percent, grade = get_grade_and_percent(game, item.score, song, chart)

    service = context.service + _SERVICE_SUFFIXES.get(import_type, "")

    dry_score = DryScore(
        game=game.value,
        service=service,
        import_type=import_type,
        comment=item.comment,
        time_achieved=item.timeAchieved,
        score_data=DryScoreData(
            score=item.score,
            percent=percent,
            grade=grade,
            lamp=item.lamp,
            hit_data=item.hitData or {},
            hit_meta=item.hitMeta or {},
        ),
    )

    return ConverterResult(song=song, chart=chart, dry_score=dry_score)


async def _parent_song(store, game: Game, chart, logger):
    song = await catalog.find_song_on_id(store, game, chart.song_id)

    if song is None:
        log_severe(logger, f"{game.value} songID {chart.song_id} has charts but no parent song.")
        raise InternalFailure(f"{game.value} songID {chart.song_id} has charts but no parent song.")

    return song


def _require_pt_diff(item: BatchManualScore, game: Game, lookup: str) -> tuple[str, str]:
    if not item.difficulty:
        raise InvalidScoreFailure(f"Missing 'difficulty' field, but is needed for {lookup} lookup.")

    if not item.playtype:
        raise InvalidScoreFailure(f"Missing 'playtype' field, but is needed for {lookup} lookup.")

    return item.playtype, assert_str_as_difficulty(item.difficulty, game, item.playtype)


async def resolve_match_type(store, item: BatchManualScore, context: BatchManualContext, import_type: str, logger):
    """
    Resolve a score's match type to a (song, chart) pair.

    Returns:
        Tuple of (Song, Chart)
    """
    game = context.game
    match_type = item.matchType

    if match_type in ("bmsChartHash", "hash"):
        if game != Game.BMS:
            raise InvalidScoreFailure(f"Cannot use bmsChartHash lookup on {game.value}.")

        chart = await catalog.find_bms_chart_on_hash(store, item.identifier)

        if chart is None:
            raise KTDataNotFoundFailure(
                f"Cannot find chart for hash {item.identifier}.", import_type, item.model_dump(), context
            )

        return await _parent_song(store, game, chart, logger), chart

    if match_type in ("ddrSongHash", "songHash"):
        if game != Game.DDR:
            raise InvalidScoreFailure(f"Cannot use ddrSongHash lookup on {game.value}.")

        playtype, difficulty = _require_pt_diff(item, game, "ddrSongHash")
        chart = await catalog.find_ddr_chart_on_song_hash(store, item.identifier, playtype, difficulty)

        if chart is None:
            raise KTDataNotFoundFailure(
                f"Cannot find chart for songHash {item.identifier} ({playtype} {difficulty}).",
                import_type,
                item.model_dump(),
                context,
            )

        return await _parent_song(store, game, chart, logger), chart

    if match_type in ("songID", "kamaitachiSongID"):
        song_id = assert_str_as_positive_int(
            item.identifier, "Invalid songID - must be a stringified positive integer."
        )
        song = await catalog.find_song_on_id(store, game, song_id)

        if song is None:
            raise KTDataNotFoundFailure(
                f"Cannot find song with songID {item.identifier}.", import_type, item.model_dump(), context
            )

        return song, await resolve_chart_from_song(store, song, item, context, import_type)

    if match_type in ("songTitle", "title"):
        song = await catalog.find_song_on_title_insensitive(store, game, item.identifier)

        if song is None:
            raise KTDataNotFoundFailure(
                f"Cannot find song with title {item.identifier}.", import_type, item.model_dump(), context
            )

        return song, await resolve_chart_from_song(store, song, item, context, import_type)

    if match_type == "inGameID":
        playtype, difficulty = _require_pt_diff(item, game, "inGameID")
        in_game_id = int(item.identifier) if item.identifier.isdigit() else item.identifier
        chart = await catalog.find_chart_on_in_game_id(
            store, game, in_game_id, playtype, difficulty, context.version
        )

        if chart is None:
            raise KTDataNotFoundFailure(
                f"Cannot find chart with inGameID {item.identifier} ({playtype} {difficulty}).",
                import_type,
                item.model_dump(),
                context,
            )

        return await _parent_song(store, game, chart, logger), chart

    logger.error(f"Invalid matchType {match_type} ended up in conversion - should have been rejected by the schema.")
    raise InternalFailure(f"Invalid matchType {match_type}.")


async def resolve_chart_from_song(store, song, item: BatchManualScore, context: BatchManualContext, import_type: str):
    """
    Find the chart for a resolved song from the item's playtype and difficulty.

    Version-scoped when the batch header names a version.
    """
    game = context.game

    if not item.difficulty:
        raise InvalidScoreFailure("Missing 'difficulty' field, but was necessary for this lookup.")

    if not item.playtype:
        raise InvalidScoreFailure("Missing 'playtype' field, but was necessary for this lookup.")

    difficulty = assert_str_as_difficulty(item.difficulty, game, item.playtype)

    if context.version:
        chart = await catalog.find_chart_with_ptdf_version(
            store, game, song.id, item.playtype, difficulty, context.version
        )
    else:
        chart = await catalog.find_chart_with_ptdf(store, game, song.id, item.playtype, difficulty)

    if chart is None:
        raise KTDataNotFoundFailure(
            f"Cannot find chart for {song.title} ({item.playtype} {difficulty})",
            import_type,
            item.model_dump(),
            context,
        )

    return chart
