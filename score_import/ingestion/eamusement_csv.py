"""
e-amusement IIDX CSV Ingestion

Reads the official score CSV downloadable from the e-amusement site. Each row
is one song with a block of columns per difficulty; every played difficulty
becomes one item for the converter.

Usage:
    from score_import.ingestion.eamusement_csv import parse_eamusement_iidx_csv
    parser_result = parse_eamusement_iidx_csv(csv_text, "SP", logger)
"""

import io
from dataclasses import dataclass
from datetime import timedelta, timezone
from typing import Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

from score_import import catalog
from score_import.config import MAX_INPUT_SIZE
from score_import.failures import InvalidScoreFailure, KTDataNotFoundFailure, ScoreImportFatalError
from score_import.games import Game
from score_import.ingestion.common import (
    ParserResult,
    assert_lamp,
    get_grade_and_percent,
    validate_item,
)
from score_import.models import ConverterResult, DryScore, DryScoreData
from score_import.utils import validate_input_size

JST = timezone(timedelta(hours=9))

TITLE_COLUMN = "タイトル"
TIMESTAMP_COLUMN = "最終プレー日時"

DIFFICULTY_COLUMNS = ("難易度", "スコア", "PGreat", "Great", "ミスカウント", "クリアタイプ", "DJ LEVEL")
REQUIRED_DIFFICULTIES = ("NORMAL", "HYPER", "ANOTHER", "LEGGENDARIA")

# クリアタイプ labels that differ from the canonical IIDX lamps
CSV_LAMP_LABELS = {
    "FULLCOMBO CLEAR": "FULL COMBO",
}


@dataclass(frozen=True)
class EamusementContext:
    playtype: str
    service: str = "e-amusement"
    version: Optional[str] = None


class EamusementIIDXItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: StrictStr = Field(min_length=1)
    difficulty: StrictStr
    score: StrictInt = Field(ge=0)
    pgreat: Optional[StrictInt] = Field(default=None, ge=0)
    great: Optional[StrictInt] = Field(default=None, ge=0)
    bp: Optional[StrictInt] = Field(default=None, ge=0)
    lamp: StrictStr
    timestamp: Optional[StrictInt] = None


# --- Helpers ---
def _to_int(value) -> Optional[int]:
    text = str(value).strip()
    return int(text) if text.isdigit() else None


def parse_jst_timestamp(value) -> Optional[int]:
    """
    Parse an e-amusement timestamp (JST, e.g. "2021-09-25 21:31") into epoch ms.

    Returns:
        Milliseconds since epoch, or None if the value is blank or unparsable
    """
    if not str(value).strip():
        return None

    parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        return None

    if parsed.tzinfo is None:
        parsed = parsed.tz_localize(JST)

    return int(parsed.timestamp() * 1000)


def validate_header(columns, logger) -> tuple:
    """
    Check the CSV header and work out which difficulties it carries.

    Returns:
        Tuple of difficulty labels present, BEGINNER first when included

    Raises:
        ScoreImportFatalError: If a required column is missing
    """
    columns = set(columns)
    difficulties = ("BEGINNER",) + REQUIRED_DIFFICULTIES if "BEGINNER スコア" in columns else REQUIRED_DIFFICULTIES

    required = [TITLE_COLUMN, TIMESTAMP_COLUMN]
    required += [f"{diff} {col}" for diff in difficulties for col in DIFFICULTY_COLUMNS]

    missing = [col for col in required if col not in columns]
    if missing:
        logger.info(f"Rejected e-amusement CSV missing {len(missing)} columns, first: {missing[0]}")
        raise ScoreImportFatalError(400, f"Invalid CSV header: missing column {missing[0]}.")

    return difficulties


def canonical_lamp(label: str) -> str:
    label = str(label).strip()
    return CSV_LAMP_LABELS.get(label, label)


def _expand_rows(records: list, difficulties: tuple, playtype: str) -> list:
    items = []

    for record in records:
        timestamp = parse_jst_timestamp(record[TIMESTAMP_COLUMN])

        for diff in difficulties:
            if playtype == "DP" and diff == "BEGINNER":
                continue

            score = _to_int(record[f"{diff} スコア"]) or 0
            lamp = canonical_lamp(record[f"{diff} クリアタイプ"])

            if score == 0 and lamp == "NO PLAY":
                continue

            items.append(
                {
                    "title": record[TITLE_COLUMN],
                    "difficulty": diff,
                    "score": score,
                    "pgreat": _to_int(record[f"{diff} PGreat"]),
                    "great": _to_int(record[f"{diff} Great"]),
                    "bp": _to_int(record[f"{diff} ミスカウント"]),
                    "lamp": lamp,
                    "timestamp": timestamp,
                }
            )

    return items


# --- Parsing ---
def parse_eamusement_iidx_csv(payload, playtype: str, logger, version: Optional[str] = None) -> ParserResult:
    """
    Read an e-amusement IIDX score CSV.

    Args:
        payload: CSV text or bytes (UTF-8, optionally with BOM)
        playtype: "SP" or "DP"; the CSV itself does not say which
        logger: Logger for this import
        version: Optional version tag to scope chart lookups

    Returns:
        ParserResult with one item per played (song, difficulty)

    Raises:
        ScoreImportFatalError: If the file cannot be read or the header is wrong
    """
    if playtype not in ("SP", "DP"):
        raise ScoreImportFatalError(400, f"Invalid playtype {playtype} - expected SP or DP.")

    try:
        validate_input_size(payload, MAX_INPUT_SIZE)
    except ValueError as e:
        raise ScoreImportFatalError(400, str(e))

    if isinstance(payload, bytes):
        payload = payload.decode("utf-8-sig", errors="replace")

    try:
        df = pd.read_csv(io.StringIO(payload.lstrip("\ufeff")), dtype=str, keep_default_na=False)
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise ScoreImportFatalError(400, f"Invalid CSV: {e}")

    df.columns = [str(c).strip() for c in df.columns]
    difficulties = validate_header(df.columns, logger)

    items = _expand_rows(df.to_dict(orient="records"), difficulties, playtype)

    logger.info(f"Read {len(df)} CSV rows into {len(items)} plays ({playtype}).")

    return ParserResult(
        iterable=items,
        context=EamusementContext(playtype=playtype, version=version),
        game=Game.IIDX,
        converter=convert_eamusement_iidx,
    )


# --- Conversion ---
async def convert_eamusement_iidx(store, data, context: EamusementContext, import_type: str, logger) -> ConverterResult:
    item = validate_item(EamusementIIDXItem, data)

    lamp = canonical_lamp(item.lamp)
    assert_lamp(lamp, Game.IIDX)

    if context.playtype == "DP" and item.difficulty == "BEGINNER":
        raise InvalidScoreFailure("BEGINNER charts do not exist for DP.")

    song = await catalog.find_song_on_title_insensitive(store, Game.IIDX, item.title)
    if song is None:
        raise KTDataNotFoundFailure(f"Could not find song with title {item.title}.", import_type, data, context)

    if context.version:
        chart = await catalog.find_chart_with_ptdf_version(
            store, Game.IIDX, song.id, context.playtype, item.difficulty, context.version
        )
    else:
        chart = await catalog.find_chart_with_ptdf(store, Game.IIDX, song.id, context.playtype, item.difficulty)

    if chart is None:
        raise KTDataNotFoundFailure(
            f"Could not find chart {song.title} ({context.playtype} {item.difficulty}).",
            import_type,
            data,
            context,
        )

    percent, grade = get_grade_and_percent(Game.IIDX, item.score, song, chart)

    hit_data = {}
    if item.pgreat is not None:
        hit_data["pgreat"] = item.pgreat
    if item.great is not None:
        hit_data["great"] = item.great

    hit_meta = {}
    if item.bp is not None:
        hit_meta["bp"] = item.bp

    dry_score = DryScore(
        game=Game.IIDX.value,
        service=context.service,
        import_type=import_type,
        time_achieved=item.timestamp,
        score_data=DryScoreData(
            score=item.score,
            percent=percent,
            grade=grade,
            lamp=lamp,
            hit_data=hit_data,
            hit_meta=hit_meta,
        ),
    )

    return ConverterResult(song=song, chart=chart, dry_score=dry_score)
