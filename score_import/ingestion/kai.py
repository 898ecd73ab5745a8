"""
Kai API Ingestion

Pulls play history from Kai-style network APIs (FLO, EAG) and converts each
play into a dry score. Pages are fetched with requests and followed through
`_links._next` until the API runs out.

Usage:
    from score_import.ingestion.kai import parse_kai_iidx
    parser_result = parse_kai_iidx("FLO", token, logger)
"""

from dataclasses import dataclass
from typing import Callable, Iterator, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

from score_import import catalog
from score_import.config import EAG_API_URL, FLO_API_URL, KAI_MAX_PAGES, KAI_REQUEST_TIMEOUT
from score_import.failures import (
    InternalFailure,
    InvalidScoreFailure,
    KTDataNotFoundFailure,
    ScoreImportFatalError,
)
from score_import.games import Game
from score_import.ingestion.common import (
    ParserResult,
    get_grade_and_percent,
    parse_date_from_string,
    validate_item,
)
from score_import.models import ConverterResult, DryScore, DryScoreData
from score_import.utils import log_severe, log_verbose

KAI_SERVICES = {"FLO": FLO_API_URL, "EAG": EAG_API_URL}

IIDX_LAMPS = (
    "NO PLAY",
    "FAILED",
    "ASSIST CLEAR",
    "EASY CLEAR",
    "CLEAR",
    "HARD CLEAR",
    "EX HARD CLEAR",
    "FULL COMBO",
)

SDVX_DIFFICULTIES = ("NOV", "ADV", "EXH", "ANY_INF", "MXM")

SDVX_LAMPS = (
    "FAILED",
    "CLEAR",
    "EXCESSIVE CLEAR",
    "ULTIMATE CHAIN",
    "PERFECT ULTIMATE CHAIN",
)


@dataclass(frozen=True)
class KaiContext:
    service: str


class KaiIIDXScore(BaseModel):
    model_config = ConfigDict(extra="allow")

    music_id: StrictInt = Field(gt=0)
    play_style: str = Field(pattern=r"^(SINGLE|DOUBLE)$")
    difficulty: str = Field(pattern=r"^(BEGINNER|NORMAL|HYPER|ANOTHER|LEGGENDARIA)$")
    version_played: StrictInt = Field(ge=9, le=30)
    lamp: StrictInt = Field(ge=0, le=7)
    ex_score: StrictInt = Field(ge=0)
    miss_count: Optional[StrictInt] = Field(default=None, ge=0)
    fast: Optional[StrictInt] = Field(default=None, ge=0)
    slow: Optional[StrictInt] = Field(default=None, ge=0)
    timestamp: StrictStr


class KaiSDVXScore(BaseModel):
    model_config = ConfigDict(extra="allow")

    music_id: StrictInt = Field(gt=0)
    music_difficulty: StrictInt = Field(ge=0, le=4)
    played_version: StrictInt = Field(ge=1, le=6)
    clear_type: StrictInt = Field(ge=0, le=4)
    max_chain: StrictInt = Field(ge=0)
    score: StrictInt = Field(ge=0, le=10_000_000)
    critical: StrictInt = Field(ge=0)
    near: StrictInt = Field(ge=0)
    error: StrictInt = Field(ge=0)
    early: StrictInt = Field(ge=0)
    late: StrictInt = Field(ge=0)
    gauge_rate: StrictInt = Field(ge=0, le=100)
    timestamp: StrictStr


# --- API Traversal ---
def requests_fetch(url: str, token: str, session: Optional[requests.Session] = None) -> dict:
    """GET one page of a Kai API and decode it."""
    http = session or requests
    response = http.get(
        url,
        headers={"Authorization": f"Bearer {token}"},
        timeout=KAI_REQUEST_TIMEOUT,
    )
    response.raise_for_status()
    return response.json()


def traverse_kai_api(
    base_url: str,
    endpoint: str,
    token: str,
    logger,
    fetch: Callable = requests_fetch,
) -> Iterator[dict]:
    """
    Yield every item of a paginated Kai endpoint.

    Args:
        base_url: API root, e.g. FLO_API_URL
        endpoint: Path of the first page
        token: OAuth bearer token for the user
        logger: Logger for this import
        fetch: Page fetcher (url, token) -> decoded JSON; injectable for tests

    Raises:
        ScoreImportFatalError: If a page cannot be fetched or is malformed
    """
    url = f"{base_url.rstrip('/')}{endpoint}"

    for page in range(KAI_MAX_PAGES):
        log_verbose(logger, f"Fetching Kai page {page + 1}: {url}")

        try:
            body = fetch(url, token)
        except requests.RequestException as e:
            logger.error(f"Kai API request to {url} failed: {e}")
            raise ScoreImportFatalError(500, f"Failed to fetch scores from {base_url}.")

        if not isinstance(body, dict) or not isinstance(body.get("_items"), list):
            logger.error(f"Kai API returned an invalid page from {url}: {body!r:.200}")
            raise ScoreImportFatalError(500, f"Recieved invalid response from {base_url}.")

        yield from body["_items"]

        next_url = (body.get("_links") or {}).get("_next")
        if not next_url:
            return
        url = next_url

    logger.warning(f"Stopped traversing {base_url} after {KAI_MAX_PAGES} pages.")


def _kai_parser(service: str, game: Game, endpoint: str, converter, token: str, logger, fetch) -> ParserResult:
    if service not in KAI_SERVICES:
        raise ScoreImportFatalError(400, f"Unknown Kai service {service}.")

    return ParserResult(
        iterable=traverse_kai_api(KAI_SERVICES[service], endpoint, token, logger, fetch),
        context=KaiContext(service=service),
        game=game,
        converter=converter,
    )


def parse_kai_iidx(service: str, token: str, logger, fetch: Callable = requests_fetch) -> ParserResult:
    return _kai_parser(service, Game.IIDX, "/api/iidx/v2/play_history", convert_kai_iidx, token, logger, fetch)


def parse_kai_sdvx(service: str, token: str, logger, fetch: Callable = requests_fetch) -> ParserResult:
    return _kai_parser(service, Game.SDVX, "/api/sdvx/v1/play_history", convert_kai_sdvx, token, logger, fetch)


# --- Conversion ---
async def _find_song_for_chart(store, game: Game, chart, logger):
    song = await catalog.find_song_on_id(store, game, chart.song_id)

    if song is None:
        log_severe(logger, f"Song-Chart desync with song ID {chart.song_id} ({game.value}).")
        raise InternalFailure(f"Song-Chart desync with song ID {chart.song_id} ({game.value}).")

    return song


async def convert_kai_iidx(store, data, context: KaiContext, import_type: str, logger) -> ConverterResult:
    score = validate_item(KaiIIDXScore, data)

    playtype = "SP" if score.play_style == "SINGLE" else "DP"

    if playtype == "DP" and score.difficulty == "BEGINNER":
        raise InvalidScoreFailure("BEGINNER charts do not exist for DP.")

    chart = await catalog.find_chart_on_in_game_id(
        store, Game.IIDX, score.music_id, playtype, score.difficulty, str(score.version_played)
    )

    if chart is None:
        raise KTDataNotFoundFailure(
            f"Could not find chart with musicID {score.music_id} "
            f"({playtype} {score.difficulty} - Version {score.version_played})",
            import_type,
            data,
            context,
        )

    song = await _find_song_for_chart(store, Game.IIDX, chart, logger)
    percent, grade = get_grade_and_percent(Game.IIDX, score.ex_score, song, chart)

    hit_meta = {}
    if score.miss_count is not None:
        hit_meta["bp"] = score.miss_count
    if score.fast is not None:
        hit_meta["fast"] = score.fast
    if score.slow is not None:
        hit_meta["slow"] = score.slow

    dry_score = DryScore(
        game=Game.IIDX.value,
        service=context.service,
        import_type=import_type,
        time_achieved=parse_date_from_string(score.timestamp),
        score_data=DryScoreData(
            score=score.ex_score,
            percent=percent,
            grade=grade,
            lamp=IIDX_LAMPS[score.lamp],
            hit_meta=hit_meta,
        ),
    )

    return ConverterResult(song=song, chart=chart, dry_score=dry_score)


async def convert_kai_sdvx(store, data, context: KaiContext, import_type: str, logger) -> ConverterResult:
    score = validate_item(KaiSDVXScore, data)

    difficulty = SDVX_DIFFICULTIES[score.music_difficulty]

    chart = await catalog.find_chart_on_in_game_id(
        store, Game.SDVX, score.music_id, "Single", difficulty, str(score.played_version)
    )

    if chart is None:
        raise KTDataNotFoundFailure(
            f"Could not find chart with songID {score.music_id} ({difficulty} - Version {score.played_version})",
            import_type,
            data,
            context,
        )

    song = await _find_song_for_chart(store, Game.SDVX, chart, logger)
    percent, grade = get_grade_and_percent(Game.SDVX, score.score, song, chart)

    dry_score = DryScore(
        game=Game.SDVX.value,
        service=context.service,
        import_type=import_type,
        time_achieved=parse_date_from_string(score.timestamp),
        score_data=DryScoreData(
            score=score.score,
            percent=percent,
            grade=grade,
            lamp=SDVX_LAMPS[score.clear_type],
            hit_data={
                "critical": score.critical,
                "near": score.near,
                "miss": score.error,
            },
            hit_meta={
                "fast": score.early,
                "slow": score.late,
                "gauge": score.gauge_rate,
                "maxCombo": score.max_chain,
            },
        ),
    )

    return ConverterResult(song=song, chart=chart, dry_score=dry_score)
