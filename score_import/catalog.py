"""
Catalog lookups.

Read-only queries for songs and charts. Every function returns None when
nothing matches; deciding whether that is a failure is up to the caller.
"""

from typing import Optional

from score_import.config import CHARTS_COLLECTION, SONGS_COLLECTION
from score_import.games import Game
from score_import.models import Chart, Song
from score_import.utils import normalize_title_search_key

# Primary charts first, so version-scoped lookups prefer the current chart.
_PRIMARY_FIRST = [("isPrimary", -1)]


def _game(game) -> str:
    return Game(game).value


async def find_song_on_id(store, game, song_id: int) -> Optional[Song]:
    doc = await store.find_one(SONGS_COLLECTION, {"game": _game(game), "id": song_id})
    return Song.from_doc(doc) if doc else None


async def find_song_on_title_insensitive(store, game, title: str) -> Optional[Song]:
    """
    Find a song by title, ignoring case, accents and whitespace differences.

    Alternate titles and search terms are checked after the main title.
    When several songs match, the lowest song ID wins.

    Args:
        store: DocumentStore
        game: Title identifier
        title: Title to look for

    Returns:
        Matching Song or None
    """
    key = normalize_title_search_key(title)
    if not key:
        return None

    docs = await store.find(SONGS_COLLECTION, {"game": _game(game)}, sort=[("id", 1)])

    for doc in docs:
        if normalize_title_search_key(doc["title"]) == key:
            return Song.from_doc(doc)

    for doc in docs:
        others = list(doc.get("altTitles", [])) + list(doc.get("searchTerms", []))
        if any(normalize_title_search_key(t) == key for t in others):
            return Song.from_doc(doc)

    return None


async def find_chart_with_ptdf(store, game, song_id: int, playtype: str, difficulty: str) -> Optional[Chart]:
    """Find the primary chart for a song's playtype + difficulty."""
    doc = await store.find_one(
        CHARTS_COLLECTION,
        {
            "game": _game(game),
            "songID": song_id,
            "playtype": playtype,
            "difficulty": difficulty,
            "isPrimary": True,
        },
    )
    return Chart.from_doc(doc) if doc else None


async def find_chart_with_ptdf_version(
    store, game, song_id: int, playtype: str, difficulty: str, version: str
) -> Optional[Chart]:
    """Find the chart for a song's playtype + difficulty that was playable in a version."""
    doc = await store.find_one(
        CHARTS_COLLECTION,
        {
            "game": _game(game),
            "songID": song_id,
            "playtype": playtype,
            "difficulty": difficulty,
            "versions": version,
        },
        sort=_PRIMARY_FIRST,
    )
    return Chart.from_doc(doc) if doc else None


async def find_bms_chart_on_hash(store, chart_hash: str) -> Optional[Chart]:
    """Find a BMS chart by its MD5 or SHA256 hash."""
    chart_hash = chart_hash.lower()
    doc = await store.find_one(
        CHARTS_COLLECTION,
        {
            "game": Game.BMS.value,
            "$or": [{"data.hashMD5": chart_hash}, {"data.hashSHA256": chart_hash}],
        },
    )
    return Chart.from_doc(doc) if doc else None


async def find_ddr_chart_on_song_hash(store, song_hash: str, playtype: str, difficulty: str) -> Optional[Chart]:
    doc = await store.find_one(
        CHARTS_COLLECTION,
        {
            "game": Game.DDR.value,
            "data.songHash": song_hash,
            "playtype": playtype,
            "difficulty": difficulty,
            "isPrimary": True,
        },
    )
    return Chart.from_doc(doc) if doc else None


async def find_chart_on_in_game_id(
    store, game, in_game_id, playtype: str, difficulty: str, version: Optional[str] = None
) -> Optional[Chart]:
    """
    Find a chart by the game's own identifier for the song.

    Without a version only the primary chart is considered; with one, any
    chart playable in that version matches, primary first.
    """
    query = {
        "game": _game(game),
        "inGameID": in_game_id,
        "playtype": playtype,
        "difficulty": difficulty,
    }

    if version is None:
        query["isPrimary"] = True
    else:
        query["versions"] = version

    doc = await store.find_one(CHARTS_COLLECTION, query, sort=_PRIMARY_FIRST)
    return Chart.from_doc(doc) if doc else None
