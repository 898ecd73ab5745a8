"""
Shared fixtures: a small seeded catalog in a MemoryStore and a score factory.
"""

import asyncio
import json
import logging

import pytest

from score_import.models import Score, ScoreData
from score_import.storage import MemoryStore
from score_import.utils import setup_logging

SONGS = [
    {"id": 1, "game": "iidx", "title": "5.1.1.", "artist": "dj nagureo", "altTitles": [], "searchTerms": ["511"]},
    {"id": 2, "game": "iidx", "title": "Verflucht", "artist": "DJ Mass", "altTitles": ["Verflücht"], "searchTerms": []},
    {"id": 1, "game": "sdvx", "title": "Blastix Riotz", "artist": "Various", "altTitles": [], "searchTerms": []},
    {"id": 1, "game": "bms", "title": "Sample BMS", "artist": "someone", "altTitles": [], "searchTerms": []},
    {"id": 1, "game": "ddr", "title": "PARANOiA", "artist": "180", "altTitles": [], "searchTerms": []},
    {"id": 1, "game": "gitadora", "title": "Cross the Rubicon", "artist": "x", "altTitles": [], "searchTerms": []},
]

CHARTS = [
    {
        "chartID": "iidx-1-sp-another",
        "songID": 1,
        "game": "iidx",
        "playtype": "SP",
        "difficulty": "ANOTHER",
        "level": "10",
        "levelNum": 10,
        "inGameID": 1000,
        "isPrimary": True,
        "versions": ["27", "28", "29"],
        "data": {"notecount": 500, "kaidenAverage": 850, "worldRecord": 980},
    },
    {
        "chartID": "iidx-1-sp-hyper",
        "songID": 1,
        "game": "iidx",
        "playtype": "SP",
        "difficulty": "HYPER",
        "level": "7",
        "levelNum": 7,
        "inGameID": 1000,
        "isPrimary": True,
        "versions": ["27", "28", "29"],
        "data": {"notecount": 400},
    },
    {
        "chartID": "iidx-1-dp-another",
        "songID": 1,
        "game": "iidx",
        "playtype": "DP",
        "difficulty": "ANOTHER",
        "level": "11",
        "levelNum": 11,
        "inGameID": 1000,
        "isPrimary": True,
        "versions": ["29"],
        "data": {"notecount": 600},
    },
    {
        "chartID": "iidx-2-sp-another",
        "songID": 2,
        "game": "iidx",
        "playtype": "SP",
        "difficulty": "ANOTHER",
        "level": "12",
        "levelNum": 12,
        "inGameID": 1001,
        "isPrimary": True,
        "versions": ["28", "29"],
        "data": {"notecount": 1000},
    },
    {
        "chartID": "iidx-2-sp-another-old",
        "songID": 2,
        "game": "iidx",
        "playtype": "SP",
        "difficulty": "ANOTHER",
        "level": "11",
        "levelNum": 11,
        "inGameID": 1001,
        "isPrimary": False,
        "versions": ["27"],
        "data": {"notecount": 900},
    },
    {
        "chartID": "iidx-orphan",
        "songID": 99,
        "game": "iidx",
        "playtype": "SP",
        "difficulty": "ANOTHER",
        "level": "12",
        "levelNum": 12,
        "inGameID": 9999,
        "isPrimary": True,
        "versions": ["29"],
        "data": {"notecount": 1000},
    },
    {
        "chartID": "sdvx-1-exh",
        "songID": 1,
        "game": "sdvx",
        "playtype": "Single",
        "difficulty": "EXH",
        "level": "17",
        "levelNum": 17,
        "inGameID": 100,
        "isPrimary": True,
        "versions": ["5", "6"],
        "data": {},
    },
    {
        "chartID": "bms-1",
        "songID": 1,
        "game": "bms",
        "playtype": "7K",
        "difficulty": "CHART",
        "level": "?",
        "levelNum": 0,
        "isPrimary": True,
        "versions": [],
        "data": {"notecount": 1000, "hashMD5": "a" * 32, "hashSHA256": "b" * 64},
    },
    {
        "chartID": "ddr-1-sp-expert",
        "songID": 1,
        "game": "ddr",
        "playtype": "SP",
        "difficulty": "EXPERT",
        "level": "15",
        "levelNum": 15,
        "isPrimary": True,
        "versions": [],
        "data": {"songHash": "ddrhash01"},
    },
    {
        "chartID": "gitadora-1-gita-master",
        "songID": 1,
        "game": "gitadora",
        "playtype": "Gita",
        "difficulty": "MASTER",
        "level": "8.50",
        "levelNum": 8.5,
        "isPrimary": True,
        "versions": [],
        "data": {},
    },
]


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def logger():
    return setup_logging("tests", level=logging.DEBUG)


@pytest.fixture
def store():
    memory_store = MemoryStore(seed={"songs": SONGS, "charts": CHARTS})
    run(memory_store.open())
    return memory_store


@pytest.fixture
def catalog_snapshot(tmp_path):
    """Path to a JSON store snapshot holding the test catalog."""
    path = tmp_path / "store.json"
    path.write_text(json.dumps({"songs": SONGS, "charts": CHARTS}), encoding="utf-8")
    return path


@pytest.fixture
def make_score():
    """Factory for hydrated IIDX SP scores with just the fields sessions care about."""

    def factory(score_id, time_achieved, chart_id="iidx-1-sp-another", percent=80.0, rating=5.0, user_id=1):
        return Score(
            score_id=score_id,
            user_id=user_id,
            game="iidx",
            playtype="SP",
            difficulty="ANOTHER",
            chart_id=chart_id,
            song_id=1,
            service="test",
            import_type="file/batch-manual",
            score_data=ScoreData(
                score=int(percent * 10),
                percent=percent,
                grade="AA",
                lamp="CLEAR",
                grade_index=6,
                lamp_index=4,
            ),
            calculated_data={"rating": rating, "lampRating": 10, "gameSpecific": {"BPI": None}},
            time_achieved=time_achieved,
            time_added=0,
        )

    return factory
