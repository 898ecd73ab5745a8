"""
Tests for Kai API traversal and the IIDX/SDVX converters.
"""

import asyncio

import pytest
import requests

from score_import.failures import (
    InternalFailure,
    InvalidScoreFailure,
    KTDataNotFoundFailure,
    ScoreImportFatalError,
)
from score_import.ingestion.kai import (
    KaiContext,
    convert_kai_iidx,
    convert_kai_sdvx,
    parse_kai_iidx,
    parse_kai_sdvx,
    traverse_kai_api,
)


def iidx_item(**overrides):
    base = {
        "music_id": 1000,
        "play_style": "SINGLE",
        "difficulty": "ANOTHER",
        "version_played": 29,
        "lamp": 5,
        "ex_score": 900,
        "miss_count": 3,
        "fast": 20,
        "slow": 15,
        "timestamp": "2021-05-01T12:00:00Z",
    }
    base.update(overrides)
    return base


def sdvx_item(**overrides):
    base = {
        "music_id": 100,
        "music_difficulty": 2,
        "played_version": 6,
        "clear_type": 2,
        "max_chain": 1200,
        "score": 9_800_000,
        "critical": 1100,
        "near": 80,
        "error": 20,
        "early": 50,
        "late": 30,
        "gauge_rate": 72,
        "timestamp": "2021-05-01T12:00:00Z",
    }
    base.update(overrides)
    return base


class FakeKai:
    """Serves pre-baked pages keyed by URL and records requests."""

    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    def __call__(self, url, token):
        self.calls.append((url, token))
        page = self.pages[url]
        if isinstance(page, Exception):
            raise page
        return page


class TestTraverseKaiApi:
    """Tests for paginated fetching."""

    def test_follows_next_links(self, logger):
        fetch = FakeKai(
            {
                "https://kai.test/api/iidx/v2/play_history": {
                    "_items": [{"a": 1}, {"a": 2}],
                    "_links": {"_next": "https://kai.test/page2"},
                },
                "https://kai.test/page2": {"_items": [{"a": 3}], "_links": {}},
            }
        )
        items = list(traverse_kai_api("https://kai.test/", "/api/iidx/v2/play_history", "tok", logger, fetch))
        assert items == [{"a": 1}, {"a": 2}, {"a": 3}]
        assert [call[1] for call in fetch.calls] == ["tok", "tok"]

    def test_request_failure_is_fatal(self, logger):
        fetch = FakeKai({"https://kai.test/x": requests.ConnectionError("down")})
        with pytest.raises(ScoreImportFatalError) as exc:
            list(traverse_kai_api("https://kai.test", "/x", "tok", logger, fetch))
        assert exc.value.status_code == 500

    def test_malformed_page_is_fatal(self, logger):
        fetch = FakeKai({"https://kai.test/x": {"items": []}})
        with pytest.raises(ScoreImportFatalError, match="invalid response"):
            list(traverse_kai_api("https://kai.test", "/x", "tok", logger, fetch))

    def test_unknown_service(self, logger):
        with pytest.raises(ScoreImportFatalError, match="Unknown Kai service"):
            parse_kai_iidx("NOPE", "tok", logger)

    def test_parser_is_lazy(self, logger):
        fetch = FakeKai({})
        result = parse_kai_sdvx("EAG", "tok", logger, fetch=fetch)
        assert result.context == KaiContext(service="EAG")
        assert fetch.calls == []


class TestConvertKaiIIDX:
    """Tests for Kai IIDX play conversion."""

    def convert(self, store, logger, data):
        return asyncio.run(convert_kai_iidx(store, data, KaiContext("FLO"), "api/flo-iidx", logger))

    def test_converts_play(self, store, logger):
        result = self.convert(store, logger, iidx_item())
        data = result.dry_score.score_data
        assert result.chart.chart_id == "iidx-1-sp-another"
        assert data.percent == pytest.approx(90.0)
        assert data.grade == "AAA"
        assert data.lamp == "HARD CLEAR"
        assert data.hit_meta == {"bp": 3, "fast": 20, "slow": 15}
        assert result.dry_score.service == "FLO"
        assert result.dry_score.time_achieved == 1_619_870_400_000

    def test_double_play_style(self, store, logger):
        result = self.convert(store, logger, iidx_item(play_style="DOUBLE", ex_score=600))
        assert result.chart.chart_id == "iidx-1-dp-another"

    def test_dp_beginner_rejected(self, store, logger):
        with pytest.raises(InvalidScoreFailure, match="BEGINNER"):
            self.convert(store, logger, iidx_item(play_style="DOUBLE", difficulty="BEGINNER"))

    def test_lamp_out_of_range(self, store, logger):
        with pytest.raises(InvalidScoreFailure, match=r"^lamp \|"):
            self.convert(store, logger, iidx_item(lamp=8))

    def test_chart_not_in_version(self, store, logger):
        with pytest.raises(KTDataNotFoundFailure, match="Version 26"):
            self.convert(store, logger, iidx_item(version_played=26))

    def test_song_chart_desync(self, store, logger):
        with pytest.raises(InternalFailure, match="desync"):
            self.convert(store, logger, iidx_item(music_id=9999))


class TestConvertKaiSDVX:
    """Tests for Kai SDVX play conversion."""

    def convert(self, store, logger, data):
        return asyncio.run(convert_kai_sdvx(store, data, KaiContext("EAG"), "api/eag-sdvx", logger))

    def test_converts_play(self, store, logger):
        result = self.convert(store, logger, sdvx_item())
        data = result.dry_score.score_data
        assert result.chart.chart_id == "sdvx-1-exh"
        assert data.percent == pytest.approx(98.0)
        assert data.grade == "AAA+"
        assert data.lamp == "EXCESSIVE CLEAR"
        assert data.hit_data == {"critical": 1100, "near": 80, "miss": 20}
        assert data.hit_meta == {"fast": 50, "slow": 30, "gauge": 72, "maxCombo": 1200}

    def test_score_over_max(self, store, logger):
        with pytest.raises(InvalidScoreFailure, match=r"^score \|"):
            self.convert(store, logger, sdvx_item(score=10_000_001))

    def test_unknown_chart(self, store, logger):
        with pytest.raises(KTDataNotFoundFailure):
            self.convert(store, logger, sdvx_item(music_difficulty=4))
