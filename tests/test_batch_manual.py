"""
Tests for BATCH-MANUAL parsing and conversion.
"""

import asyncio
import json

import pytest

from score_import.failures import (
    InternalFailure,
    InvalidScoreFailure,
    KTDataNotFoundFailure,
    ScoreImportFatalError,
)
from score_import.games import Game
from score_import.ingestion.batch_manual import (
    BatchManualContext,
    convert_batch_manual,
    parse_batch_manual,
)

IMPORT_TYPE = "file/batch-manual"


def payload(body=None, **head):
    head = {"service": "foobar", "game": "iidx", **head}
    return {"head": head, "body": body if body is not None else []}


def item(**overrides):
    base = {
        "score": 800,
        "lamp": "HARD CLEAR",
        "matchType": "songID",
        "identifier": "1",
        "playtype": "SP",
        "difficulty": "ANOTHER",
    }
    base.update(overrides)
    return base


def convert(store, logger, data, game=Game.IIDX, version=None, import_type=IMPORT_TYPE):
    context = BatchManualContext(service="foobar", game=game, version=version)
    return asyncio.run(convert_batch_manual(store, data, context, import_type, logger))


class TestParseBatchManual:
    """Tests for structural validation of the payload."""

    def test_valid_payload(self, logger):
        result = parse_batch_manual(payload([item()]), IMPORT_TYPE, logger)
        assert result.game == Game.IIDX
        assert result.context.service == "foobar"
        assert list(result.iterable) == [item()]
        assert result.converter is convert_batch_manual

    def test_accepts_json_text(self, logger):
        result = parse_batch_manual(json.dumps(payload([item()])), IMPORT_TYPE, logger)
        assert len(result.iterable) == 1

    def test_invalid_json(self, logger):
        with pytest.raises(ScoreImportFatalError) as exc:
            parse_batch_manual("{not json", IMPORT_TYPE, logger)
        assert exc.value.status_code == 400

    def test_not_an_object(self, logger):
        with pytest.raises(ScoreImportFatalError, match=r"Not an object, received array"):
            parse_batch_manual([], IMPORT_TYPE, logger)

    def test_missing_game(self, logger):
        with pytest.raises(ScoreImportFatalError) as exc:
            parse_batch_manual({"head": {"service": "foo"}, "body": []}, IMPORT_TYPE, logger)
        assert exc.value.message == "Could not retrieve head.game - is this valid BATCH-MANUAL?"

    def test_invalid_game(self, logger):
        with pytest.raises(ScoreImportFatalError, match=r"Invalid game invalid_game - expected any of iidx"):
            parse_batch_manual(payload(game="invalid_game"), IMPORT_TYPE, logger)

    def test_service_too_short(self, logger):
        with pytest.raises(ScoreImportFatalError, match=r"^Invalid BATCH-MANUAL: head.service \|"):
            parse_batch_manual(payload(service="fo"), IMPORT_TYPE, logger)

    def test_service_too_long(self, logger):
        with pytest.raises(ScoreImportFatalError, match=r"head.service"):
            parse_batch_manual(payload(service="a" * 16), IMPORT_TYPE, logger)

    def test_unknown_head_key(self, logger):
        with pytest.raises(ScoreImportFatalError, match=r"head.foo"):
            parse_batch_manual(payload(foo="bar"), IMPORT_TYPE, logger)

    def test_body_not_array(self, logger):
        data = payload()
        data["body"] = {"score": 1}
        with pytest.raises(ScoreImportFatalError, match=r"body \| Expected an array"):
            parse_batch_manual(data, IMPORT_TYPE, logger)

    def test_version_carried_in_context(self, logger):
        result = parse_batch_manual(payload(version="28"), IMPORT_TYPE, logger)
        assert result.context.version == "28"


class TestConvertBatchManual:
    """Tests for per-item conversion."""

    def test_song_id_match(self, store, logger):
        result = convert(store, logger, item())
        assert result.song.id == 1
        assert result.chart.chart_id == "iidx-1-sp-another"
        assert result.dry_score.score_data.percent == pytest.approx(80.0)
        assert result.dry_score.score_data.grade == "AA"
        assert result.dry_score.service == "foobar (BATCH-MANUAL)"

    def test_direct_manual_suffix(self, store, logger):
        result = convert(store, logger, item(), import_type="ir/direct-manual")
        assert result.dry_score.service == "foobar (DIRECT-MANUAL)"

    def test_title_match_is_case_insensitive(self, store, logger):
        result = convert(store, logger, item(matchType="title", identifier="verflucht"))
        assert result.song.id == 2
        assert result.chart.chart_id == "iidx-2-sp-another"

    def test_title_match_uses_search_terms(self, store, logger):
        result = convert(store, logger, item(matchType="songTitle", identifier="511"))
        assert result.song.id == 1

    def test_version_scoped_lookup(self, store, logger):
        result = convert(store, logger, item(identifier="2", score=1500), version="27")
        assert result.chart.chart_id == "iidx-2-sp-another-old"

    def test_in_game_id_match(self, store, logger):
        result = convert(store, logger, item(matchType="inGameID", identifier="1001", score=1500))
        assert result.chart.chart_id == "iidx-2-sp-another"

    def test_bms_hash_match(self, store, logger):
        data = {"score": 1500, "lamp": "CLEAR", "matchType": "bmsChartHash", "identifier": "A" * 32}
        result = convert(store, logger, data, game=Game.BMS)
        assert result.chart.chart_id == "bms-1"
        assert result.dry_score.score_data.percent == pytest.approx(75.0)

    def test_ddr_song_hash_match(self, store, logger):
        data = {
            "score": 990000,
            "lamp": "FULL COMBO",
            "matchType": "ddrSongHash",
            "identifier": "ddrhash01",
            "playtype": "SP",
            "difficulty": "EXPERT",
        }
        result = convert(store, logger, data, game=Game.DDR)
        assert result.chart.chart_id == "ddr-1-sp-expert"

    def test_ddr_song_hash_needs_difficulty(self, store, logger):
        data = {"score": 990000, "lamp": "FULL COMBO", "matchType": "ddrSongHash", "identifier": "ddrhash01"}
        with pytest.raises(InvalidScoreFailure, match="Missing 'difficulty'"):
            convert(store, logger, data, game=Game.DDR)

    def test_hash_lookup_on_wrong_game(self, store, logger):
        with pytest.raises(InvalidScoreFailure, match="Cannot use bmsChartHash lookup on iidx"):
            convert(store, logger, item(matchType="hash", identifier="a" * 32))

    def test_percent_over_100_fails_with_title(self, store, logger):
        with pytest.raises(InvalidScoreFailure) as exc:
            convert(store, logger, item(score=1002))
        assert exc.value.message == "5.1.1. (SP ANOTHER): Percent was greater than 100% (100.20%)"

    def test_invalid_lamp(self, store, logger):
        with pytest.raises(InvalidScoreFailure, match="Invalid lamp"):
            convert(store, logger, item(lamp="ULTIMATE CHAIN"))

    def test_negative_score(self, store, logger):
        with pytest.raises(InvalidScoreFailure, match=r"^score \|"):
            convert(store, logger, item(score=-1))

    def test_boolean_score_rejected(self, store, logger):
        with pytest.raises(InvalidScoreFailure, match=r"\[boolean\]"):
            convert(store, logger, item(score=True))

    def test_unknown_match_type(self, store, logger):
        with pytest.raises(InvalidScoreFailure, match=r"^matchType \|"):
            convert(store, logger, item(matchType="md5"))

    def test_unknown_key(self, store, logger):
        with pytest.raises(InvalidScoreFailure, match=r"^extra \|"):
            convert(store, logger, item(extra=1))

    def test_comment_too_long(self, store, logger):
        with pytest.raises(InvalidScoreFailure, match=r"^comment \|"):
            convert(store, logger, item(comment="a" * 241))

    def test_negative_hit_data(self, store, logger):
        with pytest.raises(InvalidScoreFailure, match=r"^hitData.pgreat \|"):
            convert(store, logger, item(hitData={"pgreat": -1}))

    def test_time_achieved_must_be_positive(self, store, logger):
        with pytest.raises(InvalidScoreFailure, match=r"^timeAchieved \|"):
            convert(store, logger, item(timeAchieved=0))

    def test_invalid_song_id(self, store, logger):
        with pytest.raises(InvalidScoreFailure, match="Invalid songID"):
            convert(store, logger, item(identifier="abc"))

    def test_unknown_song(self, store, logger):
        with pytest.raises(KTDataNotFoundFailure) as exc:
            convert(store, logger, item(identifier="500"))
        assert exc.value.import_type == IMPORT_TYPE

    def test_unknown_chart(self, store, logger):
        with pytest.raises(KTDataNotFoundFailure, match=r"Cannot find chart for 5.1.1. \(SP LEGGENDARIA\)"):
            convert(store, logger, item(difficulty="LEGGENDARIA"))

    def test_chart_without_song_is_internal(self, store, logger):
        with pytest.raises(InternalFailure):
            convert(store, logger, item(matchType="inGameID", identifier="9999"))

    def test_hit_data_and_meta_carried(self, store, logger):
        result = convert(
            store, logger, item(hitData={"pgreat": 300, "great": 200}, hitMeta={"fast": 4}, timeAchieved=1000)
        )
        assert result.dry_score.score_data.hit_data == {"pgreat": 300, "great": 200}
        assert result.dry_score.score_data.hit_meta == {"fast": 4}
        assert result.dry_score.time_achieved == 1000
