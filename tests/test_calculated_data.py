"""
Tests for per-score calculated data and session aggregates.
"""

import pytest

from score_import.core.calculated_data import (
    calculate_bpi,
    calculate_lamp_rating,
    calculate_mfcp,
    calculate_rating,
    calculate_vf4,
    calculate_vf5,
    create_calculated_data,
)
from score_import.core.session_calc import create_session_calc_data
from score_import.models import Chart, DryScore, DryScoreData, Song


def chart(game, playtype, level_num, data=None):
    return Chart("c", 1, game, playtype, "X", str(level_num), level_num, data=data or {})


def dry(game, score, percent, grade, lamp):
    return DryScore(
        game=game,
        service="test",
        import_type="file/batch-manual",
        score_data=DryScoreData(score=score, percent=percent, grade=grade, lamp=lamp),
    )


class TestGenericRatings:
    """Tests for rating and lampRating."""

    def test_rating_scales_with_percent_squared(self):
        assert calculate_rating("iidx", 10, 100) == pytest.approx(10)
        assert calculate_rating("iidx", 10, 50) == pytest.approx(2.5)

    def test_rating_uses_title_percent_max(self):
        assert calculate_rating("chunithm", 10, 101) == pytest.approx(10)

    def test_lamp_rating(self):
        assert calculate_lamp_rating("iidx", 12, "CLEAR") == 12
        assert calculate_lamp_rating("iidx", 12, "EASY CLEAR") == 0
        assert calculate_lamp_rating("sdvx", 17, "ULTIMATE CHAIN") == 17


class TestBPI:
    """Tests for Poyashi BPI."""

    def test_kaiden_average_is_zero(self):
        assert calculate_bpi(800, 950, 800, 500) == 0

    def test_world_record_is_hundred(self):
        assert calculate_bpi(800, 950, 950, 500) == pytest.approx(100)

    def test_between_is_positive(self):
        bpi = calculate_bpi(800, 950, 900, 500)
        assert 0 < bpi < 100

    def test_floor(self):
        assert calculate_bpi(800, 950, 0, 500) == -15

    def test_bad_reference_data(self):
        assert calculate_bpi(950, 800, 900, 500) is None


class TestVolforce:
    """Tests for SDVX/USC VF4 and VF5."""

    def test_vf5(self):
        # 17 * 2 * 0.98 * 1.02 (AAA+) * 1.02 (EXCESSIVE CLEAR) = 34.66...
        assert calculate_vf5(17, 9_800_000, "AAA+", "EXCESSIVE CLEAR") == pytest.approx(0.34)

    def test_vf4(self):
        # 25 * 18 * 0.98 * 0.99 = 436.59
        assert calculate_vf4(17, 9_800_000, "AAA+") == 436

    def test_unknown_grade(self):
        assert calculate_vf4(17, 9_800_000, "MAX") is None
        assert calculate_vf5(17, 9_800_000, "MAX", "CLEAR") is None


class TestMFCP:
    """Tests for DDR MFC points."""

    def test_only_marvelous_full_combo(self):
        assert calculate_mfcp(15, "PERFECT FULL COMBO") is None

    def test_only_level_ten_and_up(self):
        assert calculate_mfcp(9, "MARVELOUS FULL COMBO") is None

    def test_table(self):
        assert calculate_mfcp(10, "MARVELOUS FULL COMBO") == 1
        assert calculate_mfcp(15, "MARVELOUS FULL COMBO") == 4
        assert calculate_mfcp(19, "MARVELOUS FULL COMBO") == 25


class TestCreateCalculatedData:
    """Tests for the assembled calculatedData block."""

    def test_iidx_with_bpi_data(self, logger):
        c = chart("iidx", "SP", 12, {"notecount": 500, "kaidenAverage": 800, "worldRecord": 950})
        calc = create_calculated_data(dry("iidx", 800, 80.0, "AA", "HARD CLEAR"), c, Song(1, "iidx", "x"), logger)
        assert calc["rating"] == pytest.approx(12 * 0.64)
        assert calc["lampRating"] == 12
        assert calc["gameSpecific"] == {"BPI": 0}

    def test_iidx_without_bpi_data(self, logger):
        c = chart("iidx", "SP", 12, {"notecount": 500})
        calc = create_calculated_data(dry("iidx", 800, 80.0, "AA", "CLEAR"), c, Song(1, "iidx", "x"), logger)
        assert calc["gameSpecific"] == {"BPI": None}

    def test_gitadora_skill(self, logger):
        c = chart("gitadora", "Gita", 8.5)
        calc = create_calculated_data(dry("gitadora", 90.0, 90.0, "SS", "CLEAR"), c, Song(1, "gitadora", "x"), logger)
        assert calc["gameSpecific"] == {"skill": pytest.approx(153.0)}

    def test_no_game_specific_for_bms(self, logger):
        c = chart("bms", "7K", 0, {"notecount": 1000})
        calc = create_calculated_data(dry("bms", 1500, 75.0, "A", "CLEAR"), c, Song(1, "bms", "x"), logger)
        assert calc["rating"] == 0
        assert calc["gameSpecific"] == {}

    def test_null_level_num_rates_zero(self, logger):
        doc = {"chartID": "c", "songID": 1, "game": "iidx", "playtype": "SP", "difficulty": "ANOTHER", "levelNum": None}
        c = Chart.from_doc(doc)
        assert c.level_num == 0

        calc = create_calculated_data(dry("iidx", 800, 80.0, "AA", "HARD CLEAR"), c, Song(1, "iidx", "x"), logger)
        assert calc["rating"] == 0
        assert calc["lampRating"] == 0


class TestSessionCalcData:
    """Tests for session aggregate figures."""

    def test_mean_of_best_ten(self, make_score):
        scores = [make_score(f"R{i}", i, rating=float(i)) for i in range(1, 13)]
        calc = create_session_calc_data(scores)
        # best 10 of 1..12 are 3..12
        assert calc["rating"] == pytest.approx(7.5)
        assert calc["lampRating"] == pytest.approx(10)

    def test_missing_values_ignored(self, make_score):
        calc = create_session_calc_data([make_score("R1", 1), make_score("R2", 2)])
        assert calc["gameSpecific"] == {"BPI": None}

    def test_empty(self):
        assert create_session_calc_data([]) == {"rating": None, "lampRating": None, "gameSpecific": {}}
