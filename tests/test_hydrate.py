"""
Tests for score hydration and score IDs.
"""

import pytest

from score_import.core.hydrate import create_score_id, hydrate_score
from score_import.failures import InternalFailure
from score_import.models import Chart, DryScore, DryScoreData, Song

SONG = Song(id=1, game="iidx", title="5.1.1.")
CHART = Chart(
    chart_id="iidx-1-sp-another",
    song_id=1,
    game="iidx",
    playtype="SP",
    difficulty="ANOTHER",
    level="10",
    level_num=10,
    data={"notecount": 500},
)


def dry(lamp="HARD CLEAR", grade="AA", score=800, percent=80.0, time_achieved=1000):
    return DryScore(
        game="iidx",
        service="foobar (BATCH-MANUAL)",
        import_type="file/batch-manual",
        time_achieved=time_achieved,
        comment="nice",
        score_data=DryScoreData(
            score=score, percent=percent, grade=grade, lamp=lamp, hit_data={"pgreat": 300}, hit_meta={"fast": 2}
        ),
    )


class TestCreateScoreId:
    """Tests for deterministic score IDs."""

    def test_prefix_and_length(self):
        score_id = create_score_id(1, dry(), CHART)
        assert score_id.startswith("R")
        assert len(score_id) == 65

    def test_same_play_same_id(self):
        assert create_score_id(1, dry(), CHART) == create_score_id(1, dry(), CHART)

    def test_different_user_or_time_differs(self):
        base = create_score_id(1, dry(), CHART)
        assert create_score_id(2, dry(), CHART) != base
        assert create_score_id(1, dry(time_achieved=2000), CHART) != base


class TestHydrateScore:
    """Tests for hydrate_score."""

    def test_indices_use_their_own_enumerations(self, logger):
        score = hydrate_score(1, dry(), CHART, SONG, "Rabc", logger)
        assert score.score_data.lamp_index == 5
        assert score.score_data.grade_index == 6

    def test_fills_ownership_and_flags(self, logger):
        score = hydrate_score(7, dry(), CHART, SONG, "Rabc", logger)
        assert score.user_id == 7
        assert score.chart_id == "iidx-1-sp-another"
        assert score.song_id == 1
        assert score.playtype == "SP"
        assert score.difficulty == "ANOTHER"
        assert score.is_score_pb is False
        assert score.is_lamp_pb is False
        assert score.highlight is False
        assert score.time_added > 0
        assert score.comment == "nice"

    def test_calculated_data_attached(self, logger):
        score = hydrate_score(1, dry(), CHART, SONG, "Rabc", logger)
        assert score.calculated_data["rating"] == pytest.approx(6.4)
        assert score.calculated_data["lampRating"] == 10

    def test_unknown_lamp_is_internal(self, logger):
        with pytest.raises(InternalFailure):
            hydrate_score(1, dry(lamp="ULTIMATE CHAIN"), CHART, SONG, "Rabc", logger)

    def test_unknown_grade_is_internal(self, logger):
        with pytest.raises(InternalFailure):
            hydrate_score(1, dry(grade="S+"), CHART, SONG, "Rabc", logger)

    def test_to_doc_is_camel_case(self, logger):
        doc = hydrate_score(1, dry(), CHART, SONG, "Rabc", logger).to_doc()
        assert doc["scoreID"] == "Rabc"
        assert doc["scoreData"]["gradeIndex"] == 6
        assert doc["scoreData"]["hitData"] == {"pgreat": 300}
        assert doc["isScorePB"] is False
