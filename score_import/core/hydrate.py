"""
Score hydration.

Turns a converter's DryScore into the persisted Score: assigns the score ID,
resolves lamp/grade indices, attaches calculated data and fills in the
ownership and bookkeeping fields. PB flags always start out False.
"""

import hashlib
import json
import time

from score_import.config import SCORE_ID_PREFIX
from score_import.core.calculated_data import create_calculated_data
from score_import.failures import InternalFailure
from score_import.games import grade_index, lamp_index
from score_import.models import Score, ScoreData
from score_import.utils import log_severe


def create_score_id(user_id: int, dry_score, chart) -> str:
    """
    Deterministic score ID for a play.

    The same logical play imported twice hashes to the same ID, which is how
    re-imports are detected.
    """
    data = dry_score.score_data
    identity = [
        user_id,
        dry_score.game,
        chart.playtype,
        chart.chart_id,
        data.lamp,
        data.score,
        data.percent,
        dry_score.time_achieved,
    ]
    digest = hashlib.sha256(json.dumps(identity).encode("utf-8")).hexdigest()
    return f"{SCORE_ID_PREFIX}{digest}"


def hydrate_score(user_id: int, dry_score, chart, song, score_id: str, logger) -> Score:
    """
    Build the persisted Score for a converted play.

    Args:
        user_id: Owner of the score
        dry_score: DryScore from a converter
        chart: Resolved chart
        song: Resolved song
        score_id: ID from create_score_id
        logger: Logger for this import

    Returns:
        Hydrated Score (not yet stored)

    Raises:
        InternalFailure: If the lamp or grade is not known for the title
    """
    data = dry_score.score_data

    l_index = lamp_index(dry_score.game, data.lamp)
    g_index = grade_index(dry_score.game, data.grade)

    if l_index == -1 or g_index == -1:
        log_severe(
            logger,
            f"Score {score_id} reached hydration with lamp {data.lamp!r} / grade {data.grade!r} "
            f"unknown to {dry_score.game}.",
        )
        raise InternalFailure(f"Unknown lamp or grade for {dry_score.game}.")

    return Score(
        score_id=score_id,
        user_id=user_id,
        game=dry_score.game,
        playtype=chart.playtype,
        difficulty=chart.difficulty,
        chart_id=chart.chart_id,
        song_id=song.id,
        service=dry_score.service,
        import_type=dry_score.import_type,
        score_data=ScoreData(
            score=data.score,
            percent=data.percent,
            grade=data.grade,
            lamp=data.lamp,
            grade_index=g_index,
            lamp_index=l_index,
            hit_data=dict(data.hit_data),
            hit_meta=dict(data.hit_meta),
        ),
        calculated_data=create_calculated_data(dry_score, chart, song, logger),
        time_achieved=dry_score.time_achieved,
        time_added=int(time.time() * 1000),
        comment=dry_score.comment,
        score_meta=dict(dry_score.score_meta),
    )
