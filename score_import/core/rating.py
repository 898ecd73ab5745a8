"""
Profile rating rollup.

Aggregates a user's personal bests on one (game, playtype) into profile-level
figures. Only isPrimary PB records are read, never raw scores, so running the
rollup again without new PBs gives the same result.

- calculate_ratings: generic rating / lampRating over the best 20 PBs
- calculate_custom_ratings: title-specific figures from CUSTOM_RATING_AGGREGATORS
- update_user_game_stats: both of the above, upserted into game-stats
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from score_import.config import GAME_STATS_COLLECTION, PBS_COLLECTION, RATING_SCORE_COUNT
from score_import.games import Game
from score_import.utils import setup_logging

# --- Module Logger ---
logger = setup_logging(__name__)


class AggregatorKind(str, Enum):
    SUM_ALL = "SUM_ALL"
    SUM_BEST_N = "SUM_BEST_N"
    MEAN_BEST_N = "MEAN_BEST_N"


@dataclass(frozen=True)
class RatingAggregator:
    """
    How one title-specific figure is rolled up.

    Attributes:
        kind: Reduction to apply
        key: gameSpecific key on the PB's calculatedData
        n: Number of PBs for the BEST_N kinds (MEAN_BEST_N always divides by n)
    """

    kind: AggregatorKind
    key: str
    n: Optional[int] = None

    async def apply(self, store, game: str, playtype: str, user_id: int) -> float:
        path = f"calculatedData.gameSpecific.{self.key}"
        query = {
            "game": game,
            "playtype": playtype,
            "userID": user_id,
            "isPrimary": True,
            path: {"$gt": 0},
        }

        if self.kind == AggregatorKind.SUM_ALL:
            pbs = await store.find(PBS_COLLECTION, query)
        else:
            pbs = await store.find(PBS_COLLECTION, query, sort=[(path, -1)], limit=self.n)

        total = sum(pb["calculatedData"]["gameSpecific"][self.key] for pb in pbs)

        if self.kind == AggregatorKind.MEAN_BEST_N:
            return total / self.n

        return total


def _sum_best(key: str, n: int) -> RatingAggregator:
    return RatingAggregator(AggregatorKind.SUM_BEST_N, key, n)


def _mean_best(key: str, n: int) -> RatingAggregator:
    return RatingAggregator(AggregatorKind.MEAN_BEST_N, key, n)


def _sum_all(key: str) -> RatingAggregator:
    return RatingAggregator(AggregatorKind.SUM_ALL, key)


_VOLFORCE = {"VF4": _sum_best("VF4", 20), "VF5": _sum_best("VF5", 50)}

CUSTOM_RATING_AGGREGATORS = {
    (Game.IIDX, "SP"): {"BPI": _mean_best("BPI", 20)},
    (Game.IIDX, "DP"): {"BPI": _mean_best("BPI", 20)},
    (Game.SDVX, "Single"): _VOLFORCE,
    (Game.USC, "Single"): _VOLFORCE,
    (Game.DDR, "SP"): {"MFCP": _sum_all("MFCP")},
    (Game.DDR, "DP"): {"MFCP": _sum_all("MFCP")},
    (Game.GITADORA, "Gita"): {"skill": _sum_best("skill", 50)},
    (Game.GITADORA, "Dora"): {"skill": _sum_best("skill", 50)},
}


async def calculate_ratings(store, game: str, playtype: str, user_id: int, log=logger) -> dict:
    """
    Mean rating and lampRating of the user's best RATING_SCORE_COUNT PBs.

    Always divides by RATING_SCORE_COUNT, so profiles with fewer PBs than that
    are pulled down.

    Returns:
        {"rating": float, "lampRating": float}
    """
    query = {"game": game, "playtype": playtype, "userID": user_id, "isPrimary": True}

    best_rating = await store.find(
        PBS_COLLECTION, query, sort=[("calculatedData.rating", -1)], limit=RATING_SCORE_COUNT
    )
    best_lamp_rating = await store.find(
        PBS_COLLECTION, query, sort=[("calculatedData.lampRating", -1)], limit=RATING_SCORE_COUNT
    )

    log.debug(
        f"Found {len(best_rating)} best rating scores and {len(best_lamp_rating)} best lampRating scores."
    )

    rating = sum(pb["calculatedData"].get("rating") or 0 for pb in best_rating) / RATING_SCORE_COUNT
    lamp_rating = sum(pb["calculatedData"].get("lampRating") or 0 for pb in best_lamp_rating) / RATING_SCORE_COUNT

    return {"rating": rating, "lampRating": lamp_rating}


async def calculate_custom_ratings(store, game: str, playtype: str, user_id: int, log=logger) -> dict:
    """
    Title-specific profile figures.

    Returns:
        {figure name: value}, or {} if the (game, playtype) has no custom figures
    """
    try:
        aggregators = CUSTOM_RATING_AGGREGATORS.get((Game(game), playtype))
    except ValueError:
        aggregators = None

    if not aggregators:
        log.debug(f"No custom ratings for {game} {playtype}.")
        return {}

    return {name: await aggregator.apply(store, game, playtype, user_id) for name, aggregator in aggregators.items()}


async def update_user_game_stats(store, game: str, playtype: str, user_id: int, log=logger) -> dict:
    """
    Recompute and upsert a user's game-stats record for one playtype.

    Returns:
        The stats document that was written
    """
    ratings = await calculate_ratings(store, game, playtype, user_id, log)
    custom_ratings = await calculate_custom_ratings(store, game, playtype, user_id, log)

    stats = {
        "userID": user_id,
        "game": game,
        "playtype": playtype,
        "ratings": ratings,
        "customRatings": custom_ratings,
    }

    await store.update_one(
        GAME_STATS_COLLECTION,
        {"userID": user_id, "game": game, "playtype": playtype},
        stats,
        upsert=True,
    )

    log.info(f"Updated game stats for {user_id} ({game} {playtype}): {ratings}")
    return stats
