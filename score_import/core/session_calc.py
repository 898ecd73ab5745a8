"""
Session calculated data.

A session's figures are the mean of the best SESSION_CALC_SCORE_COUNT member
values for each score-level figure (rating, lampRating and every
title-specific key). Missing values are ignored; a figure with no values is
None.
"""

import pandas as pd

from score_import.config import SESSION_CALC_SCORE_COUNT


def _best_n_mean(values: pd.Series, n: int = SESSION_CALC_SCORE_COUNT):
    values = pd.to_numeric(values, errors="coerce").dropna()
    if values.empty:
        return None
    return float(values.nlargest(n).mean())


def create_session_calc_data(scores) -> dict:
    """
    Aggregate member scores into session calculatedData.

    Args:
        scores: Iterable of Score objects in the session

    Returns:
        {"rating", "lampRating", "gameSpecific": {...}}
    """
    rows = []
    for score in scores:
        calc = score.calculated_data or {}
        row = {"rating": calc.get("rating"), "lampRating": calc.get("lampRating")}
        row.update({f"gameSpecific.{k}": v for k, v in (calc.get("gameSpecific") or {}).items()})
        rows.append(row)

    if not rows:
        return {"rating": None, "lampRating": None, "gameSpecific": {}}

    df = pd.DataFrame(rows)

    game_specific = {
        col.split(".", 1)[1]: _best_n_mean(df[col])
        for col in df.columns
        if col.startswith("gameSpecific.")
    }

    return {
        "rating": _best_n_mean(df["rating"]),
        "lampRating": _best_n_mean(df["lampRating"]),
        "gameSpecific": game_specific,
    }
