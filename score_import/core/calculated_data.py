"""
Per-score calculated data.

Every score carries two generic figures and a block of title-specific ones:

    rating      levelNum * (percent / percentMax) ** 2
    lampRating  levelNum when the lamp is a clear, else 0
    gameSpecific
        iidx      BPI (Poyashi BPI)
        sdvx/usc  VF4, VF5
        ddr       MFCP
        gitadora  skill

Figures that cannot be computed for a chart (missing level, missing BPI
reference data) are None rather than 0, so rollups never count them.
"""

import math
from typing import Optional

from score_import.games import Game, get_game_config, is_clear

# --- Poyashi BPI ---
BPI_POWER = 1.175
BPI_FLOOR = -15

# --- Volforce ---
VF4_GRADE_COEFFICIENTS = {
    "S": 1.0,
    "AAA+": 0.99,
    "AAA": 0.98,
    "AA+": 0.97,
    "AA": 0.96,
    "A+": 0.95,
    "A": 0.94,
    "B": 0.93,
    "C": 0.92,
    "D": 0.91,
}

VF5_GRADE_COEFFICIENTS = {
    "S": 1.05,
    "AAA+": 1.02,
    "AAA": 1.0,
    "AA+": 0.97,
    "AA": 0.94,
    "A+": 0.91,
    "A": 0.88,
    "B": 0.85,
    "C": 0.82,
    "D": 0.8,
}

VF5_LAMP_COEFFICIENTS = {
    "PERFECT ULTIMATE CHAIN": 1.1,
    "ULTIMATE CHAIN": 1.05,
    "EXCESSIVE CLEAR": 1.02,
    "CLEAR": 1.0,
    "FAILED": 0.5,
}

# --- DDR MFC Points ---
MFCP_BY_LEVEL = {10: 1, 11: 1, 12: 1, 13: 2, 14: 2, 15: 4, 16: 8, 17: 15, 18: 25, 19: 25}


def _poyashi_pgf(ex_score: float, max_ex: float) -> float:
    if ex_score >= max_ex:
        return max_ex * 0.8
    ratio = ex_score / max_ex
    return 1 + (ratio - 0.5) / (1 - ratio)


def calculate_bpi(kaiden_average: float, world_record: float, ex_score: float, notecount: int) -> Optional[float]:
    """
    Poyashi BPI for an IIDX score.

    0 is the kaiden average, 100 the world record; results are floored at -15
    and rounded to 2 decimal places.

    Args:
        kaiden_average: Mean EX score of kaiden players on the chart
        world_record: Best known EX score on the chart
        ex_score: The score's EX score
        notecount: Chart notecount (max EX is twice this)

    Returns:
        BPI, or None if the reference scores are unusable
    """
    max_ex = notecount * 2

    s = _poyashi_pgf(ex_score, max_ex)
    k = _poyashi_pgf(kaiden_average, max_ex)
    z = _poyashi_pgf(world_record, max_ex)

    if k <= 0 or s <= 0 or z <= k:
        return None

    log_s = math.log(s / k)
    log_z = math.log(z / k)

    if ex_score >= kaiden_average:
        bpi = 100 * (log_s ** BPI_POWER) / (log_z ** BPI_POWER)
    else:
        bpi = max(-100 * ((-log_s) ** BPI_POWER) / (log_z ** BPI_POWER), BPI_FLOOR)

    return round(bpi, 2)


def calculate_vf4(level: float, score: float, grade: str) -> Optional[float]:
    coefficient = VF4_GRADE_COEFFICIENTS.get(grade)
    if coefficient is None:
        return None
    return math.floor(25 * (level + 1) * (score / 10_000_000) * coefficient)


def calculate_vf5(level: float, score: float, grade: str, lamp: str) -> Optional[float]:
    grade_coef = VF5_GRADE_COEFFICIENTS.get(grade)
    lamp_coef = VF5_LAMP_COEFFICIENTS.get(lamp)
    if grade_coef is None or lamp_coef is None:
        return None
    return math.floor(level * 2 * (score / 10_000_000) * grade_coef * lamp_coef) / 100


def calculate_mfcp(level: float, lamp: str) -> Optional[int]:
    """MFC points; only MARVELOUS FULL COMBOs on level 10+ charts earn any."""
    if lamp != "MARVELOUS FULL COMBO" or level < 10:
        return None
    return MFCP_BY_LEVEL.get(int(level), MFCP_BY_LEVEL[19])


def calculate_gitadora_skill(level: float, percent: float) -> float:
    return round(level * percent * 0.2, 2)


# --- Score Level ---
def calculate_rating(game, level: float, percent: float) -> float:
    percent_max = get_game_config(game).percent_max
    return level * (percent / percent_max) ** 2


def calculate_lamp_rating(game, level: float, lamp: str) -> float:
    return level if is_clear(game, lamp) else 0


def calculate_game_specific(game, dry_score, chart) -> dict:
    game = Game(game)
    data = dry_score.score_data
    level = chart.level_num

    if game == Game.IIDX:
        kaiden_average = chart.data.get("kaidenAverage")
        world_record = chart.data.get("worldRecord")
        notecount = chart.data.get("notecount")

        if kaiden_average is None or world_record is None or not notecount:
            return {"BPI": None}

        return {"BPI": calculate_bpi(kaiden_average, world_record, data.score, notecount)}

    if game in (Game.SDVX, Game.USC):
        return {
            "VF4": calculate_vf4(level, data.score, data.grade),
            "VF5": calculate_vf5(level, data.score, data.grade, data.lamp),
        }

    if game == Game.DDR:
        return {"MFCP": calculate_mfcp(level, data.lamp)}

    if game == Game.GITADORA:
        return {"skill": calculate_gitadora_skill(level, data.percent)}

    return {}


def create_calculated_data(dry_score, chart, song, logger) -> dict:
    """
    Compute calculatedData for a converted score.

    Args:
        dry_score: DryScore from a converter
        chart: Chart the score was achieved on
        song: Parent song (used for log context)
        logger: Logger for this import

    Returns:
        {"rating", "lampRating", "gameSpecific"}
    """
    game = dry_score.game
    level = chart.level_num

    if not level:
        logger.debug(f"{song.title} ({chart.playtype} {chart.difficulty}) has no level, rating figures are 0.")

    return {
        "rating": calculate_rating(game, level, dry_score.score_data.percent),
        "lampRating": calculate_lamp_rating(game, level, dry_score.score_data.lamp),
        "gameSpecific": calculate_game_specific(game, dry_score, chart),
    }
