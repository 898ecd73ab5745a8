"""
Per-title game configuration.

Every supported title declares its playtypes, difficulties, ordered lamp and
grade enumerations (worst first), grade boundaries in percent, the maximum
achievable percent and the lowest lamp that counts as a clear.
"""

from dataclasses import dataclass
from enum import Enum


class Game(str, Enum):
    IIDX = "iidx"
    BMS = "bms"
    SDVX = "sdvx"
    USC = "usc"
    DDR = "ddr"
    CHUNITHM = "chunithm"
    GITADORA = "gitadora"


@dataclass(frozen=True)
class GameConfig:
    """
    Static rules for one title.

    Attributes:
        game: Title identifier
        playtypes: Valid play modes
        difficulties: Valid difficulty labels per playtype
        lamps: Lamp labels, worst to best
        grades: Grade labels, worst to best
        grade_boundaries: Minimum percent per grade, aligned with grades
        percent_max: Highest achievable percent
        clear_lamp: Lowest lamp that counts as a clear
    """

    game: Game
    playtypes: tuple
    difficulties: dict
    lamps: tuple
    grades: tuple
    grade_boundaries: tuple
    percent_max: float
    clear_lamp: str


_IIDX_LAMPS = (
    "NO PLAY",
    "FAILED",
    "ASSIST CLEAR",
    "EASY CLEAR",
    "CLEAR",
    "HARD CLEAR",
    "EX HARD CLEAR",
    "FULL COMBO",
)

_IIDX_GRADES = ("F", "E", "D", "C", "B", "A", "AA", "AAA", "MAX-", "MAX")
_IIDX_BOUNDARIES = (0, 22.22, 33.33, 44.44, 55.55, 66.66, 77.77, 88.88, 94.44, 100)

_SDVX_LAMPS = (
    "FAILED",
    "CLEAR",
    "EXCESSIVE CLEAR",
    "ULTIMATE CHAIN",
    "PERFECT ULTIMATE CHAIN",
)

_SDVX_GRADES = ("D", "C", "B", "A", "A+", "AA", "AA+", "AAA", "AAA+", "S")
_SDVX_BOUNDARIES = (0, 70, 80, 87, 90, 93, 95, 97, 98, 99)


GAME_CONFIGS = {
    Game.IIDX: GameConfig(
        game=Game.IIDX,
        playtypes=("SP", "DP"),
        difficulties={
            "SP": ("BEGINNER", "NORMAL", "HYPER", "ANOTHER", "LEGGENDARIA"),
            "DP": ("NORMAL", "HYPER", "ANOTHER", "LEGGENDARIA"),
        },
        lamps=_IIDX_LAMPS,
        grades=_IIDX_GRADES,
        grade_boundaries=_IIDX_BOUNDARIES,
        percent_max=100,
        clear_lamp="CLEAR",
    ),
    Game.BMS: GameConfig(
        game=Game.BMS,
        playtypes=("7K", "14K"),
        difficulties={"7K": ("CHART",), "14K": ("CHART",)},
        lamps=_IIDX_LAMPS,
        grades=_IIDX_GRADES,
        grade_boundaries=_IIDX_BOUNDARIES,
        percent_max=100,
        clear_lamp="CLEAR",
    ),
    Game.SDVX: GameConfig(
        game=Game.SDVX,
        playtypes=("Single",),
        difficulties={"Single": ("NOV", "ADV", "EXH", "ANY_INF", "MXM")},
        lamps=_SDVX_LAMPS,
        grades=_SDVX_GRADES,
        grade_boundaries=_SDVX_BOUNDARIES,
        percent_max=100,
        clear_lamp="CLEAR",
    ),
    Game.USC: GameConfig(
        game=Game.USC,
        playtypes=("Single",),
        difficulties={"Single": ("NOV", "ADV", "EXH", "INF")},
        lamps=_SDVX_LAMPS,
        grades=_SDVX_GRADES,
        grade_boundaries=_SDVX_BOUNDARIES,
        percent_max=100,
        clear_lamp="CLEAR",
    ),
    Game.DDR: GameConfig(
        game=Game.DDR,
        playtypes=("SP", "DP"),
        difficulties={
            "SP": ("BEGINNER", "BASIC", "DIFFICULT", "EXPERT", "CHALLENGE"),
            "DP": ("BASIC", "DIFFICULT", "EXPERT", "CHALLENGE"),
        },
        lamps=(
            "FAILED",
            "CLEAR",
            "LIFE4",
            "FULL COMBO",
            "GREAT FULL COMBO",
            "PERFECT FULL COMBO",
            "MARVELOUS FULL COMBO",
        ),
        grades=("D", "D+", "C-", "C", "C+", "B-", "B", "B+", "A-", "A", "A+", "AA-", "AA", "AA+", "AAA"),
        grade_boundaries=(0, 55, 59, 60, 65, 69, 70, 75, 79, 80, 85, 89, 90, 95, 99),
        percent_max=100,
        clear_lamp="CLEAR",
    ),
    Game.CHUNITHM: GameConfig(
        game=Game.CHUNITHM,
        playtypes=("Single",),
        difficulties={"Single": ("BASIC", "ADVANCED", "EXPERT", "MASTER", "WORLD'S END")},
        lamps=("FAILED", "CLEAR", "FULL COMBO", "ALL JUSTICE", "ALL JUSTICE CRITICAL"),
        grades=("D", "C", "B", "BB", "BBB", "A", "AA", "AAA", "S", "SS", "SSS"),
        grade_boundaries=(0, 50, 60, 70, 80, 90, 92.5, 95, 97.5, 100, 100.75),
        percent_max=101,
        clear_lamp="CLEAR",
    ),
    Game.GITADORA: GameConfig(
        game=Game.GITADORA,
        playtypes=("Gita", "Dora"),
        difficulties={
            "Gita": ("BASIC", "ADVANCED", "EXTREME", "MASTER"),
            "Dora": ("BASIC", "ADVANCED", "EXTREME", "MASTER"),
        },
        lamps=("FAILED", "CLEAR", "FULL COMBO", "EXCELLENT"),
        grades=("C", "B", "A", "S", "SS", "MAX"),
        grade_boundaries=(0, 63, 73, 80, 95, 100),
        percent_max=100,
        clear_lamp="CLEAR",
    ),
}


def get_game_config(game) -> GameConfig:
    """
    Get the configuration for a title.

    Args:
        game: Game enum member or its string value

    Returns:
        GameConfig for the title

    Raises:
        ValueError: If the title is not supported
    """
    return GAME_CONFIGS[Game(game)]


def is_valid_game(game) -> bool:
    try:
        Game(game)
    except ValueError:
        return False
    return True


def is_valid_playtype(game, playtype) -> bool:
    return playtype in get_game_config(game).playtypes


def lamp_index(game, lamp) -> int:
    """Position of a lamp in the title's lamp order, or -1 if unknown."""
    lamps = get_game_config(game).lamps
    return lamps.index(lamp) if lamp in lamps else -1


def grade_index(game, grade) -> int:
    """Position of a grade in the title's grade order, or -1 if unknown."""
    grades = get_game_config(game).grades
    return grades.index(grade) if grade in grades else -1


def is_clear(game, lamp) -> bool:
    config = get_game_config(game)
    return lamp_index(game, lamp) >= config.lamps.index(config.clear_lamp)


def valid_games() -> list[str]:
    return [g.value for g in Game]
