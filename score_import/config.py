"""
Central configuration for the score import pipeline.

Paths, thresholds, store collection names and Kai API settings. Log level
and API base URLs can be overridden from the environment.
"""

import logging
import os
from pathlib import Path

# --- Project Paths ---
PROJECT_ROOT = Path(__file__).parent.parent
DATA_FOLDER = PROJECT_ROOT / "data"
OUTPUT_FOLDER = DATA_FOLDER / "processed"

# --- Logging ---
LOG_LEVEL = logging.getLevelName(os.environ.get("SCORE_IMPORT_LOG_LEVEL", "INFO").upper())
if not isinstance(LOG_LEVEL, int):
    LOG_LEVEL = logging.INFO

# --- Session Configuration ---
SESSION_INACTIVITY_MS = 1000 * 60 * 60 * 2  # 2 hours between plays ends a session
SESSION_CALC_SCORE_COUNT = 10  # Best N member scores averaged into session figures
SESSION_ID_PREFIX = "Q"

# --- Rating Configuration ---
RATING_SCORE_COUNT = 20  # Best N personal bests averaged into profile ratings

# --- Score Configuration ---
SCORE_ID_PREFIX = "R"

# --- Import Configuration ---
CONVERT_CONCURRENCY = 16  # Max items converted at once within one batch
MAX_INPUT_SIZE = 20_000_000  # Maximum file payload size in bytes (~20MB)
MAX_COMMENT_LENGTH = 240
INTERNAL_FAILURE_MESSAGE = "An internal error has occured."

# --- Store Collections ---
SONGS_COLLECTION = "songs"
CHARTS_COLLECTION = "charts"
SCORES_COLLECTION = "scores"
PBS_COLLECTION = "score-pbs"
SESSIONS_COLLECTION = "sessions"
GAME_STATS_COLLECTION = "game-stats"

# --- Kai API Configuration ---
FLO_API_URL = os.environ.get("FLO_API_URL", "https://api.flo.example")
EAG_API_URL = os.environ.get("EAG_API_URL", "https://api.eag.example")
KAI_REQUEST_TIMEOUT = 30  # seconds
KAI_MAX_PAGES = 1000  # Hard stop for runaway pagination
