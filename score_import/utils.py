"""
Shared utilities for the score import pipeline.

Logging (with the extra VERBOSE and SEVERE levels), payload size checks,
title search keys and atomic file writes.
"""

import json
import logging
import re
import shutil
import tempfile
import unicodedata
from pathlib import Path

from score_import.config import LOG_LEVEL

# --- Custom Log Levels ---
# Import code logs at six levels: severe, error, warning, info, verbose, debug.
VERBOSE = 15
SEVERE = logging.CRITICAL

logging.addLevelName(VERBOSE, "VERBOSE")
logging.addLevelName(SEVERE, "SEVERE")


# --- Logging Setup ---
def setup_logging(name: str | None = None, level: int = LOG_LEVEL) -> logging.Logger:
    """
    Configure and return a logger with consistent formatting.

    Args:
        name: Logger name (usually __name__ from the calling module)
        level: Logging level (default: LOG_LEVEL from config)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that prefixes every message with a context tag.

    Adapters nest, so ``append_log_ctx(append_log_ctx(log, "A"), "B")``
    logs as ``[A] [B] message``.
    """

    def process(self, msg, kwargs):
        return f"[{self.extra['ctx']}] {msg}", kwargs

    def verbose(self, msg, *args, **kwargs):
        self.log(VERBOSE, msg, *args, **kwargs)

    def severe(self, msg, *args, **kwargs):
        self.log(SEVERE, msg, *args, **kwargs)


def append_log_ctx(logger, ctx: str) -> ContextLogger:
    """
    Wrap a logger (or adapter) so its messages carry an extra context tag.

    Args:
        logger: Logger or ContextLogger to wrap
        ctx: Context label, e.g. "Session Generation"

    Returns:
        ContextLogger instance
    """
    return ContextLogger(logger, {"ctx": ctx})


def log_verbose(logger, msg: str) -> None:
    """Log at VERBOSE level on either a plain logger or an adapter."""
    logger.log(VERBOSE, msg)


def log_severe(logger, msg: str) -> None:
    """Log at SEVERE level on either a plain logger or an adapter."""
    logger.log(SEVERE, msg)


# --- Text Normalization ---
_SEARCH_KEY_FOLDS = {
    "ß": "ss",
    "æ": "ae",
    "œ": "oe",
    "ø": "o",
    "đ": "d",
    "ł": "l",
}


def normalize_title_search_key(title: str | None) -> str:
    """
    Normalize a song title into a case- and accent-insensitive search key.

    - NFKC then NFKD decomposition with combining marks removed
    - casefolded, with a few ligatures expanded
    - whitespace collapsed and trimmed

    Args:
        title: Raw title (None is treated as empty)

    Returns:
        Normalized search key
    """
    if title is None:
        return ""

    s = unicodedata.normalize("NFKC", title).casefold()

    for k, v in _SEARCH_KEY_FOLDS.items():
        s = s.replace(k, v)

    s = unicodedata.normalize("NFKD", s)
    s = "".join(c for c in s if not unicodedata.combining(c))

    return re.sub(r"\s+", " ", s).strip()


# --- File Operations ---
def atomic_write_csv(df, path: Path, **kwargs) -> None:
    """
    Write a DataFrame to CSV atomically using a temporary file.

    Args:
        df: pandas DataFrame to write
        path: Destination path for the CSV file
        **kwargs: Additional arguments to pass to df.to_csv()
    """
    logger = setup_logging(__name__)
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with tempfile.NamedTemporaryFile(
            mode='w',
            delete=False,
            suffix='.csv',
            dir=path.parent  # Same filesystem for atomic move
        ) as tmp:
            df.to_csv(tmp.name, **kwargs)
            tmp_path = Path(tmp.name)

        shutil.move(str(tmp_path), str(path))
        logger.debug(f"Atomically wrote {len(df)} rows to {path}")

    except Exception:
        if 'tmp_path' in locals() and tmp_path.exists():
            tmp_path.unlink()
        raise


def atomic_write_json(data, path: Path) -> None:
    """
    Serialize data to JSON and write it atomically using a temporary file.

    Args:
        data: JSON-serializable object
        path: Destination path
    """
    logger = setup_logging(__name__)
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with tempfile.NamedTemporaryFile(
            mode='w',
            encoding='utf-8',
            delete=False,
            suffix='.json',
            dir=path.parent
        ) as tmp:
            json.dump(data, tmp, ensure_ascii=False)
            tmp_path = Path(tmp.name)

        shutil.move(str(tmp_path), str(path))
        logger.debug(f"Atomically wrote snapshot to {path}")

    except Exception:
        if 'tmp_path' in locals() and tmp_path.exists():
            tmp_path.unlink()
        raise


# --- Validation ---
def validate_input_size(payload, max_size: int) -> None:
    """
    Validate that an input payload does not exceed maximum size.

    Args:
        payload: Input text or bytes to validate
        max_size: Maximum allowed size in bytes

    Raises:
        ValueError: If input exceeds max_size
    """
    if len(payload) > max_size:
        raise ValueError(
            f"Input too large: {len(payload):,} bytes. "
            f"Maximum allowed: {max_size:,} bytes"
        )


__all__ = [
    # Logging
    'VERBOSE',
    'SEVERE',
    'setup_logging',
    'append_log_ctx',
    'log_verbose',
    'log_severe',
    'ContextLogger',
    # Text
    'normalize_title_search_key',
    # File operations
    'atomic_write_csv',
    'atomic_write_json',
    # Validation
    'validate_input_size',
]
