"""Application configuration and constants."""
import logging
import os
from pathlib import Path


def _parse_int_env(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# Directories
DATA_DIR = Path(os.environ.get("BANK_DATA_DIR", Path.cwd() / "data"))
DATA_DIR.mkdir(parents=True, exist_ok=True)

RESOURCES_DIR = Path(os.environ.get("RESOURCES_DIR", Path.cwd() / "resources"))

# Database
DATABASE_URL = os.environ.get(
    "DATABASE_URL", f"sqlite:///{DATA_DIR / 'studybank.db'}"
)

# Envelope formats
BANK_FORMAT_VERSION = 1
BANK_KIND = "bank"
CONTRIBUTION_KIND = "contribution"

# Question images
QUESTION_IMAGE_PATH_PREFIX = "question-images/"
MAX_IMAGE_SIZE_BYTES = _parse_int_env("MAX_IMAGE_SIZE_BYTES", 5 * 1024 * 1024)  # 5 MB

# Spaced repetition
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3

# Grading (continuous assessment on a 0-10 scale)
DEFAULT_CONTINUOUS_WEIGHT = 0.4
DEFAULT_MAX_CONTINUOUS_POINTS = 10.0
DEFAULT_TEST_CONTINUOUS_POINTS = 0.1
MAX_GRADE = 10.0

# Logging
LOG_LEVEL = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
