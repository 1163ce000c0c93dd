"""Centralized constants for the Lexify application.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

import math

# ---------- Word Store ----------
MAX_WORD_LENGTH = 100
WORD_ID_PREFIX = "word"

# ---------- FSRS ----------
DEFAULT_REQUEST_RETENTION = 0.9
DEFAULT_MAXIMUM_INTERVAL = 36500  # days
DEFAULT_LEARNING_STEPS = ("5m", "30m")
DEFAULT_RELEARNING_STEPS = ("10m",)
STABILITY_MIN = 0.001
DIFFICULTY_MIN = 1.0
DIFFICULTY_MAX = 10.0

# FSRS-6 default weights (w0..w20)
DEFAULT_WEIGHTS = (
    0.212,
    1.2931,
    2.3065,
    8.2956,
    6.4133,
    0.8334,
    3.0194,
    0.001,
    1.8722,
    0.1666,
    0.796,
    1.4835,
    0.0614,
    0.2629,
    1.6483,
    0.6014,
    1.8729,
    0.5425,
    0.0912,
    0.0658,
    0.1542,
)

# (start_days, end_days, factor)
FUZZ_RANGES = (
    (2.5, 7.0, 0.15),
    (7.0, 20.0, 0.1),
    (20.0, math.inf, 0.05),
)
FUZZ_MIN_INTERVAL = 2.5  # days

# ---------- Games ----------
DECOY_COUNT = 3
MULTIPLE_CHOICE_OPTIONS = 4
MULTIPLE_CHOICE_MIN_WORDS = 4
TEXT_INPUT_MIN_WORDS = 1
FAILURE_THRESHOLD = 3
BLANK_MARKER = "___"

# ---------- Quiz Log ----------
QUIZ_LOG_SIZE = 200

# ---------- AI Service / HTTP ----------
REQUEST_TIMEOUT = 30.0
MULTIPLE_CHOICE_PATH = "/questions/multiple-choice"
FILL_BLANK_PATH = "/questions/fill-blank"
WORD_DETAILS_PATH = "/words/details"
