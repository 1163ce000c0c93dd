import re
from datetime import timedelta

# ---------- Word text ----------


def normalize_word_text(text: str | None) -> str:
    """Trim surrounding whitespace; ``None`` becomes an empty string."""
    return (text or "").strip()


def word_key(text: str) -> str:
    """Case-insensitive identity of a word, used for uniqueness and caches."""
    return normalize_word_text(text).lower()


def is_valid_word_text(text: str | None, max_length: int) -> bool:
    normalized = normalize_word_text(text)
    return bool(normalized) and len(normalized) <= max_length


# ---------- Answers ----------


def answers_match(given: str, expected: str) -> bool:
    """Case-insensitive, whitespace-trimmed equality used for typed answers."""
    return given.strip().lower() == expected.strip().lower()


def first_divergence(given: str, expected: str) -> int:
    """
    Index of the first character where *given* stops matching *expected*.

    Comparison is case-insensitive. When *given* is a correct prefix the
    result is ``len(given)``; when it already covers *expected* the result
    is ``len(expected)``.
    """
    for i, expected_char in enumerate(expected):
        if i >= len(given) or given[i].lower() != expected_char.lower():
            return i
    return len(expected)


# ---------- Step durations ----------

_STEP_RE = re.compile(r"^\s*(\d+)\s*([smhd])\s*$")
_STEP_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_step(step: str) -> timedelta:
    """
    Parse a learning-step duration such as ``"5m"``, ``"12h"`` or ``"1d"``.

    Raises:
        ValueError: If the string is not ``<positive int><s|m|h|d>``.
    """
    match = _STEP_RE.match(step)
    if not match:
        raise ValueError(f"Invalid step duration: {step!r}")
    amount = int(match.group(1))
    if amount <= 0:
        raise ValueError(f"Step duration must be positive: {step!r}")
    return timedelta(**{_STEP_UNITS[match.group(2)]: amount})


def parse_steps(steps: list[str] | tuple[str, ...]) -> tuple[timedelta, ...]:
    return tuple(parse_step(s) for s in steps)
