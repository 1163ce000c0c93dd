"""
Word selection for quiz rounds.

Due words come first: when at least one eligible word is due, the target is
drawn uniformly from the due subset only; otherwise from everything left.
"""

import random
from collections.abc import Collection, Sequence
from datetime import datetime

from lexify.domain.models import Word, local_date, utcnow


def is_due(due: datetime | None, now: datetime | None = None) -> bool:
    """
    True if *due* falls on today's local calendar date or earlier.

    Time of day is ignored on both sides: a word due at 23:59 today is due now.
    """
    if due is None:
        return False
    return local_date(due) <= local_date(now or utcnow())


def select_target(
    words: Sequence[Word],
    exclude_ids: Collection[str] = (),
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> Word | None:
    """
    Pick the next word to quiz.

    Args:
        words: The store's current words.
        exclude_ids: Ids that must not be picked (e.g. the word on screen).
        now: Reference time for due checks.
        rng: Random source; the module RNG when omitted.

    Returns:
        A due word if any are eligible, else any eligible word, else None.
    """
    rng = rng or random
    eligible = [w for w in words if w.id not in exclude_ids]
    if not eligible:
        return None
    due = [w for w in eligible if is_due(w.fsrs_card.due, now)]
    return rng.choice(due or eligible)


def pick_decoys(
    words: Sequence[Word],
    target_id: str,
    count: int,
    *,
    rng: random.Random | None = None,
) -> list[Word]:
    """Up to *count* random words other than the target."""
    rng = rng or random
    others = [w for w in words if w.id != target_id]
    if count <= 0 or not others:
        return []
    return rng.sample(others, min(count, len(others)))
