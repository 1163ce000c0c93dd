"""Service for generating stable, opaque word IDs."""

from ulid import ULID

from lexify.domain.constants import WORD_ID_PREFIX


def generate_word_id() -> str:
    """Generate a stable word ID using ULID (sortable by creation time)."""
    return f"{WORD_ID_PREFIX}_{ULID()}"
