from typing import Sequence

from scraper.errors import ValidationError

VALID_STATES = frozenset(
    {
        "ac", "al", "ap", "am", "ba", "ce", "df", "es", "go", "ma", "mt", "ms", "mg", "pa",
        "pb", "pr", "pe", "pi", "rj", "rn", "rs", "ro", "rr", "sc", "sp", "se", "to",
    }
)


def parse_states(value: str | Sequence[str] | None) -> list[str]:
    """Split ``"sp, RJ,mg"`` (or a list of codes) into validated lowercase UF codes."""
    if not value:
        return []
    parts = value.split(",") if isinstance(value, str) else value
    states = [s.strip().lower() for s in parts if s and s.strip()]
    for state in states:
        if state not in VALID_STATES:
            raise ValidationError(
                f'Unknown state "{state}". Use a valid Brazilian UF (e.g. sp, rj, mg).'
            )
    return states
