"""String processing utilities for the catalog pipeline.

parse_int() is called for every characteristic, cost and constraint value of
every entry, so it avoids exceptions on the common path.
"""

from utils.patterns import LEADING_INT, WHITESPACE


def parse_int(val) -> int | None:
    """Parse the leading integer of a value, or None when there is none.

    Handles:
    - None, empty strings -> None
    - ints -> themselves; floats -> truncated
    - Strings with trailing text: "3+" -> 3, "6\\"" -> 6, "5.0" -> 5
    - Strings without a leading integer: "D6", "-" -> None

    Callers pick their own fallback, usually ``parse_int(v) or default`` so a
    zero reads the same as a missing value.
    """
    if val is None or val == '':
        return None
    if isinstance(val, bool):
        return int(val)
    if isinstance(val, int):
        return val
    if isinstance(val, float):
        return int(val)

    match = LEADING_INT.match(str(val))
    if match is None:
        return None
    return int(match.group(1))


def normalize_whitespace(s: str) -> str:
    """Normalize multiple whitespace characters to single spaces.

    Example:
        "Deep   Strike\\n" -> "Deep Strike"
    """
    return WHITESPACE.sub(' ', s).strip()


def split_keywords(raw: str | None) -> list[str]:
    """Split a comma-separated keyword characteristic.

    Tokens are trimmed; empty tokens and the "-" placeholder are dropped.

    Example:
        "Assault, Heavy, -" -> ["Assault", "Heavy"]
    """
    if not raw:
        return []
    return [k.strip() for k in raw.split(',') if k.strip() and k.strip() != '-']


def strip_suffix_ci(s: str, suffix: str) -> str:
    """Remove *suffix* from the end of *s*, ignoring case."""
    if suffix and s.lower().endswith(suffix.lower()):
        return s[:len(s) - len(suffix)]
    return s
