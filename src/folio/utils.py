# folio/utils.py
import locale
import re
import unicodedata
from datetime import datetime, timezone
from typing import Any, Optional, Tuple, Union

# Largest integer a JSON consumer can hold exactly in a double.
MAX_SAFE_INTEGER = 2**53 - 1

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_DIGITS = re.compile(r"0|[1-9][0-9]*")
_TIMESTAMP = re.compile(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}")
_NUMBER_RUNS = re.compile(r"(\d+)")


def parse_json_int(value: Any) -> Optional[int]:
    """
    Converts an unsigned JSON integer to an int.

    Large values may be carried as canonical base-10 digit strings instead of
    native numbers; both forms are accepted. Returns None for anything else,
    including booleans, floats, negative numbers and strings with signs,
    whitespace or leading zeros.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, str) and _DIGITS.fullmatch(value):
        return int(value)
    return None


def emit_json_int(value: int) -> Union[int, str]:
    """Returns value as-is, or as a digit string when it exceeds the safe range."""
    return value if value <= MAX_SAFE_INTEGER else str(value)


def _collation_text(chunk: str) -> Tuple[str, str]:
    # strxfrm() rejects embedded NULs
    folded = chunk.casefold().replace("\0", "")
    base = "".join(c for c in unicodedata.normalize("NFKD", folded) if not unicodedata.combining(c))
    return locale.strxfrm(base), locale.strxfrm(folded)


def collation_key(text: str) -> Tuple[Tuple[int, Any], ...]:
    """
    Sort key for locale-aware, numeric-aware ordering, so that "f2" < "f10".

    Digit runs compare by value and sort before text. Text runs compare first
    without accents, so "éclair" sorts between "eagle" and "zebra" even in the
    C locale, then with the LC_COLLATE collation of the process. Library
    callers that want the user's collation must call
    locale.setlocale(locale.LC_COLLATE, "") themselves; the CLI does.
    """
    parts = []
    # split() with a capturing group puts the digit runs at odd positions
    for i, chunk in enumerate(_NUMBER_RUNS.split(text)):
        if not chunk:
            continue
        if i % 2:
            parts.append((0, int(chunk)))
        else:
            parts.append((1, *_collation_text(chunk)))
    # Tie-break on the raw string so the order is total and stable
    parts.append((2, text))
    return tuple(parts)


def format_timestamp(epoch_seconds: int) -> str:
    """
    Formats seconds since the epoch as a zero-padded UTC 'YYYY-MM-DD HH:MM:SS'.

    Raises ValueError for instants outside years 1 to 9999.
    """
    try:
        dt = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"Timestamp {epoch_seconds} is out of range") from e
    # strftime("%Y") does not pad years below 1000 on every platform
    return f"{dt.year:04d}-{dt:%m-%d %H:%M:%S}"


def is_valid_timestamp(text: str) -> bool:
    """Checks that text is an exact 'YYYY-MM-DD HH:MM:SS' timestamp naming a real instant."""
    if not _TIMESTAMP.fullmatch(text):
        return False
    try:
        datetime.strptime(text, TIMESTAMP_FORMAT)
    except ValueError:
        return False
    return True


def format_bytes(size: int) -> str:
    """Formats a size in bytes to a human-readable string (KB, MB, GB, etc.)."""
    if not isinstance(size, (int, float)):
        return "0 B"
    power = 1024
    n = 0
    power_labels = {0: '', 1: 'K', 2: 'M', 3: 'G', 4: 'T'}
    while size >= power and n < len(power_labels) - 1:
        size /= power
        n += 1
    return f"{size:.2f} {power_labels[n]}B"
