"""Shared utility functions for the Field Plan Analyzer.

Contains the canonical implementations of the cell-value cleanup and
formatting helpers used across the codebase. All callsites should import
from here rather than maintaining local copies.
"""

import math
import re
import unicodedata

# Characters that show up in copy-pasted form answers but render as nothing
# (or as a plain space) in the spreadsheet UI.
_INVISIBLE_CHARS = {
    chr(0x00A0): " ",  # no-break space
    chr(0x2007): " ",  # figure space
    chr(0x202F): " ",  # narrow no-break space
    chr(0x200B): "",  # zero-width space
    chr(0x200C): "",  # zero-width non-joiner
    chr(0x200D): "",  # zero-width joiner
    chr(0x2060): "",  # word joiner
    chr(0xFEFF): "",  # byte order mark
}

_WHITESPACE_RUN = re.compile(r"\s+")

_NUMERIC_NOISE = re.compile(r"[$,\s]")


def normalize_text(value: object) -> str:
    """Clean a raw cell value into a single-line, trimmed string.

    Replaces non-breaking and zero-width characters, turns control
    characters (tabs, line breaks, etc.) into spaces, collapses runs of
    whitespace and trims both ends. ``None`` becomes an empty string.

    Case is preserved: organization-name matching is case-sensitive.

    Args:
        value: Any cell value.

    Returns:
        Normalized string.
    """
    if value is None:
        return ""
    text = str(value)
    for char, replacement in _INVISIBLE_CHARS.items():
        text = text.replace(char, replacement)
    text = "".join(
        " " if unicodedata.category(ch) == "Cc" else ch for ch in text
    )
    return _WHITESPACE_RUN.sub(" ", text).strip()


def coerce_number(value: object) -> float:
    """Coerce a raw cell value to a finite float, defaulting to 0.

    Numbers pass through. Numeric strings parse, tolerating a leading ``$``
    and thousands separators. ``None``, empty strings, booleans,
    non-numeric strings, NaN and infinities all become ``0.0``.

    Args:
        value: Any cell value.

    Returns:
        A finite float.
    """
    number = parse_number(value)
    return 0.0 if number is None else number


def parse_number(value: object) -> float | None:
    """Parse a raw cell value as a finite float, or return None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = _NUMERIC_NOISE.sub("", normalize_text(value))
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def coerce_flag(value: object) -> bool:
    """Interpret a checkbox-style cell (``True`` or ``"TRUE"``) as a bool."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return normalize_text(value).upper() == "TRUE"
    return False


def is_blank(value: object) -> bool:
    """True when a cell holds nothing meaningful (None or whitespace)."""
    if value is None:
        return True
    if isinstance(value, str):
        return not normalize_text(value)
    return False


def _tokenize_phrases(phrases: list[str] | tuple[str, ...]) -> list[list[str]]:
    tokenized = [normalize_text(p).split(" ") for p in phrases if normalize_text(p)]
    # Longest phrase first so "Black or African American" beats "African American".
    return sorted(tokenized, key=len, reverse=True)


def split_list_field(
    value: object,
    protected_phrases: list[str] | tuple[str, ...] = (),
) -> list[str]:
    """Normalize a list-valued form answer into an ordered list of strings.

    Form versions deliver multi-select answers as a list, a comma-separated
    string, a newline-separated string, or a space-separated string.

    Splitting rules, in order:
      1. Lists/tuples: each element is normalized.
      2. Commas present: split on commas.
      3. Line breaks present: split on line breaks.
      4. Otherwise: split on whitespace, keeping any ``protected_phrases``
         (e.g. ``"St. Clair"``) together as single items.

    Empty items are dropped. Never returns None.

    Args:
        value: Raw cell value.
        protected_phrases: Multi-word names that must not be split.

    Returns:
        List of cleaned items.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = [normalize_text(v) for v in value]
        return [item for item in items if item]

    raw = str(value)
    if "," in raw:
        parts = raw.split(",")
    elif "\n" in raw or "\r" in raw:
        parts = re.split(r"[\r\n]+", raw)
    else:
        return _split_on_whitespace(normalize_text(raw), protected_phrases)

    items = [normalize_text(part) for part in parts]
    return [item for item in items if item]


def _split_on_whitespace(
    text: str, protected_phrases: list[str] | tuple[str, ...]
) -> list[str]:
    if not text:
        return []
    tokens = text.split(" ")
    phrases = _tokenize_phrases(protected_phrases)
    items: list[str] = []
    i = 0
    while i < len(tokens):
        for phrase in phrases:
            window = tokens[i:i + len(phrase)]
            if len(phrase) > 1 and [t.lower() for t in window] == [p.lower() for p in phrase]:
                items.append(" ".join(window))
                i += len(phrase)
                break
        else:
            items.append(tokens[i])
            i += 1
    return items


def format_dollars(amount: float, cents: bool = False) -> str:
    """Format a dollar amount with commas.

    The single source of truth for dollar formatting across all modules.
    Produces output like "$1,234,567" (or "$1,234,567.00" with ``cents``)
    for positive amounts and "-$1,234,567" for negative amounts.

    Args:
        amount: Dollar amount as a float or int.
        cents: Include two decimal places.

    Returns:
        Formatted string with dollar sign and thousand separators.
    """
    if math.isinf(amount):
        return "$inf" if amount > 0 else "-$inf"
    sign = "-" if amount < 0 else ""
    if cents:
        return f"{sign}${abs(amount):,.2f}"
    return f"{sign}${abs(amount):,.0f}"


def format_number(value: float) -> str:
    """Render a count without a trailing ``.0`` (600.0 -> "600", 2.5 -> "2.5")."""
    if math.isfinite(value) and float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}".rstrip("0").rstrip(".")
