"""
Entry number formatting.

Pure functions that turn a voucher type's pattern and an integer counter
value into a document number (``JE-2024-00001``), and that name the counter
a number is drawn from.  The counter value is the only mutable state in
numbering; everything here is deterministic.

Pattern placeholders:
    {prefix}  voucher type prefix (e.g. "JE", "RC")
    {code}    voucher type code
    {year}    calendar year of the entry date
    {number}  counter value; accepts a format spec such as {number:05d}
"""

from datetime import date
from string import Formatter

DEFAULT_NUMBER_PATTERN = "{prefix}-{year}-{number:05d}"

_ALLOWED_FIELDS = frozenset({"prefix", "code", "year", "number"})


def pattern_fields(pattern: str) -> set[str]:
    """Placeholder names used by ``pattern``."""
    return {name for _, name, _, _ in Formatter().parse(pattern) if name}


def validate_pattern(pattern: str) -> str:
    """
    Check that a numbering pattern only uses known placeholders and
    includes ``{number}``.

    Raises:
        ValueError: unknown placeholder or no ``{number}``.
    """
    fields = pattern_fields(pattern)
    unknown = fields - _ALLOWED_FIELDS
    if unknown:
        raise ValueError(f"Unknown placeholders in number pattern: {sorted(unknown)}")
    if "number" not in fields:
        raise ValueError("Number pattern must contain {number}")
    return pattern


def is_year_scoped(pattern: str) -> bool:
    """Numbers restart every calendar year when the pattern shows the year."""
    return "year" in pattern_fields(pattern)


def counter_name(voucher_type_code: str, pattern: str, entry_date: date | None) -> str:
    """
    Name of the sequence counter a number is drawn from.

    ``voucher:JE`` for plain patterns, ``voucher:JE:2024`` for year-scoped
    patterns.
    """
    if is_year_scoped(pattern):
        if entry_date is None:
            raise ValueError("entry_date is required for year-scoped number patterns")
        return f"voucher:{voucher_type_code}:{entry_date.year}"
    return f"voucher:{voucher_type_code}"


def format_entry_number(
    pattern: str,
    prefix: str,
    number: int,
    entry_date: date | None = None,
    code: str | None = None,
) -> str:
    """
    Render an entry number.

    >>> format_entry_number("{prefix}-{year}-{number:05d}", "JE", 7, date(2024, 3, 1))
    'JE-2024-00007'
    """
    if number <= 0:
        raise ValueError(f"Counter values start at 1, got {number}")
    return pattern.format(
        prefix=prefix,
        code=code or prefix,
        year=entry_date.year if entry_date else "",
        number=number,
    )
