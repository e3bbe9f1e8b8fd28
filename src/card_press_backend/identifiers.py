"""
Synthetic identifiers printed on the generated card.

The document number is not unique: its last three digits are random and
nothing checks for collisions. Callers must not use it as a key.
"""

from __future__ import annotations

import random
from datetime import date, timedelta
from typing import Union

SURNAME_LENGTH = 5
INITIALS_LENGTH = 2
PAD_CHAR = "9"
IDENTIFIER_LENGTH = 16

DOB_START = date(1980, 1, 1)
DOB_END = date(1994, 12, 31)


def _fixed_width(value: str, width: int) -> str:
    return value.upper()[:width].ljust(width, PAD_CHAR)


def derive_identifier(
    first_name: str,
    last_name: str,
    date_of_birth: Union[str, date],
    rng: random.Random | None = None,
) -> str:
    """
    Compose the 16 character document number.

    Layout: 5 letters of surname, YY, MM, DD, 2 initials, 3 random digits.
    Short surnames and single-letter first names are padded with ``9``.

    Args:
        first_name: Applicant first name, non-empty
        last_name: Applicant surname, non-empty
        date_of_birth: ``YYYY-MM-DD`` string or ``date``
        rng: Random source for the numeric suffix (default: module ``random``)

    Raises:
        ValueError: If either name is empty or the date is not ISO formatted

    Example:
        >>> derive_identifier("Jane", "Li", "1985-07-04")[:13]
        'LI999850704JA'
    """
    if not first_name or not last_name:
        raise ValueError("first_name and last_name must be non-empty")

    dob = date.fromisoformat(date_of_birth) if isinstance(date_of_birth, str) else date_of_birth
    suffix = (rng or random).randint(100, 999)

    surname = _fixed_width(last_name, SURNAME_LENGTH)
    initials = _fixed_width(first_name, INITIALS_LENGTH)
    return f"{surname}{dob:%y%m%d}{initials}{suffix}"


def generate_random_dob(rng: random.Random | None = None) -> str:
    """Pick a date uniformly from 1980-01-01..1994-12-31 and return it as ``YYYY-MM-DD``."""
    span = (DOB_END - DOB_START).days
    return (DOB_START + timedelta(days=(rng or random).randint(0, span))).isoformat()
