"""
Normalizers for loosely formatted Dutch/English input.

Every function here is total: unparseable input gives ``None`` (or the
documented default), never an exception.
"""

import re
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from zzp_assistant.models.drafts import Unit, VatRate


NUMBER = r"\d+(?:[.,]\d+)*"

_VAT_BEFORE = re.compile(
    rf"\b(?:btw|vat)\s*[:=]?\s*(?P<rate>{NUMBER})\s*%?",
    re.IGNORECASE,
)
_VAT_AFTER = re.compile(
    rf"(?P<rate>{NUMBER})\s*%\s*(?:btw|vat)\b",
    re.IGNORECASE,
)

_DMY = re.compile(r"\b(\d{1,2})[-/](\d{1,2})[-/](\d{4})\b")
_ISO = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")

_RELATIVE_DAYS = (
    (re.compile(r"\b(?:vandaag|today)\b", re.IGNORECASE), 0),
    (re.compile(r"\b(?:gisteren|yesterday)\b", re.IGNORECASE), -1),
    (re.compile(r"\b(?:morgen|tomorrow)\b", re.IGNORECASE), 1),
)

UNIT_WORDS: dict[str, Unit] = {
    "uur": Unit.UUR,
    "uren": Unit.UUR,
    "hour": Unit.UUR,
    "hours": Unit.UUR,
    "stop": Unit.STOP,
    "km": Unit.KM,
    "project": Unit.PROJECT,
    "projecten": Unit.PROJECT,
    "licentie": Unit.LICENTIE,
    "licenties": Unit.LICENTIE,
    "license": Unit.LICENTIE,
    "service": Unit.SERVICE,
}

# Words that only name the default unit
STUK_WORDS = frozenset({"stuk", "stuks", "x"})

_WORD = re.compile(r"[^\W\d_]+", re.UNICODE)


def normalize_decimal(value: Union[str, int, float, Decimal, None]) -> Optional[Decimal]:
    """
    Parse a number written with a comma or a dot as decimal separator.

    "1,25" and "1.25" both give Decimal("1.25"). When both separators
    occur, the last one is the decimal separator ("1.250,50" -> 1250.50).
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    text = str(value).strip().replace("€", "").replace(" ", "")
    if not text:
        return None

    if "," in text and "." in text:
        decimal_sep = "," if text.rfind(",") > text.rfind(".") else "."
        thousands_sep = "." if decimal_sep == "," else ","
        text = text.replace(thousands_sep, "").replace(decimal_sep, ".")
    else:
        text = text.replace(",", ".")

    if text.count(".") > 1:
        return None
    try:
        result = Decimal(text)
    except InvalidOperation:
        return None
    if not result.is_finite():
        return None
    return result


def normalize_vat_rate(value: Union[str, int, float, Decimal, None]) -> VatRate:
    """
    Bucket a free-form VAT percentage into one of the three legal rates.

    20-22 (or 0.20-0.22) -> 21, 8-10 (or 0.08-0.10) -> 9, exactly 0 -> 0.
    Anything else, including garbage, falls back to 21.
    """
    if value is None:
        return VatRate.HIGH
    text = str(value).lower().replace("%", "").replace(" ", "")
    number = normalize_decimal(text)
    if number is None:
        return VatRate.HIGH

    if Decimal("0.20") <= number <= Decimal("0.22"):
        return VatRate.HIGH
    if Decimal("20") <= number <= Decimal("22"):
        return VatRate.HIGH
    if Decimal("0.08") <= number <= Decimal("0.10"):
        return VatRate.LOW
    if Decimal("8") <= number <= Decimal("10"):
        return VatRate.LOW
    if number == 0:
        return VatRate.ZERO
    return VatRate.HIGH


def extract_vat_rate(text: str) -> Optional[VatRate]:
    """Find an embedded rate like "btw 9%", "vat 21" or "9% btw"."""
    match = _VAT_BEFORE.search(text) or _VAT_AFTER.search(text)
    if not match:
        return None
    return normalize_vat_rate(match.group("rate"))


def strip_vat_tokens(text: str) -> str:
    """Remove every embedded VAT mention from a text."""
    return _VAT_AFTER.sub(" ", _VAT_BEFORE.sub(" ", text))


def parse_date(text: str, today: Optional[date] = None) -> Optional[date]:
    """
    Parse relative words and common Dutch date formats.

    Supports vandaag/today, gisteren/yesterday, morgen/tomorrow,
    DD-MM-YYYY, DD/MM/YYYY and ISO YYYY-MM-DD. A date that does not exist
    on the calendar gives None.
    """
    if not text:
        return None
    today = today or date.today()

    for pattern, offset in _RELATIVE_DAYS:
        if pattern.search(text):
            return today + timedelta(days=offset)

    match = _ISO.search(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    match = _DMY.search(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    return None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def infer_unit(text: str) -> Unit:
    """
    Pick the billing unit from the words of a line.

    Only whole words count, so "stops" stays the default STUK while
    "stop" is STOP.
    """
    for word in _WORD.findall(text.lower()):
        unit = UNIT_WORDS.get(word)
        if unit is not None:
            return unit
    return Unit.STUK


def is_unit_word(word: str) -> bool:
    word = word.lower()
    return word in UNIT_WORDS or word in STUK_WORDS
