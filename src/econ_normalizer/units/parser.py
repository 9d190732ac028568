"""Free-form unit string parsing.

Turns strings such as ``"EUR Millions per Quarter"``, ``"% of GDP"`` or
``"Thousand Tonnes"`` into a ``ParsedUnit``. Classification runs in a fixed
priority order and the first category that matches wins; scale and time are
extracted independently for every category that carries them.
"""
from __future__ import annotations

import re
from functools import lru_cache

from ..models.schema import UNKNOWN_CURRENCY, ParsedUnit, Scale, TimeScale, UnitCategory
from .vocabulary import (
    AMBIGUOUS_CODES,
    BASE_UNIT_PATTERNS,
    COMPOUND_PHYSICAL,
    COUNT_PATTERNS,
    CURRENCY_CODES,
    CURRENCY_SYMBOLS,
    INDEX_PATTERNS,
    LOCAL_CURRENCY_PATTERN,
    PERCENTAGE_PATTERNS,
    PERIODICITY_NAMES,
    RATIO_PATTERNS,
    RATIO_SPLIT,
    SCALE_TOKENS,
    TIME_TOKENS,
    TIME_WORDS,
)

_TOKEN = re.compile(r"[A-Za-z]+")
_LEFTOVER = re.compile(r"[A-Za-z]")


def parse_unit(unit: str | None) -> ParsedUnit:
    """Parse a unit string. Empty or unrecognised input yields category ``unknown``."""
    return _parse((unit or "").strip())


@lru_cache(maxsize=4096)
def _parse(text: str) -> ParsedUnit:
    if not text:
        return ParsedUnit(original=text)

    for pattern, label in PERCENTAGE_PATTERNS:
        if pattern.search(text):
            return ParsedUnit(original=text, category=UnitCategory.PERCENTAGE, normalized_label=label)

    for pattern, label in INDEX_PATTERNS:
        if pattern.search(text):
            return ParsedUnit(original=text, category=UnitCategory.INDEX, normalized_label=label)

    numerator, denominator = _split_ratio(text)
    currency = extract_currency(numerator)
    time_scale = _detect_time(text)

    if currency is None:
        for pattern, category, label in BASE_UNIT_PATTERNS:
            if pattern.search(text):
                # "thousand tonnes" already names its magnitude; "million barrels" keeps it as scale
                scale = None if COMPOUND_PHYSICAL.search(label) else parse_scale(text)
                return ParsedUnit(
                    original=text,
                    category=category,
                    scale=scale,
                    time_scale=time_scale,
                    normalized_label=label,
                )

    if currency is not None:
        if denominator is not None:
            quote = extract_currency(denominator)
            if quote is not None:
                return ParsedUnit(
                    original=text,
                    category=UnitCategory.FX_RATIO,
                    currency=currency,
                    normalized_label=f"{_pair_code(currency)}/{_pair_code(quote)}",
                    denominator=quote,
                )
            if _time_word(denominator) is None:
                return ParsedUnit(
                    original=text,
                    category=UnitCategory.CURRENCY_AMOUNT,
                    currency=currency,
                    scale=parse_scale(numerator),
                    normalized_label=currency_label(currency),
                    denominator=_clean_denominator(denominator),
                )
        return ParsedUnit(
            original=text,
            category=UnitCategory.CURRENCY_AMOUNT,
            currency=currency,
            scale=parse_scale(text),
            time_scale=time_scale,
            normalized_label=currency_label(currency),
        )

    for pattern, label in RATIO_PATTERNS:
        if pattern.search(text):
            return ParsedUnit(original=text, category=UnitCategory.RATIO, normalized_label=label)

    scale = parse_scale(text)
    if scale is not None and _only_scale_and_time(text):
        return ParsedUnit(original=text, category=UnitCategory.COUNT, scale=scale, time_scale=time_scale)

    for pattern, label in COUNT_PATTERNS:
        if pattern.search(text):
            return ParsedUnit(
                original=text,
                category=UnitCategory.COUNT,
                scale=scale,
                time_scale=time_scale,
                normalized_label=label,
            )

    return ParsedUnit(original=text, scale=scale, time_scale=time_scale)


def parse_scale(text: str | None) -> Scale | None:
    """Detect a magnitude word. Accepts enum values (``"millions"``) as well as prose."""
    if not text:
        return None
    cleaned = text.strip()
    try:
        return Scale(cleaned.lower())
    except ValueError:
        pass
    for scale, pattern in SCALE_TOKENS:
        if pattern.search(cleaned):
            return scale
    return None


def parse_time_scale(text: str | None) -> TimeScale | None:
    """Detect a reporting period.

    Handles database periodicity strings ("Monthly", "Yearly", "Annual"),
    bare enum values ("month") and unit suffixes ("per quarter", "/yr").
    """
    if not text:
        return None
    key = text.strip().lower()
    if key in PERIODICITY_NAMES:
        return PERIODICITY_NAMES[key]
    if key.endswith("s") and key[:-1] in PERIODICITY_NAMES:
        return PERIODICITY_NAMES[key[:-1]]
    return _detect_time(text)


def extract_currency(text: str | None) -> str | None:
    """Return the ISO code (or ``UNKNOWN`` for local-currency placeholders) found in *text*."""
    if not text:
        return None
    if LOCAL_CURRENCY_PATTERN.search(text):
        return UNKNOWN_CURRENCY
    for token in _TOKEN.findall(text):
        code = token.upper()
        if len(code) != 3 or code not in CURRENCY_CODES:
            continue
        if code in AMBIGUOUS_CODES and token != code:
            continue
        return code
    for symbol, code in CURRENCY_SYMBOLS.items():
        if symbol in text:
            return code
    return None


def is_monetary_unit(text: str | None) -> bool:
    return parse_unit(text).category == UnitCategory.CURRENCY_AMOUNT


def currency_label(code: str) -> str:
    return "National currency" if code == UNKNOWN_CURRENCY else code


def time_suffix(text: str | None) -> str | None:
    """Return ``"per <period>"`` when the raw unit string carries a time suffix."""
    time_scale = _detect_time(text or "")
    return f"per {time_scale.value}" if time_scale else None


def _detect_time(text: str) -> TimeScale | None:
    for time_scale, pattern in TIME_TOKENS:
        if pattern.search(text):
            return time_scale
    return None


def _split_ratio(text: str) -> tuple[str, str | None]:
    match = RATIO_SPLIT.match(text)
    if not match:
        return text, None
    return match.group("num"), match.group("den")


def _time_word(text: str) -> TimeScale | None:
    words = _TOKEN.findall(text)
    if not words:
        return None
    word = words[0].lower()
    if word in TIME_WORDS:
        return TIME_WORDS[word]
    if word.endswith("s") and word[:-1] in TIME_WORDS:
        return TIME_WORDS[word[:-1]]
    return None


def _clean_denominator(text: str) -> str:
    return " ".join(text.split()).lower()


def _pair_code(code: str) -> str:
    return "LCU" if code == UNKNOWN_CURRENCY else code


def _only_scale_and_time(text: str) -> bool:
    rest = text
    for _, pattern in SCALE_TOKENS:
        rest = pattern.sub(" ", rest)
    for _, pattern in TIME_TOKENS:
        rest = pattern.sub(" ", rest)
    rest = re.sub(r"\b(?:of|in)\b", " ", rest, flags=re.IGNORECASE)
    return not _LEFTOVER.search(rest)
