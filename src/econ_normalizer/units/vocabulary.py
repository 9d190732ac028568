"""Unit vocabulary: currency codes, scale and time tokens, base unit patterns."""
from __future__ import annotations

import re

from ..models.schema import Scale, TimeScale, UnitCategory

# ISO 4217 codes seen in economic series
CURRENCY_CODES: frozenset[str] = frozenset({
    "USD", "EUR", "GBP", "JPY", "CNY", "CAD", "AUD", "CHF", "SEK", "NOK", "DKK", "NZD",
    "SGD", "HKD", "KRW", "INR", "RUB", "BRL", "MXN", "ZAR", "TRY", "AED", "SAR", "THB",
    "MYR", "IDR", "PHP", "VND", "PKR", "BDT", "NGN", "EGP", "ARS", "COP", "CLP", "PEN",
    "UYU", "BOB", "PYG", "VEF", "VES", "CRC", "GTQ", "HNL", "NIO", "DOP", "JMD", "TTD",
    "BBD", "BSD", "BZD", "XCD", "HTG", "SRD", "GYD", "AWG", "KYD", "BMD", "PAB", "MAD",
    "DZD", "TND", "LYD", "JOD", "LBP", "SYP", "IQD", "KWD", "BHD", "OMR", "QAR", "ILS",
    "GEL", "AMD", "AZN", "KZT", "KGS", "TJS", "TMT", "UZS", "AFN", "MMK", "LAK", "KHR",
    "NPR", "LKR", "MVR", "BTN", "MNT", "KPW", "TWD", "MOP", "BND", "FJD", "PGK", "WST",
    "SBD", "TOP", "VUV", "XPF", "ETB", "KES", "TZS", "UGX", "RWF", "BIF", "MGA", "MWK",
    "MZN", "ZMW", "ZWL", "BWP", "NAD", "SZL", "LSL", "GHS", "GMD", "GNF", "LRD", "SLL",
    "XOF", "XAF", "CVE", "STN", "SCR", "MUR", "KMF", "DJF", "ERN", "SSP", "SDG", "MRU",
    "ALL", "MKD", "RSD", "BAM", "BGN", "RON", "MDL", "UAH", "BYN", "PLN", "CZK", "HUF",
    "HRK", "ISK", "CUP", "AOA", "CDF",
})

# Codes that are also ordinary English words; only matched when written in capitals
AMBIGUOUS_CODES: frozenset[str] = frozenset({
    "ALL", "TOP", "CUP", "MOP", "BOB", "PEN", "GEL", "MAD", "NAD", "AMD", "BAM", "LAK",
    "TRY", "CAD",
})

CURRENCY_SYMBOLS: dict[str, str] = {
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "₹": "INR",
    "₩": "KRW",
    "₽": "RUB",
    "₺": "TRY",
    "₦": "NGN",
    "元": "CNY",
}

# Local-currency placeholders that name no ISO code
LOCAL_CURRENCY_PATTERN = re.compile(
    r"\b(?:national|local|domestic)\s+currenc(?:y|ies)\b|\blcu\b", re.IGNORECASE
)

# Order matters: "hundred million" must be tried before "million"
SCALE_TOKENS: list[tuple[Scale, re.Pattern[str]]] = [
    (Scale.TRILLIONS, re.compile(r"\btrillions?\b|\btn\b", re.IGNORECASE)),
    (Scale.HUNDRED_MILLIONS, re.compile(r"\bhundreds?\s+millions?\b|亿", re.IGNORECASE)),
    (Scale.BILLIONS, re.compile(r"\bbillions?\b|\bbn\b|\bbln\b", re.IGNORECASE)),
    (Scale.MILLIONS, re.compile(r"\bmillions?\b|\bmn\b|\bmio\b|\bmln\b", re.IGNORECASE)),
    (Scale.THOUSANDS, re.compile(r"\bthousands?\b|\bk\b|\b000s\b", re.IGNORECASE)),
    (Scale.HUNDREDS, re.compile(r"\bhundreds?\b", re.IGNORECASE)),
    (Scale.ONES, re.compile(r"^\s*(?:ones|units?)\s*$", re.IGNORECASE)),
]

# Physical labels that embed a magnitude word ("thousand tonnes")
COMPOUND_PHYSICAL = re.compile(
    r"\b(?:thousand|million|billion)\s+(?:tonnes?|tons?|barrels?|hectares?|cubic)\b",
    re.IGNORECASE,
)

TIME_TOKENS: list[tuple[TimeScale, re.Pattern[str]]] = [
    (TimeScale.YEAR, re.compile(r"\b(?:per|a|an)\s+year\b|\bannual(?:ly)?\b|\byearly\b|/\s*(?:yr|year|y)\b", re.IGNORECASE)),
    (TimeScale.QUARTER, re.compile(r"\b(?:per|a)\s+quarter\b|\bquarterly\b|/\s*(?:q|qtr|quarter)\b", re.IGNORECASE)),
    (TimeScale.MONTH, re.compile(r"\b(?:per|a)\s+month\b|\bmonthly\b|/\s*(?:mo|mon|month)\b", re.IGNORECASE)),
    (TimeScale.WEEK, re.compile(r"\b(?:per|a)\s+week\b|\bweekly\b|/\s*(?:wk|week)\b", re.IGNORECASE)),
    (TimeScale.DAY, re.compile(r"\b(?:per|a)\s+day\b|\bdaily\b|/\s*(?:d|day)\b", re.IGNORECASE)),
    (TimeScale.HOUR, re.compile(r"\b(?:per|an?)\s+hour\b|\bhourly\b|/\s*(?:h|hr|hour)\b", re.IGNORECASE)),
]

# Database periodicity strings ("Monthly", "Yearly") and bare enum values
PERIODICITY_NAMES: dict[str, TimeScale] = {
    "yearly": TimeScale.YEAR,
    "annual": TimeScale.YEAR,
    "annually": TimeScale.YEAR,
    "year": TimeScale.YEAR,
    "biannually": TimeScale.YEAR,
    "semi-annual": TimeScale.YEAR,
    "semiannual": TimeScale.YEAR,
    "quarterly": TimeScale.QUARTER,
    "quarter": TimeScale.QUARTER,
    "monthly": TimeScale.MONTH,
    "month": TimeScale.MONTH,
    "weekly": TimeScale.WEEK,
    "week": TimeScale.WEEK,
    "daily": TimeScale.DAY,
    "day": TimeScale.DAY,
    "hourly": TimeScale.HOUR,
    "hour": TimeScale.HOUR,
}

TIME_WORDS: dict[str, TimeScale] = {
    "year": TimeScale.YEAR, "yr": TimeScale.YEAR, "annum": TimeScale.YEAR,
    "quarter": TimeScale.QUARTER, "q": TimeScale.QUARTER, "qtr": TimeScale.QUARTER,
    "month": TimeScale.MONTH, "mo": TimeScale.MONTH, "mon": TimeScale.MONTH,
    "week": TimeScale.WEEK, "wk": TimeScale.WEEK,
    "day": TimeScale.DAY, "d": TimeScale.DAY,
    "hour": TimeScale.HOUR, "hr": TimeScale.HOUR, "h": TimeScale.HOUR,
}

# (pattern, normalized label); first match wins
PERCENTAGE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"percent(?:age)?\s+of\s+potential\s+gdp", re.IGNORECASE), "% of potential GDP"),
    (re.compile(r"(?:percent(?:age)?|%)\s+of\s+gdp", re.IGNORECASE), "% of GDP"),
    (re.compile(r"percent(?:age)?\s+change", re.IGNORECASE), "% change"),
    (re.compile(r"percentage\s+points?|\bpp\b", re.IGNORECASE), "pp"),
    (re.compile(r"basis\s+points?|\bbps\b", re.IGNORECASE), "bps"),
    (re.compile(r"percent(?:age)?|%", re.IGNORECASE), "%"),
]

INDEX_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\bindex\b", re.IGNORECASE), "index"),
    (re.compile(r"\bpoints?\b(?!\s+of)", re.IGNORECASE), "points"),
    (re.compile(r"\bdxy\b", re.IGNORECASE), "DXY"),
]

# (pattern, category, normalized label); energy before physical
BASE_UNIT_PATTERNS: list[tuple[re.Pattern[str], UnitCategory, str]] = [
    (re.compile(r"gigawatt[\s-]?hours?|\bgwh\b", re.IGNORECASE), UnitCategory.ENERGY, "GWh"),
    (re.compile(r"megawatt[\s-]?hours?|\bmwh\b", re.IGNORECASE), UnitCategory.ENERGY, "MWh"),
    (re.compile(r"kilowatt[\s-]?hours?|\bkwh\b", re.IGNORECASE), UnitCategory.ENERGY, "kWh"),
    (re.compile(r"terajoules?|\btj\b", re.IGNORECASE), UnitCategory.ENERGY, "TJ"),
    (re.compile(r"megawatts?|\bmw\b", re.IGNORECASE), UnitCategory.ENERGY, "MW"),
    (re.compile(r"celsius|°c\b", re.IGNORECASE), UnitCategory.TEMPERATURE, "celsius"),
    (re.compile(r"fahrenheit|°f\b", re.IGNORECASE), UnitCategory.TEMPERATURE, "fahrenheit"),
    (re.compile(r"\bbbl/d/1k\b|barrels?\s+per\s+day", re.IGNORECASE), UnitCategory.PHYSICAL, "BBL/D/1K"),
    (re.compile(r"\bbarrels?\b|\bbbl\b", re.IGNORECASE), UnitCategory.PHYSICAL, "barrels"),
    (re.compile(r"thousand\s+tonnes|thousand\s+tons", re.IGNORECASE), UnitCategory.PHYSICAL, "thousand tonnes"),
    (re.compile(r"\btonnes?\b|\btons?\b", re.IGNORECASE), UnitCategory.PHYSICAL, "tonnes"),
    (re.compile(r"\bkg\b|kilograms?", re.IGNORECASE), UnitCategory.PHYSICAL, "kg"),
    (re.compile(r"\bkt\b", re.IGNORECASE), UnitCategory.PHYSICAL, "KT"),
    (re.compile(r"\bmm\b|millimet(?:er|re)s?", re.IGNORECASE), UnitCategory.PHYSICAL, "mm"),
    (re.compile(r"\blit(?:er|re)s?\b", re.IGNORECASE), UnitCategory.PHYSICAL, "liters"),
    (re.compile(r"\bgallons?\b", re.IGNORECASE), UnitCategory.PHYSICAL, "gallons"),
    (re.compile(r"cubic\s+feet", re.IGNORECASE), UnitCategory.PHYSICAL, "cubic feet"),
    (re.compile(r"cubic\s+met(?:er|re)s?|\bm3\b|m³", re.IGNORECASE), UnitCategory.PHYSICAL, "m³"),
    (re.compile(r"square\s+met(?:er|re)s?", re.IGNORECASE), UnitCategory.PHYSICAL, "sq meter"),
    (re.compile(r"\bhectares?\b", re.IGNORECASE), UnitCategory.PHYSICAL, "hectares"),
]

COUNT_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"doses?\s+per\s+100\s+people", re.IGNORECASE), "doses per 100 people"),
    (re.compile(r"car\s+registrations?", re.IGNORECASE), "car registrations"),
    (re.compile(r"vehicle\s+registrations?", re.IGNORECASE), "vehicle registrations"),
    (re.compile(r"\bpersons?\b", re.IGNORECASE), "persons"),
    (re.compile(r"\bpeople\b", re.IGNORECASE), "people"),
    (re.compile(r"\bdoses?\b", re.IGNORECASE), "doses"),
    (re.compile(r"\bunits?\b(?!\s+of)", re.IGNORECASE), "units"),
    (re.compile(r"\bdwellings?\b", re.IGNORECASE), "dwellings"),
    (re.compile(r"\bcompan(?:y|ies)\b", re.IGNORECASE), "companies"),
    (re.compile(r"\bindividuals?\b", re.IGNORECASE), "individuals"),
    (re.compile(r"\bhouseholds?\b", re.IGNORECASE), "households"),
    (re.compile(r"\bworkers?\b|\bemployees?\b", re.IGNORECASE), "workers"),
    (re.compile(r"\bstudents?\b", re.IGNORECASE), "students"),
    (re.compile(r"\bvehicles?\b", re.IGNORECASE), "vehicles"),
    (re.compile(r"\bnumber(?:\s+of)?\b|\bcount\b", re.IGNORECASE), "count"),
    (re.compile(r"^\s*(?:days?|weeks?|months?|years?|hours?)\s*$", re.IGNORECASE), "duration"),
]

RATIO_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"per\s+1,?000\s+people", re.IGNORECASE), "per 1000 people"),
    (re.compile(r"per\s+(?:one\s+)?million\s+people", re.IGNORECASE), "per million people"),
    (re.compile(r"\bratio\b", re.IGNORECASE), "ratio"),
    (re.compile(r"^\s*(?:times|x)\s*$", re.IGNORECASE), "times"),
]

# "<CCY>/<something>" or "<CCY> per <something>"
RATIO_SPLIT = re.compile(r"^(?P<num>.+?)\s*(?:/|\bper\b)\s*(?P<den>.+)$", re.IGNORECASE)
