"""Test unit string parsing across categories, scales and periods."""
import pytest

from econ_normalizer.models.schema import Scale, TimeScale, UnitCategory
from econ_normalizer.units.parser import (
    extract_currency,
    is_monetary_unit,
    parse_scale,
    parse_time_scale,
    parse_unit,
    time_suffix,
)


class TestCategories:
    @pytest.mark.parametrize("unit,label", [
        ("%", "%"),
        ("percent", "%"),
        ("Percent of GDP", "% of GDP"),
        ("% of GDP", "% of GDP"),
        ("basis points", "bps"),
        ("percentage points", "pp"),
    ])
    def test_percentage(self, unit, label):
        parsed = parse_unit(unit)
        assert parsed.category == UnitCategory.PERCENTAGE
        assert parsed.normalized_label == label

    def test_index(self):
        parsed = parse_unit("Index Points")
        assert parsed.category == UnitCategory.INDEX
        assert parsed.normalized_label == "index"

    def test_points_is_index(self):
        assert parse_unit("Points").category == UnitCategory.INDEX

    def test_currency_amount(self):
        parsed = parse_unit("USD Million")
        assert parsed.category == UnitCategory.CURRENCY_AMOUNT
        assert parsed.currency == "USD"
        assert parsed.scale == Scale.MILLIONS
        assert parsed.time_scale is None

    def test_currency_with_period(self):
        parsed = parse_unit("EUR Millions per Quarter")
        assert parsed.currency == "EUR"
        assert parsed.scale == Scale.MILLIONS
        assert parsed.time_scale == TimeScale.QUARTER

    def test_currency_symbol(self):
        parsed = parse_unit("$ Billion")
        assert parsed.currency == "USD"
        assert parsed.scale == Scale.BILLIONS

    def test_national_currency_placeholder(self):
        parsed = parse_unit("National currency")
        assert parsed.category == UnitCategory.CURRENCY_AMOUNT
        assert parsed.currency == "UNKNOWN"
        assert parsed.has_known_currency is False

    def test_currency_pair_is_fx_ratio(self):
        parsed = parse_unit("PKR/USD")
        assert parsed.category == UnitCategory.FX_RATIO
        assert parsed.currency == "PKR"
        assert parsed.denominator == "USD"
        assert parsed.normalized_label == "PKR/USD"

    def test_currency_per_physical_unit(self):
        parsed = parse_unit("USD/Liter")
        assert parsed.category == UnitCategory.CURRENCY_AMOUNT
        assert parsed.currency == "USD"
        assert parsed.denominator == "liter"

    @pytest.mark.parametrize("unit,category,label", [
        ("Celsius", UnitCategory.TEMPERATURE, "celsius"),
        ("GWh", UnitCategory.ENERGY, "GWh"),
        ("Thousand Tonnes", UnitCategory.PHYSICAL, "thousand tonnes"),
        ("mm", UnitCategory.PHYSICAL, "mm"),
    ])
    def test_physical_vocabulary(self, unit, category, label):
        parsed = parse_unit(unit)
        assert parsed.category == category
        assert parsed.normalized_label == label

    def test_compound_physical_has_no_scale(self):
        assert parse_unit("Thousand Tonnes").scale is None

    @pytest.mark.parametrize("unit,scale,label", [
        ("Million Barrels", Scale.MILLIONS, "barrels"),
        ("Million Tonnes", Scale.MILLIONS, "tonnes"),
        ("Thousand Hectares", Scale.THOUSANDS, "hectares"),
    ])
    def test_compound_physical_keeps_magnitude(self, unit, scale, label):
        parsed = parse_unit(unit)
        assert parsed.category == UnitCategory.PHYSICAL
        assert parsed.scale == scale
        assert parsed.normalized_label == label

    def test_barrels_per_day(self):
        parsed = parse_unit("BBL/D/1K")
        assert parsed.category == UnitCategory.PHYSICAL
        assert parsed.time_scale == TimeScale.DAY

    def test_bare_scale_is_count(self):
        parsed = parse_unit("Thousands")
        assert parsed.category == UnitCategory.COUNT
        assert parsed.scale == Scale.THOUSANDS
        assert parsed.normalized_label is None

    def test_units_is_count_in_ones(self):
        parsed = parse_unit("Units")
        assert parsed.category == UnitCategory.COUNT
        assert parsed.scale == Scale.ONES

    def test_count_with_label(self):
        parsed = parse_unit("Thousand Persons")
        assert parsed.category == UnitCategory.COUNT
        assert parsed.scale == Scale.THOUSANDS
        assert parsed.normalized_label == "persons"

    def test_per_capita_ratio(self):
        parsed = parse_unit("per 1000 people")
        assert parsed.category == UnitCategory.RATIO

    def test_hundred_million_locale_unit(self):
        parsed = parse_unit("亿元")
        assert parsed.currency == "CNY"
        assert parsed.scale == Scale.HUNDRED_MILLIONS

    def test_unknown(self):
        assert parse_unit("widgets").is_unknown
        assert parse_unit("").is_unknown
        assert parse_unit(None).is_unknown

    def test_deterministic(self):
        assert parse_unit("EUR Billion") == parse_unit("EUR Billion")


class TestScale:
    @pytest.mark.parametrize("text,expected", [
        ("Millions", Scale.MILLIONS),
        ("bn", Scale.BILLIONS),
        ("USD Trillion", Scale.TRILLIONS),
        ("hundred-millions", Scale.HUNDRED_MILLIONS),
        ("Hundred million CNY", Scale.HUNDRED_MILLIONS),
        ("Hundreds", Scale.HUNDREDS),
        ("ones", Scale.ONES),
    ])
    def test_scale_words(self, text, expected):
        assert parse_scale(text) == expected

    def test_no_scale(self):
        assert parse_scale("Bills") is None
        assert parse_scale(None) is None


class TestTimeScale:
    @pytest.mark.parametrize("text,expected", [
        ("Monthly", TimeScale.MONTH),
        ("Yearly", TimeScale.YEAR),
        ("Annual", TimeScale.YEAR),
        ("Quarterly", TimeScale.QUARTER),
        ("quarter", TimeScale.QUARTER),
        ("months", TimeScale.MONTH),
        ("USD per week", TimeScale.WEEK),
        ("EUR/yr", TimeScale.YEAR),
    ])
    def test_periods(self, text, expected):
        assert parse_time_scale(text) == expected

    def test_unrecognised(self):
        assert parse_time_scale("sometimes") is None
        assert parse_time_scale("") is None

    def test_time_suffix(self):
        assert time_suffix("USD Million per Year") == "per year"
        assert time_suffix("USD Million") is None


class TestCurrencyExtraction:
    def test_iso_code(self):
        assert extract_currency("EUR Billion") == "EUR"

    def test_ambiguous_word_needs_capitals(self):
        assert extract_currency("all items") is None
        assert extract_currency("ALL Million") == "ALL"

    def test_local_currency(self):
        assert extract_currency("Billions of national currency") == "UNKNOWN"
        assert extract_currency("LCU") == "UNKNOWN"

    def test_is_monetary_unit(self):
        assert is_monetary_unit("GBP Thousand") is True
        assert is_monetary_unit("%") is False
