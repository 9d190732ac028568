"""Domain-specific unit dictionaries consulted when the general parser gives up."""
from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

from ..models.schema import ParsedUnit, UnitCategory
from .parser import parse_unit

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CustomUnit:
    """A domain unit: match pattern, canonical label and optional conversion."""

    pattern: str
    normalized: str
    domain: str = "custom"
    convert_to: str | None = None
    factor: float | None = None

    def matches(self, text: str) -> bool:
        return re.search(self.pattern, text, re.IGNORECASE) is not None


DOMAIN_UNITS: dict[str, dict[str, CustomUnit]] = {
    "emissions": {
        "CO2_tonnes": CustomUnit(r"CO2e?\s*tonnes?|tonnes?\s+(?:of\s+)?CO2e?", "CO2 tonnes", "emissions", "kg", 1000.0),
        "carbon_credits": CustomUnit(r"carbon\s+credits?", "carbon credits", "emissions"),
    },
    "crypto": {
        "BTC": CustomUnit(r"\bBTC\b|bitcoin", "BTC", "crypto"),
        "ETH": CustomUnit(r"\bETH\b|ethereum", "ETH", "crypto"),
        "wei": CustomUnit(r"\bwei\b", "wei", "crypto", "ETH", 1e-18),
        "satoshi": CustomUnit(r"\bsats?\b|satoshis?", "satoshi", "crypto", "BTC", 1e-8),
    },
    "commodities": {
        "gold_oz": CustomUnit(r"gold\s+oz|troy\s+ounces?", "troy oz", "commodities", "grams", 31.1035),
        "crude_barrel": CustomUnit(r"crude\s+barrel|\bWTI\b|\bBrent\b", "barrel", "commodities"),
    },
    "agriculture": {
        "bushels": CustomUnit(r"\bbushels?\b|\bbu\b", "bushels", "agriculture"),
        "short_tons": CustomUnit(r"short\s+tons?", "short tons", "agriculture", "tonnes", 0.907185),
    },
}


class CustomUnitRegistry:
    """Named custom units, matched in registration order."""

    def __init__(self):
        self._units: dict[str, CustomUnit] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._units

    def __len__(self) -> int:
        return len(self._units)

    def get(self, name: str) -> CustomUnit | None:
        return self._units.get(name)

    def register(self, name: str, unit: CustomUnit) -> None:
        re.compile(unit.pattern)  # fail fast on a bad pattern
        self._units[name] = unit

    def register_many(self, units: dict[str, CustomUnit]) -> None:
        for name, unit in units.items():
            self.register(name, unit)

    def load_domain(self, domain: str) -> None:
        if domain not in DOMAIN_UNITS:
            raise KeyError(f"Unknown unit domain: {domain}")
        self.register_many(DOMAIN_UNITS[domain])
        logger.debug("custom_domain_loaded", domain=domain, units=len(DOMAIN_UNITS[domain]))

    def parse(self, text: str | None) -> ParsedUnit | None:
        if not text:
            return None
        for unit in self._units.values():
            if unit.matches(text):
                return ParsedUnit(
                    original=text.strip(),
                    category=UnitCategory.CUSTOM,
                    normalized_label=unit.normalized,
                    domain=unit.domain,
                )
        return None

    def convert(self, value: float, from_unit: str, to_unit: str) -> float | None:
        """Convert between a registered unit and its declared target (either direction).

        Returns ``None`` when no conversion is declared.
        """
        source = self._units.get(from_unit)
        target = self._units.get(to_unit)
        if source and source.factor is not None and source.convert_to == to_unit:
            return value * source.factor
        if target and target.factor is not None and target.convert_to == from_unit:
            return value / target.factor
        return None


def parse_unit_with_custom(text: str | None, registry: CustomUnitRegistry | None = None) -> ParsedUnit:
    """General parser first; the registry only when the general result is unknown."""
    parsed = parse_unit(text)
    if parsed.is_unknown and registry is not None:
        custom = registry.parse(text)
        if custom is not None:
            return custom
    return parsed
