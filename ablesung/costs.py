from __future__ import annotations

import math
from typing import Dict, Iterable, Mapping

from .models import ConsumptionResult

# Default prices per unit (EUR) used for cost estimation.
PRICE_DEFAULTS: Dict[str, float] = {
    "electricity": 0.32,
    "gas": 0.12,
    "water_cold": 4.50,
    "water_hot": 8.00,
    "heating": 0.10,
    "district_heating": 0.10,
    "oil": 1.10,
    "pellets": 0.35,
}

UNIT_LABELS: Dict[str, str] = {
    "electricity": "kWh",
    "gas": "m³",
    "water_cold": "m³",
    "water_hot": "m³",
    "heating": "kWh",
    "district_heating": "kWh",
    "oil": "Liter",
    "pellets": "kg",
}

DEFAULT_UNIT_LABEL = "kWh"


def unit_label_for(meter_type: str, unit_labels: Mapping[str, str] = UNIT_LABELS) -> str:
    return unit_labels.get(meter_type, DEFAULT_UNIT_LABEL)


def price_for(meter_type: str, prices: Mapping[str, float] = PRICE_DEFAULTS) -> float:
    """Price per unit for a meter type; types without a default price cost nothing."""

    return prices.get(meter_type, 0.0)


def estimate_cost(
    consumption: float | None,
    meter_type: str,
    prices: Mapping[str, float] = PRICE_DEFAULTS,
) -> float | None:
    """Estimated cost in EUR, rounded to cents, or None when consumption is unknown."""

    if consumption is None:
        return None
    return round_half_up(consumption * price_for(meter_type, prices), 2)


def total_cost(results: Iterable[ConsumptionResult]) -> float:
    return round_half_up(sum(item.estimated_cost or 0.0 for item in results), 2)


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for positive values, as billing figures expect."""

    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor
