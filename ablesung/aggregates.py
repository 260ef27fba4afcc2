from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List

from .costs import total_cost
from .models import ConsumptionResult, TypeSummary


def summarize_by_type(results: Iterable[ConsumptionResult]) -> Dict[str, TypeSummary]:
    """Aggregate consumption and cost per meter type.

    Every meter counts towards ``meter_count``; only meters with known
    consumption contribute to the totals.
    """

    grouped: Dict[str, List[ConsumptionResult]] = defaultdict(list)
    for item in results:
        grouped[item.meter_type].append(item)

    summaries: Dict[str, TypeSummary] = {}
    for meter_type, items in grouped.items():
        known = [item for item in items if item.consumption is not None]
        summaries[meter_type] = TypeSummary(
            meter_type=meter_type,
            total_consumption=sum(item.consumption for item in known),
            total_cost=total_cost(known),
            unit_label=items[0].unit_label,
            meter_count=len(items),
        )
    return summaries


def group_by_unit(results: Iterable[ConsumptionResult]) -> Dict[str | None, List[ConsumptionResult]]:
    grouped: Dict[str | None, List[ConsumptionResult]] = defaultdict(list)
    for item in results:
        grouped[item.unit_id].append(item)
    return dict(grouped)
