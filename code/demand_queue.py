# demand_queue.py — Demand priority order, effective deadlines and per-demand outcomes.

from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Tuple

from data_loader import Demand


def _priority_key(d: Demand) -> Tuple[bool, date, float]:
    # Dated demands first (earliest first), then larger quantities
    return (d.deadline is None, d.deadline or date.max, -d.quantity)


def sort_demands(demands: Iterable[Demand]) -> List[Demand]:
    """Stable priority order; the input is left untouched."""
    return sorted(demands, key=_priority_key)


def effective_deadline(demand: Demand, horizon_end: date) -> date:
    if demand.deadline is None:
        return horizon_end
    return min(demand.deadline, horizon_end)


@dataclass
class DemandOutcome:
    demand: Demand
    scheduled: float = 0.0
    late_tons: float = 0.0   # backfilled after the demand's deadline

    @property
    def unmet(self) -> float:
        return max(0.0, self.demand.quantity - self.scheduled)

    def status(self, tolerance: float = 1e-6) -> str:
        if self.scheduled <= tolerance:
            return "NONE"
        if self.unmet > tolerance:
            return "PARTIAL"
        return "FULL"
