# capacity_fill.py — Second pass: spend leftover line hours on demand shortfalls.

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from calendar_packer import PLACED, CalendarPacker, LineSchedule, PlanItem
from data_loader import Demand
from demand_queue import effective_deadline

logger = logging.getLogger(__name__)


@dataclass
class Shortfall:
    position: int      # index in the prioritized demand list
    demand: Demand
    remaining: float   # tons still missing


def collect_shortfalls(demands: Sequence[Demand], scheduled: Sequence[float], tolerance: float) -> List[Shortfall]:
    out: List[Shortfall] = []
    for position, demand in enumerate(demands):
        missing = demand.quantity - scheduled[position]
        if missing > tolerance:
            out.append(Shortfall(position, demand, missing))
    return out


def run_capacity_fill(
    packer: CalendarPacker,
    line_schedules: Dict[str, LineSchedule],
    shortfalls: List[Shortfall],
    respect_deadlines: bool = False,
) -> List[Tuple[int, PlanItem]]:
    """Backfill shortfalls line by line; returns (demand position, item) in placement order.

    Without *respect_deadlines* a block may land after the demand's deadline
    (never after the horizon end).  Demands due before the horizon start are
    never backfilled.  *shortfalls* is updated in place.
    """
    tol = packer.tol
    horizon_end = packer.horizon_end
    placed: List[Tuple[int, PlanItem]] = []

    for line in packer.data.lines:
        schedule = line_schedules[line.id]
        budget = packer.remaining_hours(schedule, horizon_end)
        if budget <= tol:
            continue
        for shortfall in shortfalls:
            if budget <= tol:
                break
            ref = shortfall.demand.reference_id
            if (line.id, ref) not in packer.data.rate:
                continue
            if shortfall.demand.deadline is not None and shortfall.demand.deadline < packer.horizon_start:
                # overdue before the week starts
                continue
            if respect_deadlines:
                deadline = effective_deadline(shortfall.demand, horizon_end)
            else:
                deadline = horizon_end
            while shortfall.remaining > tol and budget > tol:
                outcome = packer.pack_block(schedule, ref, shortfall.remaining, deadline, max_hours=budget)
                if outcome.status != PLACED:
                    break
                for item in outcome.items:
                    budget -= item.duration
                    placed.append((shortfall.position, item))
                shortfall.remaining -= outcome.quantity
                logger.debug(
                    "fill: line %s +%.1ft %s (%.1fh budget left)", line.id, outcome.quantity, ref, budget
                )
    return placed
