# line_selector.py — Three-tier line choice for a demand's remaining tons.
#
# 1. sticky     the line that first produced this reference, if it can still
#               cover enough of the remaining tons before the deadline
# 2. preferred  the analyzer's preferred line, if it has any room left
# 3. fallback   best remaining line by (rate, setup, capacity, config order)

from __future__ import annotations
import logging
from datetime import date
from typing import AbstractSet, Dict, List, NamedTuple, Optional

from calendar_packer import CalendarPacker, LineSchedule, PlanItem

logger = logging.getLogger(__name__)

STICKY = "sticky"
PREFERRED = "preferred"
FALLBACK = "fallback"


class LineChoice(NamedTuple):
    line_id: str
    rule: str


def sticky_line(reference_id: str, placed_items: List[PlanItem]) -> Optional[str]:
    """Line of the first production block placed for *reference_id*."""
    for item in placed_items:
        if not item.is_setup and item.reference_id == reference_id:
            return item.line_id
    return None


def select_line_for_demand(
    reference_id: str,
    remaining_quantity: float,
    line_schedules: Dict[str, LineSchedule],
    effective_deadline: date,
    placed_items: List[PlanItem],
    preferred_lines: Dict[str, str],
    packer: CalendarPacker,
    stickiness_threshold: float = 0.5,
    excluded: AbstractSet[str] = frozenset(),
) -> Optional[LineChoice]:
    """Pick the line for the next block of *reference_id*, or None when no line qualifies.

    Reads the schedules only; *excluded* holds lines that already failed for
    the current demand.
    """
    data = packer.data
    tol = packer.tol

    def free_hours(line_id: str) -> float:
        return packer.remaining_hours(line_schedules[line_id], effective_deadline)

    sticky = sticky_line(reference_id, placed_items)
    if sticky is not None and sticky not in excluded and sticky in line_schedules:
        if line_schedules[sticky].cursor_date <= effective_deadline:
            achievable = data.rate.get((sticky, reference_id), 0.0) * free_hours(sticky)
            if achievable > tol and achievable >= stickiness_threshold * remaining_quantity:
                logger.debug("%s -> %s (sticky, %.1ft achievable)", reference_id, sticky, achievable)
                return LineChoice(sticky, STICKY)

    preferred = preferred_lines.get(reference_id)
    if (
        preferred is not None
        and preferred not in excluded
        and preferred in line_schedules
        and (preferred, reference_id) in data.rate
        and free_hours(preferred) > tol
    ):
        logger.debug("%s -> %s (preferred)", reference_id, preferred)
        return LineChoice(preferred, PREFERRED)

    ranked = []
    for order, line in enumerate(data.lines):
        if line.id in excluded or line.id not in line_schedules:
            continue
        rate = data.rate.get((line.id, reference_id))
        if not rate:
            continue
        free = free_hours(line.id)
        if free <= tol:
            continue
        schedule = line_schedules[line.id]
        setup = packer.setup_duration(line.id, schedule.last_reference_id, reference_id)
        ranked.append((-rate, setup, -free, order, line.id))
    if not ranked:
        logger.debug("%s: no line with room before %s", reference_id, effective_deadline)
        return None
    best = min(ranked)
    logger.debug("%s -> %s (fallback, %d candidate(s))", reference_id, best[-1], len(ranked))
    return LineChoice(best[-1], FALLBACK)
