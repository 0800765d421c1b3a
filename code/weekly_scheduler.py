# weekly_scheduler.py — Greedy weekly production plan: demands -> setup/production blocks per line.
#
# Flow: compatibility matrix -> prioritized demands -> per demand, pick a line
# and pack blocks until the demand is met or no line qualifies -> capacity
# fill over the leftovers -> per-demand diagnostics.

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Set, Tuple

import pandas as pd

from calendar_packer import PLACED, SETUP_UNFIT, CalendarPacker, PlanItem, week_horizon
from capacity_fill import collect_shortfalls, run_capacity_fill
from compatibility import CompatibilityRow, build_compatibility_matrix, identify_preferred_lines
from data_loader import Data, Params
from demand_queue import DemandOutcome, effective_deadline, sort_demands
from diagnostics import DiagnosticsCollector, check_configuration, report_demand_outcomes, report_setup_unfit
from line_selector import select_line_for_demand

logger = logging.getLogger(__name__)

PLAN_COLUMNS = [
    "date", "line_id", "line_name", "reference_id", "reference_name",
    "quantity", "duration", "start_time", "end_time", "is_setup",
]


@dataclass
class PlanResult:
    plan_items: List[PlanItem] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    outcomes: List[DemandOutcome] = field(default_factory=list)
    horizon: Optional[Tuple[date, date]] = None
    matrix: List[CompatibilityRow] = field(default_factory=list)
    configuration_ok: bool = True


def generate_production_plan(data: Data, year: int, week: int, P: Optional[Params] = None) -> PlanResult:
    """Plan ISO week *week* of *year*. *data* is read, never modified.

    Raises ValueError only for an invalid ISO week; every planning problem is
    reported through the result's errors and warnings.
    """
    P = P or Params()
    tol = float(P.tolerance)
    horizon_start, horizon_end = week_horizon(year, week)
    diag = DiagnosticsCollector()
    result = PlanResult(horizon=(horizon_start, horizon_end))

    if not check_configuration(data, diag):
        result.errors = diag.errors
        result.warnings = diag.warnings
        result.configuration_ok = False
        return result

    matrix = build_compatibility_matrix(data, horizon_start, horizon_end)
    preferred = identify_preferred_lines(matrix)
    demands = sort_demands(data.demands)
    packer = CalendarPacker(data, horizon_start, horizon_end, tol)
    schedules = packer.new_schedules()
    placed: List[PlanItem] = []
    scheduled = [0.0] * len(demands)

    logger.debug("planning %d demand(s) on %d line(s), %s..%s",
                 len(demands), len(data.lines), horizon_start, horizon_end)

    # ── Main pass ───────────────────────────────────────────────────────
    for position, demand in enumerate(demands):
        ref = demand.reference_id
        deadline = effective_deadline(demand, horizon_end)
        remaining = demand.quantity
        failed: Set[str] = set()
        while remaining > tol:
            choice = select_line_for_demand(
                ref, remaining, schedules, deadline, placed, preferred, packer,
                stickiness_threshold=P.stickiness_threshold, excluded=failed,
            )
            if choice is None:
                break
            outcome = packer.pack_block(schedules[choice.line_id], ref, remaining, deadline)
            if outcome.status == PLACED:
                placed.extend(outcome.items)
                remaining -= outcome.quantity
                scheduled[position] += outcome.quantity
                continue
            if outcome.status == SETUP_UNFIT:
                report_setup_unfit(diag, data, ref, choice.line_id, outcome.setup_duration)
            logger.debug("line %s failed for %s (%s)", choice.line_id, ref, outcome.status)
            failed.add(choice.line_id)

    # ── Capacity fill ───────────────────────────────────────────────────
    late: Dict[int, float] = {}
    if P.capacity_fill:
        shortfalls = collect_shortfalls(demands, scheduled, tol)
        for position, item in run_capacity_fill(packer, schedules, shortfalls, P.fill_respect_deadlines):
            placed.append(item)
            if item.is_setup:
                continue
            scheduled[position] += item.quantity
            due = demands[position].deadline
            if due is not None and item.date > due:
                late[position] = late.get(position, 0.0) + item.quantity

    result.outcomes = [
        DemandOutcome(d, scheduled[i], late.get(i, 0.0)) for i, d in enumerate(demands)
    ]
    report_demand_outcomes(diag, data, result.outcomes, tol)

    line_order = {l.id: i for i, l in enumerate(data.lines)}
    result.plan_items = sorted(placed, key=lambda it: (it.date, line_order[it.line_id], it.start_time))
    result.errors = diag.errors
    result.warnings = diag.warnings
    result.matrix = matrix
    return result


def plan_to_frame(plan_items: List[PlanItem], data: Data) -> pd.DataFrame:
    rows = []
    for item in plan_items:
        row = item.to_row()
        row["line_name"] = data.line_name(item.line_id)
        row["reference_name"] = data.reference_name(item.reference_id)
        rows.append(row)
    return pd.DataFrame(rows, columns=PLAN_COLUMNS)
