# diagnostics.py — Plan messages, KPIs and capacity diagnostics for the weekly planner.

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from calendar_packer import PlanItem, iter_days
from data_loader import Data
from demand_queue import DemandOutcome, effective_deadline, sort_demands
from helpers.safe_io import safe_write_csv

NO_SETUP_TIMES = "No setup times configured. All reference changes will be instantaneous (0 hours setup)."

# Checked in this order; the first empty collection aborts the run
FATAL_CHECKS = (
    ("lines", "No production lines configured"),
    ("references", "No product references configured"),
    ("throughputs", "No throughput rates configured"),
    ("demands", "No demands to schedule"),
    ("availabilities", "No line availability configured. Please configure which days lines are available."),
)


class IssueKind(str, Enum):
    CONFIGURATION = "configuration"
    CAPACITY = "capacity"
    SETUP_FIT = "setup_fit"
    INFO = "info"


@dataclass(frozen=True)
class Issue:
    kind: IssueKind
    level: str      # "error" | "warning"
    message: str


@dataclass
class DiagnosticsCollector:
    """Ordered errors and warnings for one planning run."""

    issues: List[Issue] = field(default_factory=list)

    def error(self, kind: IssueKind, message: str) -> None:
        self.issues.append(Issue(kind, "error", message))

    def warn(self, kind: IssueKind, message: str) -> None:
        self.issues.append(Issue(kind, "warning", message))

    @property
    def errors(self) -> List[str]:
        return [i.message for i in self.issues if i.level == "error"]

    @property
    def warnings(self) -> List[str]:
        return [i.message for i in self.issues if i.level == "warning"]

    def count(self, kind: IssueKind) -> int:
        return sum(1 for i in self.issues if i.kind == kind)


def check_configuration(data: Data, diag: DiagnosticsCollector) -> bool:
    """Record the first fatal configuration gap; False means nothing can be planned."""
    for attr, message in FATAL_CHECKS:
        if not getattr(data, attr):
            diag.error(IssueKind.CONFIGURATION, message)
            return False
    if not data.setup_times:
        diag.warn(IssueKind.INFO, NO_SETUP_TIMES)
    return True


def report_setup_unfit(diag: DiagnosticsCollector, data: Data, reference_id: str,
                       line_id: str, setup_hours: float) -> None:
    diag.warn(
        IssueKind.SETUP_FIT,
        f"Cannot fit setup time ({setup_hours:.1f}h) for {data.reference_name(reference_id)} "
        f"on line {data.line_name(line_id)}: Insufficient time within the week",
    )


def report_demand_outcomes(diag: DiagnosticsCollector, data: Data,
                           outcomes: Sequence[DemandOutcome], tolerance: float) -> None:
    for o in outcomes:
        d = o.demand
        name = data.reference_name(d.reference_id)
        status = o.status(tolerance)
        if status == "NONE":
            if d.deadline is not None:
                reason = f"No compatible line found or cannot meet deadline of {d.deadline.isoformat()}"
            else:
                reason = "No compatible line found or insufficient throughput configured"
            diag.error(IssueKind.CAPACITY, f"Cannot schedule demand for {name}: {reason}")
        elif status == "PARTIAL":
            if d.deadline is not None:
                reason = f"cannot meet deadline of {d.deadline.isoformat()}"
            else:
                reason = "insufficient capacity within the week"
            diag.warn(
                IssueKind.CAPACITY,
                f"Partial fulfillment for {name}: {o.scheduled:.1f} tons scheduled, "
                f"{o.unmet:.1f} tons unmet ({reason})",
            )
        if o.late_tons > tolerance and d.deadline is not None:
            diag.warn(
                IssueKind.CAPACITY,
                f"Backfilled {o.late_tons:.1f} tons of {name} after its deadline of {d.deadline.isoformat()}",
            )


# ── KPIs ────────────────────────────────────────────────────────────────


def compute_plan_kpis(plan_items: Sequence[PlanItem], data: Data, outcomes: Sequence[DemandOutcome],
                      horizon_start: date, horizon_end: date) -> Dict[str, object]:
    production = [i for i in plan_items if not i.is_setup]
    setups = [i for i in plan_items if i.is_setup]
    total_demand = sum(o.demand.quantity for o in outcomes)
    total_tons = sum(i.quantity for i in production)

    per_line = {}
    days = list(iter_days(horizon_start, horizon_end))
    for line in data.lines:
        configured = sum(data.hours.get((line.id, d.weekday()), 0.0) for d in days)
        used = sum(i.duration for i in plan_items if i.line_id == line.id)
        per_line[line.id] = {
            "hours_used": used,
            "hours_available": configured,
            "utilization_pct": 100.0 * used / configured if configured > 0 else 0.0,
        }

    return {
        "total_production_tons": total_tons,
        "production_hours": sum(i.duration for i in production),
        "setup_hours": sum(i.duration for i in setups),
        "setup_count": len(setups),
        "total_demand_tons": total_demand,
        "fulfilment_pct": 100.0 * total_tons / total_demand if total_demand > 0 else 0.0,
        "lines": per_line,
    }


def kpi_lines(kpis: Dict[str, object], data: Data) -> List[str]:
    out = [
        f"Total production: {kpis['total_production_tons']:.1f} t",
        f"Production hours: {kpis['production_hours']:.1f} h",
        f"Setup hours: {kpis['setup_hours']:.1f} h ({kpis['setup_count']} setups)",
        f"Total demand: {kpis['total_demand_tons']:.1f} t",
        f"Fulfilment: {kpis['fulfilment_pct']:.1f}%",
    ]
    for line_id, v in kpis["lines"].items():
        out.append(
            f"Line {data.line_name(line_id)}: {v['hours_used']:.1f}/{v['hours_available']:.1f} h "
            f"({v['utilization_pct']:.1f}%)"
        )
    return out


def fulfilment_frame(outcomes: Sequence[DemandOutcome], data: Data, tolerance: float) -> pd.DataFrame:
    """One row per demand in priority order: requested vs scheduled tons."""
    rows = [
        {
            "reference_id": o.demand.reference_id,
            "reference_name": data.reference_name(o.demand.reference_id),
            "deadline": o.demand.deadline.isoformat() if o.demand.deadline else "",
            "quantity": o.demand.quantity,
            "scheduled": o.scheduled,
            "unmet": o.unmet,
            "late_tons": o.late_tons,
            "status": o.status(tolerance),
        }
        for o in outcomes
    ]
    cols = ["reference_id", "reference_name", "deadline", "quantity", "scheduled", "unmet", "late_tons", "status"]
    return pd.DataFrame(rows, columns=cols)


# ── Capacity diagnostic ─────────────────────────────────────────────────


def run_capacity_diagnostic(data: Data, horizon_start: date, horizon_end: date,
                            data_dir: Optional[Path] = None) -> pd.DataFrame:
    """Per demand: tons each compatible line could make before the deadline on an empty calendar.

    Writes diag_demand_linecap.csv into *data_dir* when given.
    """
    rows = []
    for d in sort_demands(data.demands):
        last = effective_deadline(d, horizon_end)
        caps = []
        for line in data.lines:
            rate = data.rate.get((line.id, d.reference_id))
            if not rate:
                continue
            hours = sum(data.hours.get((line.id, day.weekday()), 0.0) for day in iter_days(horizon_start, last))
            if hours <= 0:
                continue
            caps.append((line.id, rate * hours))
        caps.sort(key=lambda x: x[1], reverse=True)
        ub_all = sum(v for _, v in caps)
        rows.append(
            dict(
                reference_id=d.reference_id,
                reference_name=data.reference_name(d.reference_id),
                quantity=d.quantity,
                deadline=d.deadline.isoformat() if d.deadline else "",
                lines_all=len(caps),
                best_line=caps[0][0] if caps else "",
                ub_tons_best=caps[0][1] if caps else 0.0,
                ub_tons_all=ub_all,
                shortfall_vs_ub=max(0.0, d.quantity - ub_all),
            )
        )
    cols = ["reference_id", "reference_name", "quantity", "deadline", "lines_all",
            "best_line", "ub_tons_best", "ub_tons_all", "shortfall_vs_ub"]
    df = pd.DataFrame(rows, columns=cols)
    if data_dir is not None:
        safe_write_csv(df, Path(data_dir) / "diag_demand_linecap.csv")
    return df
