# validate_schedule.py -- Post-plan validation for weekly line plans.
# Checks: daily capacity, no overlaps, rate consistency, no over-production,
# setup marker before every reference switch.
# Run standalone on plan_items.csv or import validate_plan() / validate_all().

from __future__ import annotations
import argparse
import sys
from pathlib import Path
from typing import Dict, List

BASE_DIR = Path(__file__).resolve().parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

import pandas as pd

from data_loader import Data, Files
from helpers.safe_io import safe_write_text

# Stored times are truncated to whole seconds
TIME_SLACK = pd.Timedelta(seconds=1)


def _truthy(v) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in ("true", "1", "yes")
    return bool(v)


def prepare_plan(plan: pd.DataFrame) -> pd.DataFrame:
    """Normalize column types of a plan frame (as built in memory or read back from CSV)."""
    df = plan.copy()
    df["line_id"] = df["line_id"].astype(str)
    df["reference_id"] = df["reference_id"].astype(str)
    df["date"] = pd.to_datetime(df["date"]).dt.date
    df["start_time"] = pd.to_datetime(df["start_time"])
    df["end_time"] = pd.to_datetime(df["end_time"])
    df["quantity"] = pd.to_numeric(df["quantity"], errors="coerce").fillna(0.0)
    df["duration"] = pd.to_numeric(df["duration"], errors="coerce").fillna(0.0)
    df["is_setup"] = df["is_setup"].map(_truthy)
    return df


def _line_label(grp: pd.DataFrame, line_id) -> str:
    if "line_name" in grp.columns and len(grp):
        return str(grp.iloc[0]["line_name"])
    return str(line_id)


# ---------------------------------------------------------------------------
# Check 1: hours per line/date within configured availability
# ---------------------------------------------------------------------------
def check_daily_capacity(df: pd.DataFrame, data: Data, tol: float = 1e-6) -> List[str]:
    issues: List[str] = []
    for (line_id, day), grp in df.groupby(["line_id", "date"], sort=True):
        used = float(grp["duration"].sum())
        allowed = data.hours.get((line_id, day.weekday()), 0.0)
        if used > allowed + tol:
            issues.append(
                f"CAPACITY: Line {_line_label(grp, line_id)} on {day.isoformat()} uses {used:.2f}h "
                f"of {allowed:.2f}h available"
            )
    if not issues:
        issues.append("CAPACITY: All lines within daily availability. OK.")
    return issues


# ---------------------------------------------------------------------------
# Check 2: no overlapping blocks on the same line
# ---------------------------------------------------------------------------
def check_no_overlaps(df: pd.DataFrame) -> List[str]:
    issues: List[str] = []
    for line_id, grp in df.groupby("line_id"):
        rows = grp.sort_values("start_time", kind="mergesort").to_dict("records")
        for i in range(len(rows) - 1):
            a = rows[i]
            b = rows[i + 1]
            if b["start_time"] + TIME_SLACK < a["end_time"]:
                issues.append(
                    f"OVERLAP: Line {a.get('line_name', line_id)} -- "
                    f"{a['reference_id']} ends at {a['end_time']} but {b['reference_id']} starts at {b['start_time']}"
                )
    if not issues:
        issues.append("OVERLAPS: No overlaps detected. OK.")
    return issues


# ---------------------------------------------------------------------------
# Check 3: production quantity == duration x rate
# ---------------------------------------------------------------------------
def check_rate_consistency(df: pd.DataFrame, data: Data, tol: float = 1e-6) -> List[str]:
    issues: List[str] = []
    for _, r in df[~df["is_setup"]].iterrows():
        rate = data.rate.get((r["line_id"], r["reference_id"]))
        if rate is None:
            issues.append(f"RATE: Line {r['line_id']} has no throughput for {r['reference_id']}")
            continue
        expected = float(r["duration"]) * rate
        if abs(float(r["quantity"]) - expected) > max(tol, 1e-6 * expected):
            issues.append(
                f"RATE: Line {r['line_id']} {r['reference_id']} on {r['date']}: "
                f"{float(r['quantity']):.3f}t != {float(r['duration']):.3f}h x {rate:g}t/h"
            )
    for _, r in df[df["is_setup"]].iterrows():
        if abs(float(r["quantity"])) > tol:
            issues.append(f"RATE: setup on line {r['line_id']} carries {float(r['quantity']):.3f}t")
    if not issues:
        issues.append("RATE: All production quantities match duration x rate. OK.")
    return issues


# ---------------------------------------------------------------------------
# Check 4: no reference produced beyond its total demand
# ---------------------------------------------------------------------------
def check_no_overproduction(df: pd.DataFrame, data: Data, tol: float = 1e-6) -> List[str]:
    issues: List[str] = []
    demanded: Dict[str, float] = {}
    for d in data.demands:
        demanded[d.reference_id] = demanded.get(d.reference_id, 0.0) + d.quantity
    produced = df[~df["is_setup"]].groupby("reference_id")["quantity"].sum()
    for ref, qty in produced.items():
        limit = demanded.get(ref, 0.0)
        if float(qty) > limit + tol:
            issues.append(f"OVER: {ref} produced={float(qty):.3f}t > demand={limit:.3f}t")
    if not issues:
        issues.append("OVERPRODUCTION: No reference exceeds its demand. OK.")
    return issues


# ---------------------------------------------------------------------------
# Check 5: setup marker directly before every reference switch on a line
# ---------------------------------------------------------------------------
def check_setup_markers(df: pd.DataFrame) -> List[str]:
    issues: List[str] = []
    for line_id, grp in df.groupby("line_id"):
        rows = grp.sort_values(["start_time"], kind="mergesort").to_dict("records")
        last_ref = None
        prev = None
        for r in rows:
            if not r["is_setup"]:
                if last_ref is not None and r["reference_id"] != last_ref:
                    ok = prev is not None and prev["is_setup"] and prev["reference_id"] == r["reference_id"]
                    if not ok:
                        issues.append(
                            f"SETUP: Line {r.get('line_name', line_id)} -- switch {last_ref}->{r['reference_id']} "
                            f"at {r['start_time']} has no setup marker"
                        )
                last_ref = r["reference_id"]
            prev = r
    if not issues:
        issues.append("SETUPS: Every reference switch has a setup marker. OK.")
    return issues


# ---------------------------------------------------------------------------
# Summary report
# ---------------------------------------------------------------------------
def validate_plan(plan: pd.DataFrame, data: Data, tol: float = 1e-6) -> List[str]:
    """Run all checks over *plan* and return the report lines."""
    report: List[str] = ["=" * 60, "Weekly Plan Validation Report", "=" * 60, ""]
    if plan.empty:
        report.extend(["Plan is empty; nothing to validate.", ""])
        sections = []
    else:
        df = prepare_plan(plan)
        sections = [
            ("Daily Capacity", check_daily_capacity(df, data, tol)),
            ("Overlaps", check_no_overlaps(df)),
            ("Rate Consistency", check_rate_consistency(df, data, tol)),
            ("Over-production", check_no_overproduction(df, data, tol)),
            ("Setup Markers", check_setup_markers(df)),
        ]
    all_issues: List[str] = []
    for title, issues in sections:
        report.append(f"--- {title} ---")
        report.extend(issues)
        report.append("")
        all_issues.extend(issues)

    n_ok = sum(1 for i in all_issues if i.endswith("OK."))
    n_problems = sum(1 for i in all_issues if not i.endswith("OK."))
    report.append("=" * 60)
    report.append(f"Checks passed: {n_ok}/{len(sections)}    Issues found: {n_problems}")
    report.append("=" * 60)
    return report


def validate_all(data_dir: Path, verbose: bool = True) -> List[str]:
    """Validate data_dir/plan_items.csv against the input CSVs; writes validation_report.txt."""
    data_dir = Path(data_dir)
    plan_path = data_dir / "plan_items.csv"
    if not plan_path.exists():
        report = [f"MISSING: {plan_path}"]
    else:
        data = Data(Files(data_dir))
        data.load()
        plan = pd.read_csv(plan_path, dtype={"line_id": str, "reference_id": str})
        report = validate_plan(plan, data)

    safe_write_text(report, data_dir / "validation_report.txt")
    if verbose:
        for line in report:
            print(line)
    return report


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def main() -> None:
    parser = argparse.ArgumentParser(description="Validate a weekly plan (plan_items.csv).")
    parser.add_argument("--data-dir", type=Path, default=None, help="Data directory")
    args = parser.parse_args()
    data_dir = args.data_dir.resolve() if args.data_dir else BASE_DIR.parent / "data"
    validate_all(data_dir)


if __name__ == "__main__":
    main()
