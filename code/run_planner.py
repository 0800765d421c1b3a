# run_planner.py — Weekly line planner CLI: load configuration, plan one ISO week, write outputs.

from __future__ import annotations
import argparse
import logging
import sys
import traceback
from dataclasses import replace
from datetime import datetime
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))
from typing import List, Optional, Tuple

from calendar_packer import week_horizon
from compatibility import matrix_frame
from data_loader import Data, Files, Params, find_config, load_params, params_to_toml
from diagnostics import compute_plan_kpis, fulfilment_frame, kpi_lines, run_capacity_diagnostic
from helpers.safe_io import safe_write_csv, safe_write_text, safe_write_toml
from validate_schedule import validate_plan
from weekly_scheduler import PlanResult, generate_production_plan, plan_to_frame

LOG_NAME = "planner_log.txt"
KPI_NAME = "plan_kpis.txt"


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Weekly production-line planner (greedy, one ISO week)."
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory for input CSVs and output files (default: ../data next to this script)",
    )
    parser.add_argument(
        "--snapshot",
        type=Path,
        default=None,
        help="Load the configuration from a JSON snapshot instead of the CSVs in --data-dir",
    )
    parser.add_argument("--year", type=int, default=None, help="ISO year to plan (default: planner.toml)")
    parser.add_argument("--week", type=int, default=None, help="ISO week to plan (default: planner.toml)")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to planner.toml (default: data-dir/../planner.toml, then data-dir/planner.toml)",
    )
    parser.add_argument(
        "--stickiness-threshold",
        type=float,
        default=None,
        help="Share of the remaining tons the last line must still cover to keep the demand (0..1)",
    )
    parser.add_argument(
        "--fill-respect-deadlines",
        action="store_true",
        help="Do not backfill shortfalls after their deadline",
    )
    parser.add_argument(
        "--no-capacity-fill",
        action="store_true",
        help="Skip the capacity-fill pass over leftover line hours",
    )
    parser.add_argument("--no-validate", action="store_true", help="Skip post-plan validation")
    parser.add_argument(
        "--diagnose",
        action="store_true",
        help="Write the per-demand capacity diagnostic only (diag_demand_linecap.csv)",
    )
    parser.add_argument(
        "--write-config",
        action="store_true",
        help="Save the effective parameters back to the config file",
    )
    parser.add_argument("--verbose", action="store_true", help="Log engine decisions to stderr")
    return parser.parse_args(argv)


def reset_log(data_dir: Path) -> None:
    try:
        (data_dir / LOG_NAME).unlink(missing_ok=True)
    except OSError:
        pass


def log(data_dir: Path, msg: str) -> None:
    try:
        with open(data_dir / LOG_NAME, "a", encoding="utf-8") as f:
            f.write(msg.rstrip() + "\n")
    except OSError:
        pass


def write_kpi_lines(data_dir: Path, lines: List[str]) -> None:
    safe_write_text(lines, data_dir / KPI_NAME)


def _apply_overrides(P: Params, args: argparse.Namespace) -> Params:
    changes = {}
    if args.year is not None:
        changes["plan_year"] = args.year
    if args.week is not None:
        changes["plan_week"] = args.week
    if args.stickiness_threshold is not None:
        changes["stickiness_threshold"] = args.stickiness_threshold
    if args.fill_respect_deadlines:
        changes["fill_respect_deadlines"] = True
    if args.no_capacity_fill:
        changes["capacity_fill"] = False
    if args.no_validate:
        changes["validate"] = False
    P = replace(P, **changes)
    P.check()
    return P


def _target_week(P: Params) -> Tuple[int, int]:
    if P.plan_year is None or P.plan_week is None:
        raise ValueError("no target week: pass --year and --week or set plan_year/plan_week in planner.toml")
    return int(P.plan_year), int(P.plan_week)


def write_outputs(result: PlanResult, data: Data, P: Params, data_dir: Path) -> None:
    """plan_items.csv, demand_fulfilment.csv, compatibility.csv, plan_messages.txt, plan_kpis.txt."""
    plan = plan_to_frame(result.plan_items, data)
    safe_write_csv(plan, data_dir / "plan_items.csv")
    safe_write_csv(fulfilment_frame(result.outcomes, data, P.tolerance), data_dir / "demand_fulfilment.csv")
    safe_write_csv(matrix_frame(result.matrix, data), data_dir / "compatibility.csv")
    messages = [f"ERROR: {e}" for e in result.errors] + [f"WARNING: {w}" for w in result.warnings]
    safe_write_text(messages, data_dir / "plan_messages.txt")

    if not result.configuration_ok:
        write_kpi_lines(data_dir, ["Status: FAILED — " + "; ".join(result.errors)])
        return
    start, end = result.horizon
    kpis = compute_plan_kpis(result.plan_items, data, result.outcomes, start, end)
    status = "OK" if not result.errors and not result.warnings else "OK (with messages)"
    header = [
        f"Status: {status}",
        f"Week: {start.isoformat()} .. {end.isoformat()}",
        f"Errors: {len(result.errors)}  Warnings: {len(result.warnings)}",
    ]
    write_kpi_lines(data_dir, header + kpi_lines(kpis, data))

    if P.validate:
        report = validate_plan(plan, data, P.tolerance)
        safe_write_text(report, data_dir / "validation_report.txt")


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    data_dir = args.data_dir.resolve() if args.data_dir is not None else BASE_DIR.parent / "data"
    config_path = args.config if args.config is not None else find_config(data_dir)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    reset_log(data_dir)
    try:
        P = _apply_overrides(load_params(config_path), args)
        year, week = _target_week(P)
        log(
            data_dir,
            f"[{datetime.now()}] START week={year}-W{week:02d} sticky={P.stickiness_threshold} "
            f"fill={P.capacity_fill} respectDeadlines={P.fill_respect_deadlines} config={config_path}",
        )
        if args.snapshot is not None:
            data = Data.from_snapshot(args.snapshot)
        else:
            data = Data(Files(data_dir))
            data.load()
        log(
            data_dir,
            f"loaded lines={len(data.lines)} references={len(data.references)} "
            f"throughputs={len(data.throughputs)} demands={len(data.demands)}",
        )
        if args.write_config:
            safe_write_toml(params_to_toml(P), config_path)
            log(data_dir, f"config written to {config_path}")

        if args.diagnose:
            start, end = week_horizon(year, week)
            run_capacity_diagnostic(data, start, end, data_dir)
            write_kpi_lines(data_dir, ["Status: DIAG COMPLETE (see diag_demand_linecap.csv)"])
            return 0

        result = generate_production_plan(data, year, week, P)
        write_outputs(result, data, P, data_dir)
        log(
            data_dir,
            f"[{datetime.now()}] DONE items={len(result.plan_items)} "
            f"errors={len(result.errors)} warnings={len(result.warnings)}",
        )
        return 0 if result.configuration_ok else 1
    except Exception:
        log(data_dir, "\n=== FATAL ERROR ===\n" + traceback.format_exc())
        write_kpi_lines(data_dir, [f"Status: ERROR — see {LOG_NAME}"])
        return 1


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
