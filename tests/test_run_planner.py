"""End-to-end tests for the run_planner CLI."""

import json

import pandas as pd
import pytest

import run_planner
from data_loader import load_params
from plan_builders import write_csv_dir

FILES = {
    "lines.csv": "line_id,line_name\nL1,Line One\nL2,Line Two\n",
    "references.csv": "reference_id,reference_name\nA,Film\nB,Pellet\n",
    "throughputs.csv": "line_id,reference_id,rate_tph\nL1,A,10\nL1,B,8\nL2,B,12\n",
    "availability.csv": "line_id,day_of_week,hours_available\n"
    + "".join(f"L1,{d},16\nL2,{d},16\n" for d in range(5)),
    "setup_times.csv": "line_id,from_reference_id,to_reference_id,setup_hours\nL1,A,B,2\nL1,B,A,2\n",
    "demands.csv": "reference_id,quantity_tons,deadline\nA,300,2026-10-14\nB,400,\n",
}


@pytest.fixture
def data_dir(tmp_path):
    return write_csv_dir(tmp_path / "data", FILES)


def _read(path):
    return path.read_text(encoding="utf-8").splitlines()


class TestRunPlanner:

    def test_full_run(self, data_dir):
        assert run_planner.main(["--data-dir", str(data_dir), "--year", "2026", "--week", "42"]) == 0
        plan = pd.read_csv(data_dir / "plan_items.csv", dtype={"line_id": str, "reference_id": str})
        produced = plan[~plan["is_setup"]].groupby("reference_id")["quantity"].sum()
        assert produced["A"] == pytest.approx(300)
        assert produced["B"] == pytest.approx(400)
        assert _read(data_dir / "plan_kpis.txt")[0] == "Status: OK"
        assert "Checks passed: 5/5    Issues found: 0" in _read(data_dir / "validation_report.txt")
        fulfil = pd.read_csv(data_dir / "demand_fulfilment.csv")
        assert fulfil["status"].tolist() == ["FULL", "FULL"]
        assert (data_dir / "compatibility.csv").exists()
        assert _read(data_dir / "plan_messages.txt") == []
        assert "START week=2026-W42" in (data_dir / "planner_log.txt").read_text(encoding="utf-8")

    def test_week_from_config(self, data_dir):
        (data_dir.parent / "planner.toml").write_text(
            "[planner]\nplan_year = 2026\nplan_week = 42\nvalidate = false\n", encoding="utf-8"
        )
        assert run_planner.main(["--data-dir", str(data_dir)]) == 0
        assert (data_dir / "plan_items.csv").exists()
        assert not (data_dir / "validation_report.txt").exists()

    def test_missing_week_is_an_error(self, data_dir):
        assert run_planner.main(["--data-dir", str(data_dir)]) == 1
        assert "FATAL ERROR" in (data_dir / "planner_log.txt").read_text(encoding="utf-8")
        assert _read(data_dir / "plan_kpis.txt")[0].startswith("Status: ERROR")

    def test_bad_input_row_is_an_error(self, data_dir):
        (data_dir / "throughputs.csv").write_text("line_id,reference_id,rate_tph\nL1,A,-3\n", encoding="utf-8")
        assert run_planner.main(["--data-dir", str(data_dir), "--year", "2026", "--week", "42"]) == 1
        assert "rate must be > 0" in (data_dir / "planner_log.txt").read_text(encoding="utf-8")

    def test_fatal_configuration(self, data_dir):
        (data_dir / "demands.csv").unlink()
        assert run_planner.main(["--data-dir", str(data_dir), "--year", "2026", "--week", "42"]) == 1
        assert _read(data_dir / "plan_messages.txt") == ["ERROR: No demands to schedule"]
        assert _read(data_dir / "plan_kpis.txt")[0].startswith("Status: FAILED")

    def test_unmet_demand_still_succeeds(self, data_dir):
        (data_dir / "demands.csv").write_text("reference_id,quantity_tons,deadline\nA,5000,\n", encoding="utf-8")
        assert run_planner.main(["--data-dir", str(data_dir), "--year", "2026", "--week", "42"]) == 0
        messages = _read(data_dir / "plan_messages.txt")
        assert messages[0].startswith("WARNING: Partial fulfillment for Film:")

    def test_diagnose_only(self, data_dir):
        args = ["--data-dir", str(data_dir), "--year", "2026", "--week", "42", "--diagnose"]
        assert run_planner.main(args) == 0
        assert (data_dir / "diag_demand_linecap.csv").exists()
        assert not (data_dir / "plan_items.csv").exists()
        assert _read(data_dir / "plan_kpis.txt")[0].startswith("Status: DIAG COMPLETE")

    def test_write_config(self, data_dir, tmp_path):
        config = tmp_path / "custom.toml"
        args = ["--data-dir", str(data_dir), "--config", str(config), "--year", "2026", "--week", "42",
                "--stickiness-threshold", "0.8", "--no-capacity-fill", "--write-config"]
        assert run_planner.main(args) == 0
        P = load_params(config)
        assert (P.plan_year, P.plan_week) == (2026, 42)
        assert P.stickiness_threshold == 0.8
        assert P.capacity_fill is False

    def test_snapshot_input(self, tmp_path):
        out_dir = tmp_path / "out"
        out_dir.mkdir()
        snapshot = tmp_path / "state.json"
        snapshot.write_text(json.dumps({
            "lines": [{"id": "L1", "name": "Line One"}],
            "references": [{"id": "A", "name": "Film"}],
            "throughputs": [{"lineId": "L1", "referenceId": "A", "rate": 10}],
            "availabilities": [{"lineId": "L1", "dayOfWeek": d, "hoursAvailable": 8} for d in range(7)],
            "setupTimes": [],
            "demands": [{"referenceId": "A", "quantity": 100}],
        }), encoding="utf-8")
        args = ["--data-dir", str(out_dir), "--snapshot", str(snapshot), "--year", "2026", "--week", "42"]
        assert run_planner.main(args) == 0
        assert _read(out_dir / "plan_messages.txt") == [
            "WARNING: No setup times configured. All reference changes will be instantaneous (0 hours setup)."
        ]
        plan = pd.read_csv(out_dir / "plan_items.csv")
        assert plan["quantity"].sum() == pytest.approx(100)
