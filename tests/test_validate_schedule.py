"""Tests for post-plan validation checks."""

import pandas as pd
import pytest

from plan_builders import WEEK, YEAR, build_data, write_csv_dir
from validate_schedule import (
    check_daily_capacity,
    check_no_overlaps,
    check_no_overproduction,
    check_rate_consistency,
    check_setup_markers,
    prepare_plan,
    validate_all,
    validate_plan,
)
from weekly_scheduler import generate_production_plan, plan_to_frame


@pytest.fixture
def data():
    return build_data(
        refs=("A", "B"),
        rates={("L1", "A"): 10, ("L1", "B"): 10},
        hours=8.0,
        setups={("L1", "A", "B"): 1.0},
        demands=[("A", 100), ("B", 50)],
    )


def _frame(*rows):
    """rows: (date, ref, quantity, duration, start, end, is_setup) on line L1."""
    cols = ["date", "reference_id", "quantity", "duration", "start_time", "end_time", "is_setup"]
    df = pd.DataFrame([dict(zip(cols, r)) for r in rows])
    df.insert(1, "line_id", "L1")
    return prepare_plan(df)


class TestChecks:

    def test_engine_plan_is_clean(self, data):
        result = generate_production_plan(data, YEAR, WEEK)
        report = validate_plan(plan_to_frame(result.plan_items, data), data)
        assert "Checks passed: 5/5    Issues found: 0" in report

    def test_capacity_exceeded(self, data):
        df = _frame(
            ("2026-10-12", "A", 60, 6, "2026-10-12T00:00:00", "2026-10-12T06:00:00", False),
            ("2026-10-12", "A", 40, 4, "2026-10-12T06:00:00", "2026-10-12T10:00:00", False),
        )
        issues = check_daily_capacity(df, data)
        assert issues[0].startswith("CAPACITY: Line L1 on 2026-10-12 uses 10.00h of 8.00h")

    def test_overlap(self, data):
        df = _frame(
            ("2026-10-12", "A", 40, 4, "2026-10-12T00:00:00", "2026-10-12T04:00:00", False),
            ("2026-10-12", "A", 20, 2, "2026-10-12T03:00:00", "2026-10-12T05:00:00", False),
        )
        assert check_no_overlaps(df)[0].startswith("OVERLAP:")

    def test_rate_mismatch(self, data):
        df = _frame(("2026-10-12", "A", 45, 4, "2026-10-12T00:00:00", "2026-10-12T04:00:00", False))
        assert check_rate_consistency(df, data)[0].startswith("RATE:")

    def test_overproduction(self, data):
        df = _frame(("2026-10-12", "B", 60, 6, "2026-10-12T00:00:00", "2026-10-12T06:00:00", False))
        assert check_no_overproduction(df, data)[0].startswith("OVER: B")

    def test_switch_without_marker(self, data):
        df = _frame(
            ("2026-10-12", "A", 40, 4, "2026-10-12T00:00:00", "2026-10-12T04:00:00", False),
            ("2026-10-12", "B", 20, 2, "2026-10-12T04:00:00", "2026-10-12T06:00:00", False),
        )
        assert check_setup_markers(df)[0].startswith("SETUP: Line L1 -- switch A->B")

    def test_zero_length_marker_counts(self, data):
        df = _frame(
            ("2026-10-12", "A", 40, 4, "2026-10-12T00:00:00", "2026-10-12T04:00:00", False),
            ("2026-10-12", "B", 0, 0, "2026-10-12T04:00:00", "2026-10-12T04:00:00", True),
            ("2026-10-12", "B", 20, 2, "2026-10-12T04:00:00", "2026-10-12T06:00:00", False),
        )
        assert check_setup_markers(df)[-1].endswith("OK.")
        assert check_no_overlaps(df)[-1].endswith("OK.")

    def test_empty_plan(self, data):
        report = validate_plan(plan_to_frame([], data), data)
        assert "Plan is empty; nothing to validate." in report


class TestValidateAll:

    def test_missing_plan_file(self, tmp_path):
        report = validate_all(tmp_path, verbose=False)
        assert report[0].startswith("MISSING:")
        assert (tmp_path / "validation_report.txt").exists()
