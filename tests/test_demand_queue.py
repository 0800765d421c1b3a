"""Tests for demand priority order and effective deadlines."""

from datetime import date

import pytest

from data_loader import Demand
from demand_queue import DemandOutcome, effective_deadline, sort_demands
from plan_builders import SUNDAY, TUESDAY, WEDNESDAY


class TestSortDemands:

    def test_deadline_then_quantity(self):
        demands = [
            Demand("X", 100),
            Demand("Y", 50, WEDNESDAY),
            Demand("Z", 200, TUESDAY),
            Demand("W", 300),
        ]
        assert [d.reference_id for d in sort_demands(demands)] == ["Z", "Y", "W", "X"]

    def test_same_deadline_larger_first(self):
        demands = [Demand("S", 10, TUESDAY), Demand("L", 90, TUESDAY)]
        assert [d.reference_id for d in sort_demands(demands)] == ["L", "S"]

    def test_full_ties_keep_input_order(self):
        demands = [Demand("A", 10, TUESDAY), Demand("B", 10, TUESDAY), Demand("C", 10)]
        assert [d.reference_id for d in sort_demands(demands)] == ["A", "B", "C"]

    def test_input_untouched(self):
        demands = [Demand("X", 1), Demand("Y", 2, TUESDAY)]
        sort_demands(demands)
        assert [d.reference_id for d in demands] == ["X", "Y"]


class TestEffectiveDeadline:

    def test_no_deadline_means_horizon_end(self):
        assert effective_deadline(Demand("X", 1), SUNDAY) == SUNDAY

    def test_clamped_to_horizon_end(self):
        assert effective_deadline(Demand("X", 1, date(2026, 11, 30)), SUNDAY) == SUNDAY

    def test_earlier_deadline_kept(self):
        assert effective_deadline(Demand("X", 1, TUESDAY), SUNDAY) == TUESDAY


class TestDemandOutcome:

    @pytest.mark.parametrize("scheduled,status", [(0.0, "NONE"), (40.0, "PARTIAL"), (100.0, "FULL")])
    def test_status(self, scheduled, status):
        assert DemandOutcome(Demand("X", 100), scheduled).status() == status

    def test_unmet(self):
        assert DemandOutcome(Demand("X", 100), 40).unmet == 60
