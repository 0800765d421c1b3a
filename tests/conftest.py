"""Shared fixtures for weekly planner tests."""

import pytest

from plan_builders import WEDNESDAY, build_data


@pytest.fixture
def make_data():
    return build_data


@pytest.fixture
def single_line_data():
    """One line, 24h every day, 10 t/h, 500 t without deadline."""
    return build_data(
        refs=("R1", "R2"),
        rates={("L1", "R1"): 10},
        setups={("L1", "R1", "R2"): 1.0},
        demands=[("R1", 500)],
    )


@pytest.fixture
def two_line_data():
    """L2 is faster than L1 for the only reference."""
    return build_data(
        lines=("L1", "L2"),
        rates={("L1", "R1"): 10, ("L2", "R1"): 15},
        setups={("L1", "R1", "R1"): 0.0},
        demands=[("R1", 300)],
    )


@pytest.fixture
def switch_data():
    """A due Wednesday, B open; 2h setup each way, 8h days."""
    return build_data(
        refs=("A", "B"),
        rates={("L1", "A"): 10, ("L1", "B"): 10},
        hours=8.0,
        setups={("L1", "A", "B"): 2.0, ("L1", "B", "A"): 2.0},
        demands=[("B", 300), ("A", 200, WEDNESDAY)],
    )


@pytest.fixture
def overload_data():
    """1000 t against 600 t of weekday capacity on two lines."""
    weekdays = {d: 8.0 for d in range(5)}
    return build_data(
        lines=("L1", "L2"),
        rates={("L1", "R1"): 10, ("L2", "R1"): 5},
        hours={"L1": weekdays, "L2": weekdays},
        setups={("L1", "R1", "R1"): 0.0},
        demands=[("R1", 1000)],
    )
