# compatibility.py — Line/reference compatibility matrix and preferred line per reference.

from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

import pandas as pd

from calendar_packer import iter_days
from data_loader import Data


@dataclass(frozen=True)
class CompatibilityRow:
    line_id: str
    reference_id: str
    rate: float                # tons/h
    horizon_hours: float       # configured hours over the horizon
    total_capacity_tons: float


def build_compatibility_matrix(data: Data, horizon_start: date, horizon_end: date) -> List[CompatibilityRow]:
    """One row per configured (line, reference) throughput, in line configuration order."""
    days = list(iter_days(horizon_start, horizon_end))
    rows: List[CompatibilityRow] = []
    for line in data.lines:
        hours = sum(data.hours.get((line.id, d.weekday()), 0.0) for d in days)
        for t in data.throughputs:
            if t.line_id != line.id:
                continue
            rows.append(CompatibilityRow(line.id, t.reference_id, t.rate, hours, t.rate * hours))
    return rows


def identify_preferred_line(matrix: List[CompatibilityRow], reference_id: str) -> Optional[str]:
    """Fastest line; ties go to the larger horizon capacity, then to the earlier line."""
    best: Optional[CompatibilityRow] = None
    for row in matrix:
        if row.reference_id != reference_id:
            continue
        if best is None or (row.rate, row.total_capacity_tons) > (best.rate, best.total_capacity_tons):
            best = row
    return best.line_id if best is not None else None


def identify_preferred_lines(matrix: List[CompatibilityRow]) -> Dict[str, str]:
    preferred: Dict[str, str] = {}
    for row in matrix:
        if row.reference_id not in preferred:
            preferred[row.reference_id] = identify_preferred_line(matrix, row.reference_id)
    return preferred


def matrix_frame(matrix: List[CompatibilityRow], data: Data) -> pd.DataFrame:
    preferred = identify_preferred_lines(matrix)
    rows = [
        {
            "line_id": r.line_id,
            "line_name": data.line_name(r.line_id),
            "reference_id": r.reference_id,
            "reference_name": data.reference_name(r.reference_id),
            "rate_tph": r.rate,
            "horizon_hours": r.horizon_hours,
            "total_capacity_tons": r.total_capacity_tons,
            "preferred": preferred.get(r.reference_id) == r.line_id,
        }
        for r in matrix
    ]
    cols = ["line_id", "line_name", "reference_id", "reference_name", "rate_tph",
            "horizon_hours", "total_capacity_tons", "preferred"]
    return pd.DataFrame(rows, columns=cols)
