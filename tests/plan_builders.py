"""Record builders and calendar constants for planner tests."""
from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

# Modules live flat under code/
CODE_DIR = Path(__file__).resolve().parent.parent / "code"
if str(CODE_DIR) not in sys.path:
    sys.path.insert(0, str(CODE_DIR))

from data_loader import Availability, Data, Demand, Line, Reference, SetupTime, Throughput

# ISO week 42 of 2026 runs Monday 12 Oct .. Sunday 18 Oct
YEAR, WEEK = 2026, 42
MONDAY = date(2026, 10, 12)
TUESDAY = date(2026, 10, 13)
WEDNESDAY = date(2026, 10, 14)
SUNDAY = date(2026, 10, 18)


def build_data(lines=("L1",), refs=("R1",), rates=None, hours=24.0, setups=None, demands=()) -> Data:
    """Compact Data builder.

    rates:   {(line, ref): tons_per_hour}
    hours:   number for every day of every line, or {line: number | {weekday: hours}}
    setups:  {(line, from_ref, to_ref): hours}
    demands: [(ref, tons)] or [(ref, tons, deadline)]
    """
    rates = rates or {}
    setups = setups or {}
    availabilities = []
    for line in lines:
        spec = hours.get(line, 0.0) if isinstance(hours, dict) else hours
        per_day = spec if isinstance(spec, dict) else {d: spec for d in range(7)}
        for dow, h in sorted(per_day.items()):
            availabilities.append(Availability(line, dow, float(h)))
    return Data.from_records(
        lines=[Line(l, f"Line {l}") for l in lines],
        references=[Reference(r, r) for r in refs],
        throughputs=[Throughput(l, r, float(v)) for (l, r), v in rates.items()],
        availabilities=availabilities,
        setup_times=[SetupTime(l, a, b, float(v)) for (l, a, b), v in setups.items()],
        demands=[Demand(d[0], float(d[1]), d[2] if len(d) > 2 else None) for d in demands],
    )


def write_csv_dir(data_dir: Path, files: dict) -> Path:
    """Write {file_name: text} into *data_dir* and return it."""
    data_dir.mkdir(parents=True, exist_ok=True)
    for name, text in files.items():
        (data_dir / name).write_text(text, encoding="utf-8")
    return data_dir
