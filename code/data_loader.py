# data_loader.py — Params, Files, Data, and record types for the weekly line planner.

from __future__ import annotations
import json
import math
import os
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

CONFIG_NAME = "planner.toml"


def float_or_default(v, default: float, what: str = "value") -> float:
    """Blank reads as *default*; anything else must be a number."""
    if isinstance(v, str):
        if not v.strip():
            return default
    elif v is None or pd.isna(v):
        return default
    return _number(v, what)


def parse_deadline(v) -> Optional[date]:
    """Return a date for *v*, None when blank. Raises ValueError when unparsable."""
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    s = str(v).strip()
    if not s or s.lower() in ("nan", "nat", "none"):
        return None
    ts = pd.to_datetime(s, errors="coerce")
    if pd.isna(ts):
        raise ValueError(f"unparsable deadline {s!r}")
    return ts.date()


def _number(v, what: str) -> float:
    x = pd.to_numeric(v, errors="coerce")
    if pd.isna(x):
        raise ValueError(f"{what}: not a number ({v!r})")
    return float(x)


def _weekday(v, what: str) -> int:
    x = _number(v, what)
    if not float(x).is_integer():
        raise ValueError(f"{what}: day_of_week must be an integer ({v!r})")
    return int(x)


# ── Records ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Line:
    id: str
    name: str


@dataclass(frozen=True)
class Reference:
    id: str
    name: str


@dataclass(frozen=True)
class Throughput:
    line_id: str
    reference_id: str
    rate: float  # tons/hour


@dataclass(frozen=True)
class Availability:
    line_id: str
    day_of_week: int  # 0=Monday … 6=Sunday
    hours_available: float


@dataclass(frozen=True)
class SetupTime:
    line_id: str
    from_reference_id: str
    to_reference_id: str
    duration: float  # hours


@dataclass(frozen=True)
class Demand:
    reference_id: str
    quantity: float  # tons
    deadline: Optional[date] = None


# ── Parameters ──────────────────────────────────────────────────────────


@dataclass
class Params:
    # Target ISO week; the CLI can override both
    plan_year: Optional[int] = None
    plan_week: Optional[int] = None
    # Share of the remaining tons the sticky line must still be able to produce
    stickiness_threshold: float = 0.5
    tolerance: float = 1e-6
    validate: bool = True
    capacity_fill: bool = True
    # Backfill spends capacity up to the horizon end unless this is set
    fill_respect_deadlines: bool = False

    def check(self) -> None:
        if not 0.0 <= float(self.stickiness_threshold) <= 1.0:
            raise ValueError(
                f"stickiness_threshold must be within 0..1 (got {self.stickiness_threshold})"
            )
        if float(self.tolerance) < 0:
            raise ValueError(f"tolerance must be >= 0 (got {self.tolerance})")
        if self.plan_week is not None and self.plan_year is None:
            raise ValueError("plan_week is set but plan_year is missing")


def _load_toml(path: Path) -> dict:
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore
    if not path.exists():
        return {}
    with open(path, "rb") as f:
        return tomllib.load(f)


def find_config(data_dir: Path) -> Path:
    """planner.toml next to the data directory wins over one inside it."""
    toml_path = Path(data_dir).parent / CONFIG_NAME
    if not toml_path.exists():
        toml_path = Path(data_dir) / CONFIG_NAME
    return toml_path


def load_params(path: Path | str) -> Params:
    cfg = _load_toml(Path(path))
    planner = cfg.get("planner", {})
    fill = cfg.get("fill", {})
    defaults = Params()
    P = Params(
        plan_year=planner.get("plan_year", defaults.plan_year),
        plan_week=planner.get("plan_week", defaults.plan_week),
        stickiness_threshold=float(planner.get("stickiness_threshold", defaults.stickiness_threshold)),
        tolerance=float(planner.get("tolerance", defaults.tolerance)),
        validate=bool(planner.get("validate", defaults.validate)),
        capacity_fill=bool(fill.get("enabled", defaults.capacity_fill)),
        fill_respect_deadlines=bool(fill.get("respect_deadlines", defaults.fill_respect_deadlines)),
    )
    P.check()
    return P


def params_to_toml(P: Params) -> dict:
    planner: Dict[str, Any] = {
        "stickiness_threshold": float(P.stickiness_threshold),
        "tolerance": float(P.tolerance),
        "validate": bool(P.validate),
    }
    # TOML has no null: unset week keys are omitted
    if P.plan_year is not None:
        planner["plan_year"] = int(P.plan_year)
    if P.plan_week is not None:
        planner["plan_week"] = int(P.plan_week)
    return {
        "planner": planner,
        "fill": {
            "enabled": bool(P.capacity_fill),
            "respect_deadlines": bool(P.fill_respect_deadlines),
        },
    }


# ── Input files ─────────────────────────────────────────────────────────


class Files:
    def __init__(self, data_dir: Path):
        data_dir = Path(data_dir)
        self.lines = str(data_dir / "lines.csv")
        self.refs = str(data_dir / "references.csv")
        self.rates = str(data_dir / "throughputs.csv")
        self.avail = str(data_dir / "availability.csv")
        self.setup = str(data_dir / "setup_times.csv")
        self.dem = str(data_dir / "demands.csv")


def _read_table(path: str, required: Tuple[str, ...]) -> pd.DataFrame:
    """Read *path* as strings; a missing file reads as an empty table."""
    if not os.path.exists(path):
        return pd.DataFrame(columns=list(required))
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip() for c in df.columns]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"{Path(path).name}: missing column(s) {missing}")
    return df


class Data:
    """Immutable configuration snapshot plus the lookup indexes the engine reads."""

    def __init__(self, F: Optional[Files] = None):
        self.F = F
        self.lines: List[Line] = []
        self.references: List[Reference] = []
        self.throughputs: List[Throughput] = []
        self.availabilities: List[Availability] = []
        self.setup_times: List[SetupTime] = []
        self.demands: List[Demand] = []
        self.line_names: Dict[str, str] = {}
        self.reference_names: Dict[str, str] = {}
        self.rate: Dict[Tuple[str, str], float] = {}            # (line, ref) -> tons/h
        self.hours: Dict[Tuple[str, int], float] = {}           # (line, weekday) -> hours
        self.setup: Dict[Tuple[str, str, str], float] = {}      # (line, from, to) -> hours

    @classmethod
    def from_records(
        cls,
        lines: Iterable[Line] = (),
        references: Iterable[Reference] = (),
        throughputs: Iterable[Throughput] = (),
        availabilities: Iterable[Availability] = (),
        setup_times: Iterable[SetupTime] = (),
        demands: Iterable[Demand] = (),
    ) -> "Data":
        data = cls()
        data.lines = list(lines)
        data.references = list(references)
        data.throughputs = list(throughputs)
        data.availabilities = list(availabilities)
        data.setup_times = list(setup_times)
        data.demands = list(demands)
        data.index()
        return data

    @classmethod
    def from_snapshot(cls, path: Path | str) -> "Data":
        """Load the configuration-store JSON export (camelCase keys)."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            state = json.load(f)
        try:
            return cls.from_records(
                lines=[Line(str(x["id"]), str(x.get("name") or x["id"])) for x in state.get("lines", [])],
                references=[
                    Reference(str(x["id"]), str(x.get("name") or x["id"])) for x in state.get("references", [])
                ],
                throughputs=[
                    Throughput(str(x["lineId"]), str(x["referenceId"]), _number(x["rate"], "rate"))
                    for x in state.get("throughputs", [])
                ],
                availabilities=[
                    Availability(
                        str(x["lineId"]),
                        _weekday(x["dayOfWeek"], "dayOfWeek"),
                        _number(x["hoursAvailable"], "hoursAvailable"),
                    )
                    for x in state.get("availabilities", [])
                ],
                setup_times=[
                    SetupTime(
                        str(x["lineId"]),
                        str(x["fromReferenceId"]),
                        str(x["toReferenceId"]),
                        float_or_default(x.get("duration"), 0.0, "setupTimes duration"),
                    )
                    for x in state.get("setupTimes", [])
                ],
                demands=[
                    Demand(
                        str(x["referenceId"]),
                        _number(x["quantity"], "quantity"),
                        parse_deadline(x.get("deadline")),
                    )
                    for x in state.get("demands", [])
                ],
            )
        except KeyError as exc:
            raise ValueError(f"{path.name}: record missing key {exc}") from None

    def load(self) -> None:
        if self.F is None:
            raise ValueError("Data.load() needs a Files instance")

        # ── Lines & references ───────────────────────────────────────────
        ln = _read_table(self.F.lines, ("line_id",))
        for row_i, r in ln.iterrows():
            lid = str(r["line_id"]).strip()
            if not lid:
                raise ValueError(f"lines.csv row {row_i}: line_id is required")
            self.lines.append(Line(lid, str(r.get("line_name", "")).strip() or lid))

        refs = _read_table(self.F.refs, ("reference_id",))
        for row_i, r in refs.iterrows():
            rid = str(r["reference_id"]).strip()
            if not rid:
                raise ValueError(f"references.csv row {row_i}: reference_id is required")
            self.references.append(Reference(rid, str(r.get("reference_name", "")).strip() or rid))

        # ── Throughput rates (tons/hour) ─────────────────────────────────
        tp = _read_table(self.F.rates, ("line_id", "reference_id", "rate_tph"))
        for row_i, r in tp.iterrows():
            self.throughputs.append(
                Throughput(
                    str(r["line_id"]).strip(),
                    str(r["reference_id"]).strip(),
                    _number(r["rate_tph"], f"throughputs.csv row {row_i}"),
                )
            )

        # ── Weekly availability ──────────────────────────────────────────
        av = _read_table(self.F.avail, ("line_id", "day_of_week", "hours_available"))
        for row_i, r in av.iterrows():
            self.availabilities.append(
                Availability(
                    str(r["line_id"]).strip(),
                    _weekday(r["day_of_week"], f"availability.csv row {row_i}"),
                    _number(r["hours_available"], f"availability.csv row {row_i}"),
                )
            )

        # ── Setup times (optional file; blank hours read as 0) ───────────
        st = _read_table(self.F.setup, ("line_id", "from_reference_id", "to_reference_id", "setup_hours"))
        for row_i, r in st.iterrows():
            self.setup_times.append(
                SetupTime(
                    str(r["line_id"]).strip(),
                    str(r["from_reference_id"]).strip(),
                    str(r["to_reference_id"]).strip(),
                    float_or_default(r["setup_hours"], 0.0, f"setup_times.csv row {row_i}"),
                )
            )

        # ── Demands ──────────────────────────────────────────────────────
        dem = _read_table(self.F.dem, ("reference_id", "quantity_tons"))
        for row_i, r in dem.iterrows():
            try:
                deadline = parse_deadline(r.get("deadline"))
            except ValueError as exc:
                raise ValueError(f"demands.csv row {row_i}: {exc}") from None
            self.demands.append(
                Demand(
                    str(r["reference_id"]).strip(),
                    _number(r["quantity_tons"], f"demands.csv row {row_i}"),
                    deadline,
                )
            )

        self.index()

    def index(self) -> None:
        """Validate records and build the lookup maps."""
        self.line_names = {}
        for l in self.lines:
            if l.id in self.line_names:
                raise ValueError(f"duplicate line id {l.id!r}")
            self.line_names[l.id] = l.name
        self.reference_names = {r.id: r.name for r in self.references}

        self.rate = {}
        for t in self.throughputs:
            if not (t.rate > 0 and math.isfinite(t.rate)):
                raise ValueError(f"throughput rate must be > 0: {t}")
            key = (t.line_id, t.reference_id)
            if key in self.rate:
                raise ValueError(f"duplicate throughput for line {t.line_id!r}, reference {t.reference_id!r}")
            self.rate[key] = float(t.rate)

        self.hours = {}
        for a in self.availabilities:
            if not 0 <= a.day_of_week <= 6:
                raise ValueError(f"day_of_week must be within 0..6: {a}")
            if not 0 <= a.hours_available <= 24:
                raise ValueError(f"hours_available must be within 0..24: {a}")
            key = (a.line_id, a.day_of_week)
            if key in self.hours:
                raise ValueError(f"duplicate availability for line {a.line_id!r}, day {a.day_of_week}")
            self.hours[key] = float(a.hours_available)

        self.setup = {}
        for s in self.setup_times:
            if s.duration < 0:
                raise ValueError(f"setup duration must be >= 0: {s}")
            key = (s.line_id, s.from_reference_id, s.to_reference_id)
            if key in self.setup:
                raise ValueError(
                    f"duplicate setup time for line {s.line_id!r}: "
                    f"{s.from_reference_id!r} -> {s.to_reference_id!r}"
                )
            self.setup[key] = float(s.duration)

        for d in self.demands:
            if not (d.quantity > 0 and math.isfinite(d.quantity)):
                raise ValueError(f"demand quantity must be > 0: {d}")

    def line_name(self, line_id: str) -> str:
        return self.line_names.get(line_id, line_id)

    def reference_name(self, reference_id: str) -> str:
        return self.reference_names.get(reference_id, reference_id)
