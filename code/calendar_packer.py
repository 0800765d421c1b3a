# calendar_packer.py — Per-line calendar cursors; day-by-day setup and production placement.
#
# Every line keeps a cursor date, the reference it last produced and the hours
# already booked per date.  Blocks are laid back-to-back inside a day: a new
# block starts where the previous one on that line/date ended.

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

from data_loader import Data

logger = logging.getLogger(__name__)

HORIZON_DAYS = 7

# pack_block outcomes
PLACED = "placed"
SETUP_UNFIT = "setup_unfit"
EXHAUSTED = "exhausted"


def week_horizon(year: int, week: int) -> Tuple[date, date]:
    """Monday and Sunday of ISO week *week* of *year*."""
    try:
        monday = date.fromisocalendar(int(year), int(week), 1)
    except ValueError as exc:
        raise ValueError(f"invalid ISO week {year}-W{week}: {exc}") from None
    return monday, monday + timedelta(days=HORIZON_DAYS - 1)


def iter_days(first: date, last: date) -> Iterator[date]:
    d = first
    while d <= last:
        yield d
        d += timedelta(days=1)


@dataclass(frozen=True)
class PlanItem:
    date: date
    line_id: str
    reference_id: str
    quantity: float   # tons; 0 for setup markers
    duration: float   # hours
    start_time: datetime
    end_time: datetime
    is_setup: bool = False

    def to_row(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "line_id": self.line_id,
            "reference_id": self.reference_id,
            "quantity": self.quantity,
            "duration": self.duration,
            "start_time": self.start_time.isoformat(timespec="seconds"),
            "end_time": self.end_time.isoformat(timespec="seconds"),
            "is_setup": self.is_setup,
        }


@dataclass
class LineSchedule:
    line_id: str
    cursor_date: date
    last_reference_id: Optional[str] = None
    hours_used: Dict[date, float] = field(default_factory=dict)

    def snapshot(self) -> Tuple[date, Optional[str], Dict[date, float]]:
        return self.cursor_date, self.last_reference_id, dict(self.hours_used)

    def restore(self, state: Tuple[date, Optional[str], Dict[date, float]]) -> None:
        self.cursor_date, self.last_reference_id, hours = state
        self.hours_used = dict(hours)


class BlockOutcome(NamedTuple):
    status: str                # PLACED | SETUP_UNFIT | EXHAUSTED
    items: List[PlanItem]      # setup marker (if any) then the production block
    quantity: float            # tons produced by the block
    setup_duration: float      # hours the reference switch needed


class CalendarPacker:
    """Places setup markers and production blocks against daily line availability."""

    def __init__(self, data: Data, horizon_start: date, horizon_end: date, tolerance: float = 1e-6):
        self.data = data
        self.horizon_start = horizon_start
        self.horizon_end = horizon_end
        self.tol = float(tolerance)
        # Enough steps to walk the cursor past the last horizon day
        self.max_day_steps = (horizon_end - horizon_start).days + 2

    def new_schedules(self) -> Dict[str, LineSchedule]:
        return {l.id: LineSchedule(l.id, self.horizon_start) for l in self.data.lines}

    # ── Capacity queries ────────────────────────────────────────────────

    def configured_hours(self, line_id: str, day: date) -> float:
        return self.data.hours.get((line_id, day.weekday()), 0.0)

    def available_hours(self, schedule: LineSchedule, day: Optional[date] = None) -> float:
        day = schedule.cursor_date if day is None else day
        if day < self.horizon_start or day > self.horizon_end:
            return 0.0
        used = schedule.hours_used.get(day, 0.0)
        return max(0.0, self.configured_hours(schedule.line_id, day) - used)

    def remaining_hours(self, schedule: LineSchedule, until: date) -> float:
        """Free hours on the line from its cursor through *until* (capped at the horizon end)."""
        last = min(until, self.horizon_end)
        return sum(self.available_hours(schedule, d) for d in iter_days(schedule.cursor_date, last))

    def needs_setup(self, schedule: LineSchedule, reference_id: str) -> bool:
        return schedule.last_reference_id is not None and schedule.last_reference_id != reference_id

    def setup_duration(self, line_id: str, from_reference_id: Optional[str], to_reference_id: str) -> float:
        if from_reference_id is None or from_reference_id == to_reference_id:
            return 0.0
        return self.data.setup.get((line_id, from_reference_id, to_reference_id), 0.0)

    # ── Placement ───────────────────────────────────────────────────────

    def _seek(self, schedule: LineSchedule, limit: date, duration: float = 0.0) -> Optional[float]:
        """Advance the cursor to the first day with room for *duration*; return its free hours."""
        for _ in range(self.max_day_steps):
            if schedule.cursor_date > limit:
                return None
            available = self.available_hours(schedule)
            if available > self.tol and duration <= available:
                return available
            schedule.cursor_date += timedelta(days=1)
            logger.debug("line %s: cursor -> %s", schedule.line_id, schedule.cursor_date)
        return None

    def _emit(self, schedule: LineSchedule, reference_id: str, quantity: float,
              duration: float, is_setup: bool) -> PlanItem:
        day = schedule.cursor_date
        start_hour = schedule.hours_used.get(day, 0.0)
        start = datetime.combine(day, time()) + timedelta(hours=start_hour)
        item = PlanItem(
            date=day,
            line_id=schedule.line_id,
            reference_id=reference_id,
            quantity=quantity,
            duration=duration,
            start_time=start,
            end_time=start + timedelta(hours=duration),
            is_setup=is_setup,
        )
        schedule.hours_used[day] = start_hour + duration
        if not is_setup:
            schedule.last_reference_id = reference_id
        return item

    def schedule_task(self, schedule: LineSchedule, reference_id: str, quantity: float,
                      duration: float, is_setup: bool, deadline: date) -> Optional[PlanItem]:
        """Place a block of *duration* hours on the first day that fits it, no later than *deadline*.

        Days without room are skipped; returns None once the cursor passes the
        deadline (or the horizon end).
        """
        limit = min(deadline, self.horizon_end)
        if self._seek(schedule, limit, duration) is None:
            return None
        return self._emit(schedule, reference_id, quantity, duration, is_setup)

    def place_setup(self, schedule: LineSchedule, reference_id: str,
                    deadline: date) -> Tuple[Optional[PlanItem], float]:
        duration = self.setup_duration(schedule.line_id, schedule.last_reference_id, reference_id)
        item = self.schedule_task(schedule, reference_id, 0.0, duration, True, deadline)
        return item, duration

    def place_production(self, schedule: LineSchedule, reference_id: str, quantity: float,
                         deadline: date, max_hours: Optional[float] = None) -> Optional[PlanItem]:
        rate = self.data.rate.get((schedule.line_id, reference_id))
        if not rate:
            return None
        available = self._seek(schedule, min(deadline, self.horizon_end))
        if available is None:
            return None
        hours = min(quantity / rate, available)
        if max_hours is not None:
            hours = min(hours, max_hours)
        if hours <= self.tol:
            return None
        return self._emit(schedule, reference_id, min(hours * rate, quantity), hours, False)

    def pack_block(self, schedule: LineSchedule, reference_id: str, quantity: float,
                   deadline: date, max_hours: Optional[float] = None) -> BlockOutcome:
        """Place one production block of at most *quantity* tons, with a setup marker on a switch.

        The attempt is all-or-nothing: when production cannot follow the setup
        the schedule is rolled back and no item is returned.
        """
        state = schedule.snapshot()
        items: List[PlanItem] = []
        setup_hours = 0.0
        if self.needs_setup(schedule, reference_id):
            marker, setup_hours = self.place_setup(schedule, reference_id, deadline)
            if marker is None:
                schedule.restore(state)
                if setup_hours > self.tol:
                    return BlockOutcome(SETUP_UNFIT, [], 0.0, setup_hours)
                return BlockOutcome(EXHAUSTED, [], 0.0, setup_hours)
            items.append(marker)
            if max_hours is not None:
                max_hours -= setup_hours

        block = self.place_production(schedule, reference_id, quantity, deadline, max_hours)
        if block is None:
            schedule.restore(state)
            logger.debug("line %s: no room for %s before %s", schedule.line_id, reference_id, deadline)
            return BlockOutcome(EXHAUSTED, [], 0.0, setup_hours)
        items.append(block)
        return BlockOutcome(PLACED, items, block.quantity, setup_hours)
