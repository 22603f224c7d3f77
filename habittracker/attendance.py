# habittracker/attendance.py
"""
Habit attendance rules.

Decides whether a "mark done" is accepted and computes the display facts
shown next to each habit ("done today", "3 days ago"). Everything here is
pure: no database, no clock. Callers pass `now` in explicitly.

Timestamps are compared in a local calendar. Aware datetimes are converted
into that calendar; naive datetimes are taken to already be local wall time.
"""
import enum
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo


class GapPolicy(str, enum.Enum):
    """What a gap between completions does to the streak."""

    # Any accepted completion adds 1, however long the gap
    IGNORE = "ignore"
    # A gap longer than missed_days_allowed + 1 calendar days restarts the streak at 1
    RESET = "reset"


@dataclass(frozen=True)
class Completion:
    accepted: bool
    streak: int
    last_performed: datetime
    reset: bool = False


def local_zone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def _localize(ts: datetime, tz: Optional[tzinfo]) -> datetime:
    if tz is None:
        return ts
    if ts.tzinfo is None:
        return ts.replace(tzinfo=tz)
    return ts.astimezone(tz)


def _instant(ts: datetime, tz: Optional[tzinfo]) -> datetime:
    ts = _localize(ts, tz)
    return ts.astimezone(timezone.utc) if ts.tzinfo else ts


def _local_date(ts: datetime, tz: Optional[tzinfo]) -> date:
    return _localize(ts, tz).date()


def is_same_calendar_day(a: datetime, b: datetime, tz: Optional[tzinfo] = None) -> bool:
    """
    True when both timestamps fall on the same year, month and day
    in the local calendar `tz`.

    No further normalization happens: a user who changes timezone between
    two completions is judged in whatever calendar is passed now.
    """
    return _local_date(a, tz) == _local_date(b, tz)


def calendar_gap(last: datetime, now: datetime, tz: Optional[tzinfo] = None) -> int:
    """Number of calendar days from `last` to `now` (1 for consecutive days)."""
    return (_local_date(now, tz) - _local_date(last, tz)).days


def record_completion(habit, now: datetime,
                      policy: GapPolicy = GapPolicy.IGNORE,
                      tz: Optional[tzinfo] = None) -> Completion:
    """
    Decide what a "mark done" at `now` does to `habit`.

    `habit` needs `streak`, `last_performed` and `missed_days_allowed`.

    - Same calendar day as the last completion: not accepted, nothing changes.
    - Otherwise accepted: the streak goes up by 1 and last_performed becomes `now`.
      Under GapPolicy.RESET a gap wider than the habit's allowance restarts
      the streak at 1 instead.

    Returns the resulting state; persisting it is the caller's job.
    """
    if is_same_calendar_day(habit.last_performed, now, tz):
        return Completion(
            accepted=False,
            streak=habit.streak,
            last_performed=habit.last_performed,
        )

    if policy == GapPolicy.RESET:
        gap = calendar_gap(habit.last_performed, now, tz)
        if gap > habit.missed_days_allowed + 1:
            return Completion(accepted=True, streak=1, last_performed=now, reset=True)

    return Completion(accepted=True, streak=habit.streak + 1, last_performed=now)


def days_since(last_performed: datetime, now: datetime, tz: Optional[tzinfo] = None) -> int:
    """
    Whole days of real elapsed time since `last_performed`. Clock skew clamps to 0.

    Aware values are subtracted in UTC so a DST change does not stretch or
    shrink the day.
    """
    elapsed = _instant(now, tz) - _instant(last_performed, tz)
    return max(0, elapsed.days)


def describe_days_since(days: int) -> str:
    if days <= 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    return f"{days} days ago"
