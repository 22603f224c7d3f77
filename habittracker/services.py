# habittracker/services.py
import logging
import secrets
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

from sqlalchemy.orm import Session

from habittracker.attendance import (
    GapPolicy, describe_days_since, days_since, is_same_calendar_day,
    local_zone, record_completion,
)
from habittracker.config import settings
from habittracker.core.exceptions import (
    NotFoundException, UnauthorizedException, ValidationException,
)
from habittracker.identity import UserSession
from habittracker.models import RefreshToken
from habittracker.schemas import HabitRecord
from habittracker.store import HabitStore, Increment

logger = logging.getLogger("habittracker")


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _now(now: Optional[datetime]) -> datetime:
    return _utc(now) if now else datetime.now(timezone.utc)


def _require_session(session: Optional[UserSession]) -> UserSession:
    if session is None:
        raise UnauthorizedException("Please sign in and try again.")
    return session


def default_zone() -> tzinfo:
    return local_zone(settings.TIMEZONE)


def default_policy() -> GapPolicy:
    return GapPolicy(settings.STREAK_GAP_POLICY)


# ════════════════════════════════════════
# HABIT SERVICES
# ════════════════════════════════════════

def habit_view(habit: HabitRecord, now: Optional[datetime] = None,
               tz: Optional[tzinfo] = None) -> dict:
    """Habit fields plus the display facts for the list and detail views."""
    now  = _now(now)
    tz   = tz or default_zone()
    days = days_since(habit.last_performed, now, tz)
    return {
        "id":                  habit.id,
        "name":                habit.name,
        "streak":              habit.streak,
        "missed_days_allowed": habit.missed_days_allowed,
        "num_days_record":     habit.num_days_record,
        "notes":               habit.notes,
        "last_performed":      habit.last_performed,
        "done_today":          is_same_calendar_day(habit.last_performed, now, tz),
        "days_since":          days,
        "days_since_label":    describe_days_since(days),
    }


def create_habit(store: HabitStore, session: Optional[UserSession], name: str,
                 missed_days_allowed: int = 0, notes: Optional[str] = "",
                 now: Optional[datetime] = None) -> HabitRecord:
    name = (name or "").strip()
    if not name:
        raise ValidationException("Please enter a habit name.")
    if missed_days_allowed is None or int(missed_days_allowed) < 0:
        raise ValidationException("Missed days allowed cannot be negative.")
    session = _require_session(session)

    habit_id = store.create(session.user_id, {
        "name":                name,
        "streak":              0,
        "missed_days_allowed": int(missed_days_allowed),
        "num_days_record":     0,
        "notes":               (notes or "").strip(),
        "last_performed":      _now(now),
    })
    logger.info(f"{session.email} — created habit {habit_id}: '{name}'")
    return store.get(session.user_id, habit_id)


def list_habits(store: HabitStore, session: Optional[UserSession]) -> list[HabitRecord]:
    session = _require_session(session)
    return store.list(session.user_id)


def get_habit(store: HabitStore, session: Optional[UserSession], habit_id: int) -> HabitRecord:
    session = _require_session(session)
    habit = store.get(session.user_id, habit_id)
    if habit is None:
        raise NotFoundException("Habit not found")
    return habit


def mark_done(store: HabitStore, session: Optional[UserSession], habit_id: int,
              now: Optional[datetime] = None, policy: Optional[GapPolicy] = None,
              tz: Optional[tzinfo] = None) -> tuple[HabitRecord, bool, bool]:
    """
    Record a completion of `habit_id` at `now`.

    Returns (habit, accepted, reset). A completion on the same calendar day
    as the last one is not accepted. The write is conditional on the
    last_performed value read here, so two devices racing on the same day
    only count once.
    """
    session = _require_session(session)
    now     = _now(now)
    habit   = get_habit(store, session, habit_id)

    outcome = record_completion(habit, now, policy or default_policy(), tz or default_zone())
    if not outcome.accepted:
        logger.info(f"{session.email} — habit {habit_id} already done today")
        return habit, False, False

    streak_value = 1 if outcome.reset else Increment(1)
    written = store.update(
        session.user_id, habit_id,
        {"streak": streak_value, "last_performed": outcome.last_performed},
        expected_last_performed=habit.last_performed,
    )
    if not written:
        logger.warning(f"{session.email} — habit {habit_id} was completed concurrently, not counted")
        return get_habit(store, session, habit_id), False, False

    # The compare-and-swap matched, so the stored row is exactly what was written
    current = habit.model_copy(update={
        "streak":         outcome.streak,
        "last_performed": outcome.last_performed,
    })
    logger.info(f"{session.email} — habit {habit_id} done, streak {current.streak}")
    return current, True, outcome.reset


# ════════════════════════════════════════
# AUTH SERVICES
# ════════════════════════════════════════

def create_refresh_token(db: Session, user_id: int) -> str:
    token      = secrets.token_urlsafe(64)
    expires_at = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    db.add(RefreshToken(token=token, user_id=user_id, expires_at=expires_at))
    db.commit()
    return token


def get_refresh_token(db: Session, token: str):
    return db.query(RefreshToken).filter(
        RefreshToken.token == token,
        RefreshToken.revoked == False
    ).first()


def revoke_refresh_token(db: Session, token: str):
    db_token = db.query(RefreshToken).filter(RefreshToken.token == token).first()
    if db_token:
        db_token.revoked = True
        db.commit()
