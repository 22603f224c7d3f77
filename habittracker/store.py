# habittracker/store.py
"""
Per-user habit collection.

The rest of the app only talks to the store through create/get/list/update,
keyed by user id and habit id. Rows are decoded into `HabitRecord` on the way
out, and database failures surface as `StoreError`.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from habittracker.core.exceptions import RecordDecodeError, StoreError
from habittracker.models import Habit
from habittracker.schemas import HabitRecord

logger = logging.getLogger("habittracker.store")

WRITABLE_FIELDS = {
    "name", "streak", "missed_days_allowed",
    "num_days_record", "notes", "last_performed",
}


@dataclass(frozen=True)
class Increment:
    """Update value applied by the database as `field = field + amount`."""
    amount: int = 1


def _decode(row: Habit) -> HabitRecord:
    try:
        return HabitRecord.model_validate(row)
    except ValidationError as e:
        raise RecordDecodeError(row.id, e.errors()) from e


def _check_fields(fields: dict) -> dict:
    unknown = set(fields) - WRITABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown habit fields: {sorted(unknown)}")
    return fields


class HabitStore:

    def __init__(self, db: Session):
        self.db = db

    def _scoped(self, user_id: int, habit_id: int):
        return self.db.query(Habit).filter(
            Habit.id == habit_id,
            Habit.user_id == user_id,
        )

    def create(self, user_id: int, fields: dict) -> int:
        habit = Habit(user_id=user_id, **_check_fields(fields))
        try:
            self.db.add(habit)
            self.db.commit()
            self.db.refresh(habit)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Could not create habit for user {user_id}") from e
        return habit.id

    def get(self, user_id: int, habit_id: int) -> Optional[HabitRecord]:
        try:
            row = self._scoped(user_id, habit_id).first()
        except SQLAlchemyError as e:
            raise StoreError(f"Could not read habit {habit_id}") from e
        return _decode(row) if row else None

    def list(self, user_id: int) -> list[HabitRecord]:
        try:
            rows = self.db.query(Habit).filter(Habit.user_id == user_id).all()
        except SQLAlchemyError as e:
            raise StoreError(f"Could not list habits for user {user_id}") from e
        return [_decode(row) for row in rows]

    def update(self, user_id: int, habit_id: int, fields: dict,
               expected_last_performed: Optional[datetime] = None) -> bool:
        """
        Merge `fields` into the stored habit.

        An `Increment` value is applied server-side, so concurrent increments
        never lose updates. With `expected_last_performed` the write only
        happens if the stored last_performed still equals it (compare-and-swap).

        Returns False when no row matched.
        """
        values = {}
        for key, value in _check_fields(fields).items():
            column = getattr(Habit, key)
            values[column] = column + value.amount if isinstance(value, Increment) else value

        query = self._scoped(user_id, habit_id)
        if expected_last_performed is not None:
            query = query.filter(Habit.last_performed == expected_last_performed)

        try:
            matched = query.update(values, synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Could not update habit {habit_id}") from e

        if not matched:
            logger.debug(f"Update matched no row — user {user_id}, habit {habit_id}")
        return matched > 0
