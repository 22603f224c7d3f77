# habittracker/schemas.py
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from datetime import datetime, timezone
from typing import Optional


# ════════════════════════════════════════
# AUTH / USER
# ════════════════════════════════════════

class UserCreate(BaseModel):
    email: EmailStr
    password: str

class UserResponse(BaseModel):
    id: int
    email: EmailStr
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str

class RefreshTokenRequest(BaseModel):
    refresh_token: str


# ════════════════════════════════════════
# HABITS
# ════════════════════════════════════════

class HabitCreate(BaseModel):
    name: str
    missed_days_allowed: int = Field(default=0, ge=0)
    notes: Optional[str] = ""


class HabitRecord(BaseModel):
    """Fixed shape every stored habit is decoded into."""
    id: int
    user_id: int
    name: str = Field(min_length=1)
    streak: int = Field(ge=0)
    missed_days_allowed: int = Field(ge=0)
    num_days_record: int = Field(ge=0)
    notes: str = ""
    last_performed: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("notes", mode="before")
    @classmethod
    def _notes_default(cls, value):
        return "" if value is None else value

    @field_validator("last_performed")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive datetimes; everything is written in UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class HabitResponse(BaseModel):
    id: int
    name: str
    streak: int
    missed_days_allowed: int
    num_days_record: int
    notes: str
    last_performed: datetime
    done_today: bool
    days_since: int
    days_since_label: str


class CompletionResponse(BaseModel):
    accepted: bool
    reset: bool = False
    habit: HabitResponse
