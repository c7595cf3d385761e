from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Literal, Optional

from pydantic import BaseModel, field_validator

School = Literal['wlhs', 'wvhs']
Schedule = Literal['A', 'B']


def _date_text(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def _time_text(value: Any) -> Any:
    if isinstance(value, time):
        return value.replace(microsecond=0).isoformat()
    return value


# --- Validated fields ---------------------------------------------------------
# Produced only by validators.validate; repositories accept nothing else.


class EventFields(BaseModel):
    school: School
    date: str
    title: str
    department: Optional[str] = None
    time: Optional[str] = None
    description: str = ''


class EventUpdateFields(BaseModel):
    title: str
    department: Optional[str] = None
    time: Optional[str] = None
    description: str = ''


class MaterialFields(BaseModel):
    school: School
    date: str
    grade_level: int
    title: str
    link: str
    description: str = ''
    password: str = ''


class MaterialUpdateFields(BaseModel):
    title: str
    link: str
    description: str = ''
    password: str = ''


class EventFilter(BaseModel):
    school: School


class MaterialFilter(BaseModel):
    school: School
    grade: Optional[int] = None


class DayScheduleFields(BaseModel):
    date: str
    schedule: Optional[Schedule] = None


class DayTypeFields(BaseModel):
    date: str
    type: Optional[str] = None


class DateConfigFields(BaseModel):
    """A partial write: ``None`` means keep whatever is stored."""

    date_key: str
    color: Optional[str] = None
    day_type: Optional[Schedule] = None
    is_access: Optional[bool] = None


# --- Records ------------------------------------------------------------------


class EventRecord(BaseModel):
    id: int
    school: School
    date: str
    title: str
    department: Optional[str] = None
    time: Optional[str] = None
    description: str = ''
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('date', mode='before')
    @classmethod
    def _normalize_date(cls, value: Any) -> Any:
        return _date_text(value)

    @field_validator('time', mode='before')
    @classmethod
    def _normalize_time(cls, value: Any) -> Any:
        return _time_text(value)


class MaterialRecord(BaseModel):
    id: int
    school: School
    date: str
    grade_level: int
    title: str
    link: str
    description: str = ''
    password: str = ''
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('date', mode='before')
    @classmethod
    def _normalize_date(cls, value: Any) -> Any:
        return _date_text(value)

    @field_validator('description', 'password', mode='before')
    @classmethod
    def _empty_when_null(cls, value: Any) -> Any:
        return value or ''


class DayScheduleRecord(BaseModel):
    date: str
    schedule: Optional[Schedule] = None

    @field_validator('date', mode='before')
    @classmethod
    def _normalize_date(cls, value: Any) -> Any:
        return _date_text(value)


class DayTypeRecord(BaseModel):
    date: str
    type: Optional[str] = None

    @field_validator('date', mode='before')
    @classmethod
    def _normalize_date(cls, value: Any) -> Any:
        return _date_text(value)


class DateConfigRecord(BaseModel):
    date_key: str
    color: Optional[str] = None
    day_type: Optional[Schedule] = None
    is_access: bool = False

    @field_validator('date_key', mode='before')
    @classmethod
    def _normalize_date(cls, value: Any) -> Any:
        return _date_text(value)

    @field_validator('is_access', mode='before')
    @classmethod
    def _false_when_null(cls, value: Any) -> Any:
        return bool(value)
