"""Per-entity rule sets for inbound calendar payloads.

``validate(entity, payload)`` checks required fields first (reporting every
required name at once), then the enumerated domains in declaration order
(school, grade level, schedule), then fills defaults and hands back the typed
fields model for the entity.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type

from pydantic import BaseModel

from calendar_models import (
    DateConfigFields,
    DayScheduleFields,
    DayTypeFields,
    EventFields,
    EventFilter,
    EventUpdateFields,
    MaterialFields,
    MaterialFilter,
    MaterialUpdateFields,
)
from dates import normalize_time, require_date
from errors import ValidationError

SCHOOLS = ('wlhs', 'wvhs')
GRADE_LEVELS = (9, 10, 11, 12)
SCHEDULES = ('A', 'B')

_HEX_COLOR = re.compile(r'^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$')


def coerce_int(value: Any) -> Optional[int]:
    """Explicit integer coercion for numeric fields sent as strings."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if re.fullmatch(r'[+-]?\d+', text):
            return int(text)
    return None


def coerce_bool(value: Any, field_name: str) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
        return value.strip().lower() == 'true'
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValidationError(f'{field_name} must be true or false', [field_name])


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


@dataclass(frozen=True)
class DomainRule:
    field: str
    allowed: Tuple[Any, ...]
    message: str
    coerce: Optional[Callable[[Any], Any]] = None
    optional: bool = False


@dataclass(frozen=True)
class EntityRules:
    model: Type[BaseModel]
    required: Tuple[str, ...]
    required_message: str
    domains: Tuple[DomainRule, ...] = ()
    defaults: Dict[str, Any] = field(default_factory=dict)
    build: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return value == 0
    return False


_SCHOOL_RULE = DomainRule('school', SCHOOLS, 'School must be wlhs or wvhs')
_GRADE_RULE = DomainRule('grade_level', GRADE_LEVELS, 'Grade level must be 9, 10, 11, or 12', coerce=coerce_int)
_SCHEDULE_RULE = DomainRule('schedule', SCHEDULES, 'Schedule must be A or B', optional=True)


def _build_event(data: Dict[str, Any]) -> Dict[str, Any]:
    data['date'] = require_date(data.get('date'))
    data['time'] = normalize_time(data.get('time'))
    data['department'] = _text(data.get('department')) or None
    return data


def _build_event_update(data: Dict[str, Any]) -> Dict[str, Any]:
    data['time'] = normalize_time(data.get('time'))
    data['department'] = _text(data.get('department')) or None
    return data


def _build_material(data: Dict[str, Any]) -> Dict[str, Any]:
    data['date'] = require_date(data.get('date'))
    return data


def _build_day_schedule(data: Dict[str, Any]) -> Dict[str, Any]:
    data['date'] = require_date(data.get('date'))
    data['schedule'] = data.get('schedule') or None
    return data


def _build_day_type(data: Dict[str, Any]) -> Dict[str, Any]:
    data['date'] = require_date(data.get('date'))
    data['type'] = _text(data.get('type')) or None
    return data


def _build_date_config(data: Dict[str, Any]) -> Dict[str, Any]:
    data['date_key'] = require_date(data.get('date_key'), 'date_key')
    # blank means "keep the stored color", as for day_type
    color = data.get('color') or None
    data['color'] = color
    if color is not None:
        if not isinstance(color, str) or not _HEX_COLOR.match(color.strip()):
            raise ValidationError('Color must be a hex value such as #fff or #1a2b3c', ['color'])
        data['color'] = color.strip()
    data['day_type'] = data.get('day_type') or None
    data['is_access'] = coerce_bool(data.get('is_access'), 'is_access')
    return data


def _build_material_filter(data: Dict[str, Any]) -> Dict[str, Any]:
    if _is_missing(data.get('grade')):
        data['grade'] = None
    return data


RULES: Dict[str, EntityRules] = {
    'event.create': EntityRules(
        model=EventFields,
        required=('school', 'date', 'title'),
        required_message='School, date, and title are required',
        domains=(_SCHOOL_RULE,),
        defaults={'description': ''},
        build=_build_event,
    ),
    'event.update': EntityRules(
        model=EventUpdateFields,
        required=('title',),
        required_message='Title is required',
        defaults={'description': ''},
        build=_build_event_update,
    ),
    'event.list': EntityRules(
        model=EventFilter,
        required=('school',),
        required_message='School parameter is required (wlhs or wvhs)',
        domains=(_SCHOOL_RULE,),
    ),
    'material.create': EntityRules(
        model=MaterialFields,
        required=('school', 'date', 'grade_level', 'title', 'link'),
        required_message='School, date, grade_level, title, and link are required',
        domains=(_SCHOOL_RULE, _GRADE_RULE),
        defaults={'description': '', 'password': ''},
        build=_build_material,
    ),
    'material.update': EntityRules(
        model=MaterialUpdateFields,
        required=('title', 'link'),
        required_message='Title and link are required',
        defaults={'description': '', 'password': ''},
    ),
    'material.list': EntityRules(
        model=MaterialFilter,
        required=('school',),
        required_message='School parameter is required (wlhs or wvhs)',
        domains=(
            _SCHOOL_RULE,
            DomainRule('grade', GRADE_LEVELS, 'Grade must be 9, 10, 11, or 12', coerce=coerce_int, optional=True),
        ),
        build=_build_material_filter,
    ),
    'day_schedule': EntityRules(
        model=DayScheduleFields,
        required=('date',),
        required_message='Date is required',
        domains=(_SCHEDULE_RULE,),
        build=_build_day_schedule,
    ),
    'day_type': EntityRules(
        model=DayTypeFields,
        required=('date',),
        required_message='Date is required',
        build=_build_day_type,
    ),
    'date_config': EntityRules(
        model=DateConfigFields,
        required=('date_key',),
        required_message='Date key is required',
        domains=(DomainRule('day_type', SCHEDULES, 'Day type must be A, B, or null', optional=True),),
        build=_build_date_config,
    ),
}


def _check_domain(rule: DomainRule, data: Dict[str, Any]) -> None:
    raw = data.get(rule.field)
    if rule.optional and _is_missing(raw):
        return
    value = rule.coerce(raw) if rule.coerce else raw
    if value not in rule.allowed:
        raise ValidationError(rule.message, [rule.field])
    data[rule.field] = value


def validate(entity: str, payload: Optional[Mapping[str, Any]]) -> Any:
    try:
        rules = RULES[entity]
    except KeyError:
        raise ValueError(f'unknown entity rule set: {entity}') from None

    data: Dict[str, Any] = dict(payload or {})

    missing = [name for name in rules.required if _is_missing(data.get(name))]
    if missing:
        raise ValidationError(rules.required_message, list(rules.required))

    for rule in rules.domains:
        _check_domain(rule, data)

    for name, default in rules.defaults.items():
        if _is_missing(data.get(name)):
            data[name] = default
        else:
            data[name] = _text(data[name])

    for name in ('title', 'link'):
        if name in data and name in rules.model.model_fields:
            data[name] = _text(data[name])

    if rules.build is not None:
        data = rules.build(data)

    known = {name: data.get(name) for name in rules.model.model_fields if name in data}
    return rules.model(**known)
