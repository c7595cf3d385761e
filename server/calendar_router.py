from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request

from calendar_repository import CalendarRepository
from errors import NotFoundError
from validators import validate

calendar_router = APIRouter(prefix='/api', tags=['calendar'])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_repository(request: Request) -> CalendarRepository:
    return request.app.state.repository


# --- Events ---------------------------------------------------------------------


@calendar_router.get('/events')
async def list_events(school: Optional[str] = None, repo: CalendarRepository = Depends(get_repository)):
    query = validate('event.list', {'school': school})
    records = await repo.list_events(query)
    return {
        'data': [record.model_dump() for record in records],
        'count': len(records),
        'school': query.school,
        'timestamp': _timestamp(),
    }


@calendar_router.post('/events', status_code=201)
async def create_event(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    repo: CalendarRepository = Depends(get_repository),
):
    fields = validate('event.create', payload)
    record = await repo.create_event(fields)
    return {
        'success': True,
        'data': record.model_dump(),
        'message': 'Event created successfully',
        'timestamp': _timestamp(),
    }


@calendar_router.put('/events/{event_id}')
async def update_event(
    event_id: int,
    payload: Optional[Dict[str, Any]] = Body(default=None),
    repo: CalendarRepository = Depends(get_repository),
):
    fields = validate('event.update', payload)
    record = await repo.update_event(event_id, fields)
    if record is None:
        raise NotFoundError('Event', event_id)
    return {
        'success': True,
        'data': record.model_dump(),
        'message': 'Event updated successfully',
        'timestamp': _timestamp(),
    }


@calendar_router.delete('/events/{event_id}')
async def delete_event(event_id: int, repo: CalendarRepository = Depends(get_repository)):
    if not await repo.delete_event(event_id):
        raise NotFoundError('Event', event_id)
    return {
        'success': True,
        'message': 'Event deleted successfully',
        'id': event_id,
        'timestamp': _timestamp(),
    }


# --- Materials ------------------------------------------------------------------


@calendar_router.get('/materials')
async def list_materials(
    school: Optional[str] = None,
    grade: Optional[str] = None,
    repo: CalendarRepository = Depends(get_repository),
):
    query = validate('material.list', {'school': school, 'grade': grade})
    records = await repo.list_materials(query)
    return {
        'data': [record.model_dump() for record in records],
        'count': len(records),
        'school': query.school,
        'grade': query.grade if query.grade is not None else 'all',
        'timestamp': _timestamp(),
    }


@calendar_router.post('/materials', status_code=201)
async def create_material(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    repo: CalendarRepository = Depends(get_repository),
):
    fields = validate('material.create', payload)
    record = await repo.create_material(fields)
    return {
        'success': True,
        'data': record.model_dump(),
        'message': 'Material created successfully',
        'timestamp': _timestamp(),
    }


@calendar_router.put('/materials/{material_id}')
async def update_material(
    material_id: int,
    payload: Optional[Dict[str, Any]] = Body(default=None),
    repo: CalendarRepository = Depends(get_repository),
):
    fields = validate('material.update', payload)
    record = await repo.update_material(material_id, fields)
    if record is None:
        raise NotFoundError('Material', material_id)
    return {
        'success': True,
        'data': record.model_dump(),
        'message': 'Material updated successfully',
        'timestamp': _timestamp(),
    }


@calendar_router.delete('/materials/{material_id}')
async def delete_material(material_id: int, repo: CalendarRepository = Depends(get_repository)):
    if not await repo.delete_material(material_id):
        raise NotFoundError('Material', material_id)
    return {
        'success': True,
        'message': 'Material deleted successfully',
        'id': material_id,
        'timestamp': _timestamp(),
    }


# --- Day schedules / day types --------------------------------------------------


@calendar_router.get('/day-schedules')
async def list_day_schedules(repo: CalendarRepository = Depends(get_repository)):
    records = await repo.list_day_schedules()
    return {
        'data': [record.model_dump() for record in records],
        'count': len(records),
        'timestamp': _timestamp(),
    }


@calendar_router.post('/day-schedules')
async def set_day_schedule(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    repo: CalendarRepository = Depends(get_repository),
):
    fields = validate('day_schedule', payload)
    record = await repo.set_day_schedule(fields)
    return {
        'success': True,
        'message': 'Day schedule updated' if record.schedule else 'Day schedule removed',
        'date': record.date,
        'schedule': record.schedule,
        'timestamp': _timestamp(),
    }


@calendar_router.get('/day-types')
async def list_day_types(repo: CalendarRepository = Depends(get_repository)):
    records = await repo.list_day_types()
    return {
        'data': [record.model_dump() for record in records],
        'count': len(records),
        'timestamp': _timestamp(),
    }


@calendar_router.post('/day-types')
async def set_day_type(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    repo: CalendarRepository = Depends(get_repository),
):
    fields = validate('day_type', payload)
    record = await repo.set_day_type(fields)
    return {
        'success': True,
        'message': 'Day type updated' if record.type else 'Day type removed',
        'date': record.date,
        'type': record.type,
        'timestamp': _timestamp(),
    }


# --- Date configs ---------------------------------------------------------------


@calendar_router.get('/date-configs')
async def list_date_configs(repo: CalendarRepository = Depends(get_repository)):
    records = await repo.list_date_configs()
    return {
        'data': [record.model_dump() for record in records],
        'count': len(records),
        'timestamp': _timestamp(),
    }


@calendar_router.post('/date-configs')
async def merge_date_config(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    repo: CalendarRepository = Depends(get_repository),
):
    fields = validate('date_config', payload)
    record = await repo.merge_date_config(fields)
    return {
        'success': True,
        'data': record.model_dump(),
        'message': 'Date config saved',
        'timestamp': _timestamp(),
    }


# --- Admin ----------------------------------------------------------------------


@calendar_router.delete('/admin/clear-all')
async def clear_all(repo: CalendarRepository = Depends(get_repository)):
    counts = await repo.clear_all()
    return {
        'success': True,
        'message': 'All data cleared successfully',
        'cleared': {
            'events': counts.get('events', 0),
            'materials': counts.get('materials', 0),
            'daySchedules': counts.get('day_schedules', 0),
            'dayTypes': counts.get('day_types', 0),
            'dateConfigs': counts.get('date_configs', 0),
        },
        'timestamp': _timestamp(),
    }
