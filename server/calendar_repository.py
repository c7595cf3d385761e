from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

from calendar_models import (
    DateConfigFields,
    DateConfigRecord,
    DayScheduleFields,
    DayScheduleRecord,
    DayTypeFields,
    DayTypeRecord,
    EventFields,
    EventFilter,
    EventRecord,
    EventUpdateFields,
    MaterialFields,
    MaterialFilter,
    MaterialRecord,
    MaterialUpdateFields,
)
from database import Database
from errors import StoreError
from storage import JsonStorage
from upsert import DATE_CONFIGS, DAY_SCHEDULES, DAY_TYPES

EVENT_COLUMNS = 'id, school, date, title, department, time, description, created_at, updated_at'
MATERIAL_COLUMNS = 'id, school, date, grade_level, title, link, description, password, created_at, updated_at'


CLEARABLE_TABLES = ('materials', 'events', 'day_schedules', 'day_types', 'date_configs')


class CalendarRepository:
    """CRUD over the calendar tables against Postgres or the local JSON store.

    Every call goes to the backend; nothing is cached between requests.
    """

    def __init__(self, database: Optional[Database] = None, storage: Optional[JsonStorage] = None):
        self.database = database
        self.storage = storage

    @property
    def use_db(self) -> bool:
        return self.database is not None

    def _require_storage(self) -> JsonStorage:
        if self.storage is None:
            raise StoreError('Database not connected')
        return self.storage

    async def _local(self, func: Callable[..., Any], *args: Any) -> Any:
        # JSON file reads and writes run on a worker thread, off the event loop
        return await asyncio.to_thread(func, *args)

    # --- Events ---------------------------------------------------------------

    async def list_events(self, query: EventFilter) -> List[EventRecord]:
        if self.use_db:
            rows = await self.database.fetch_all(
                f"""SELECT {EVENT_COLUMNS}
                    FROM events
                    WHERE school = %s
                    ORDER BY date ASC, time ASC NULLS LAST, id ASC""",
                (query.school,),
                operation='fetch events',
            )
        else:
            rows = await self._local(self._require_storage().list_events, query.school)
        return [EventRecord(**row) for row in rows]

    async def create_event(self, fields: EventFields) -> EventRecord:
        if self.use_db:
            row = await self.database.fetch_one(
                f"""INSERT INTO events (school, date, title, department, time, description, updated_at)
                    VALUES (%s, %s, %s, %s, %s, %s, CURRENT_TIMESTAMP)
                    RETURNING {EVENT_COLUMNS}""",
                (fields.school, fields.date, fields.title, fields.department, fields.time, fields.description),
                operation='create event',
            )
            if not row:
                raise StoreError('Failed to create event')
        else:
            row = await self._local(self._require_storage().create_event, fields.model_dump())
        return EventRecord(**row)

    async def update_event(self, event_id: int, fields: EventUpdateFields) -> Optional[EventRecord]:
        if self.use_db:
            row = await self.database.fetch_one(
                f"""UPDATE events
                    SET title = %s, department = %s, time = %s, description = %s, updated_at = CURRENT_TIMESTAMP
                    WHERE id = %s
                    RETURNING {EVENT_COLUMNS}""",
                (fields.title, fields.department, fields.time, fields.description, event_id),
                operation='update event',
            )
        else:
            row = await self._local(self._require_storage().update_event, event_id, fields.model_dump())
        return EventRecord(**row) if row else None

    async def delete_event(self, event_id: int) -> bool:
        if self.use_db:
            row = await self.database.fetch_one(
                'DELETE FROM events WHERE id = %s RETURNING id',
                (event_id,),
                operation='delete event',
            )
            return row is not None
        return await self._local(self._require_storage().delete_event, event_id)

    # --- Materials ------------------------------------------------------------

    async def list_materials(self, query: MaterialFilter) -> List[MaterialRecord]:
        if self.use_db:
            sql = f"""SELECT {MATERIAL_COLUMNS}
                      FROM materials
                      WHERE school = %s"""
            params: List[Any] = [query.school]
            if query.grade is not None:
                sql += ' AND grade_level = %s'
                params.append(query.grade)
            sql += ' ORDER BY date ASC, grade_level ASC, id ASC'
            rows = await self.database.fetch_all(sql, tuple(params), operation='fetch materials')
        else:
            rows = await self._local(self._require_storage().list_materials, query.school, query.grade)
        return [MaterialRecord(**row) for row in rows]

    async def create_material(self, fields: MaterialFields) -> MaterialRecord:
        if self.use_db:
            row = await self.database.fetch_one(
                f"""INSERT INTO materials (school, date, grade_level, title, link, description, password, updated_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, CURRENT_TIMESTAMP)
                    RETURNING {MATERIAL_COLUMNS}""",
                (
                    fields.school,
                    fields.date,
                    fields.grade_level,
                    fields.title,
                    fields.link,
                    fields.description,
                    fields.password,
                ),
                operation='create material',
            )
            if not row:
                raise StoreError('Failed to create material')
        else:
            row = await self._local(self._require_storage().create_material, fields.model_dump())
        return MaterialRecord(**row)

    async def update_material(self, material_id: int, fields: MaterialUpdateFields) -> Optional[MaterialRecord]:
        if self.use_db:
            row = await self.database.fetch_one(
                f"""UPDATE materials
                    SET title = %s, link = %s, description = %s, password = %s, updated_at = CURRENT_TIMESTAMP
                    WHERE id = %s
                    RETURNING {MATERIAL_COLUMNS}""",
                (fields.title, fields.link, fields.description, fields.password, material_id),
                operation='update material',
            )
        else:
            row = await self._local(self._require_storage().update_material, material_id, fields.model_dump())
        return MaterialRecord(**row) if row else None

    async def delete_material(self, material_id: int) -> bool:
        if self.use_db:
            row = await self.database.fetch_one(
                'DELETE FROM materials WHERE id = %s RETURNING id',
                (material_id,),
                operation='delete material',
            )
            return row is not None
        return await self._local(self._require_storage().delete_material, material_id)

    # --- Day schedules / day types (delete-on-null) ---------------------------

    async def list_day_schedules(self) -> List[DayScheduleRecord]:
        if self.use_db:
            rows = await self.database.fetch_all(DAY_SCHEDULES.list_sql, operation='fetch day schedules')
        else:
            rows = await self._local(self._require_storage().list_keyed, DAY_SCHEDULES.table, DAY_SCHEDULES.key_column)
        return [DayScheduleRecord(**row) for row in rows]

    async def set_day_schedule(self, fields: DayScheduleFields) -> DayScheduleRecord:
        if self.use_db:
            row = await DAY_SCHEDULES.apply(self.database, fields.date, fields.schedule)
        else:
            row = await self._local(self._require_storage().apply_upsert, DAY_SCHEDULES, fields.date, fields.schedule)
        return DayScheduleRecord(**row)

    async def list_day_types(self) -> List[DayTypeRecord]:
        if self.use_db:
            rows = await self.database.fetch_all(DAY_TYPES.list_sql, operation='fetch day types')
        else:
            rows = await self._local(self._require_storage().list_keyed, DAY_TYPES.table, DAY_TYPES.key_column)
        return [DayTypeRecord(**row) for row in rows]

    async def set_day_type(self, fields: DayTypeFields) -> DayTypeRecord:
        if self.use_db:
            row = await DAY_TYPES.apply(self.database, fields.date, fields.type)
        else:
            row = await self._local(self._require_storage().apply_upsert, DAY_TYPES, fields.date, fields.type)
        return DayTypeRecord(**row)

    # --- Date configs (coalesce-merge) ----------------------------------------

    async def list_date_configs(self) -> List[DateConfigRecord]:
        if self.use_db:
            rows = await self.database.fetch_all(DATE_CONFIGS.list_sql, operation='fetch date configs')
        else:
            rows = await self._local(self._require_storage().list_keyed, DATE_CONFIGS.table, DATE_CONFIGS.key_column)
        return [DateConfigRecord(**row) for row in rows]

    async def merge_date_config(self, fields: DateConfigFields) -> DateConfigRecord:
        changes: Dict[str, Any] = fields.model_dump(exclude={'date_key'})
        if self.use_db:
            row = await DATE_CONFIGS.apply(self.database, fields.date_key, changes)
        else:
            row = await self._local(self._require_storage().apply_upsert, DATE_CONFIGS, fields.date_key, changes)
        return DateConfigRecord(**row)

    # --- Admin ----------------------------------------------------------------

    async def clear_all(self) -> Dict[str, int]:
        if not self.use_db:
            return await self._local(self._require_storage().clear_all)
        counts: Dict[str, int] = {}
        async with self.database.connection('clear data') as conn:
            async with conn.transaction():
                for table in CLEARABLE_TABLES:
                    async with conn.cursor() as cur:
                        await cur.execute(f'DELETE FROM {table}')
                        counts[table] = cur.rowcount
        return counts
