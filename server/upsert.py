"""Write policies for entities keyed by a calendar date.

Two policies exist and they are deliberately not unified:

* ``DeleteOnNullUpsert`` (day schedules, day types): a null value removes the
  row for the date, anything else replaces it.
* ``CoalesceMergeUpsert`` (date configs): only the supplied fields change;
  omitted ones keep their stored value. The merge is one conditional
  ``INSERT ... ON CONFLICT`` statement so concurrent writers to the same date
  cannot interleave a read and a write.

Each policy also knows how to apply itself to a list of row dicts, which is
what the local JSON store keeps per table.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from errors import StoreError, ValidationError


def _now_text() -> str:
    return datetime.now(timezone.utc).isoformat()


class DeleteOnNullUpsert:
    name = 'delete-on-null'

    def __init__(
        self,
        table: str,
        key_column: str,
        value_column: str,
        allowed: Optional[Tuple[str, ...]] = None,
        label: Optional[str] = None,
    ):
        self.table = table
        self.key_column = key_column
        self.value_column = value_column
        self.allowed = allowed
        self.label = label or table.replace('_', ' ')

    @property
    def delete_sql(self) -> str:
        return f"DELETE FROM {self.table} WHERE {self.key_column} = %s"

    @property
    def upsert_sql(self) -> str:
        return (
            f"""INSERT INTO {self.table} ({self.key_column}, {self.value_column}, updated_at)
               VALUES (%s, %s, now())
               ON CONFLICT ({self.key_column}) DO UPDATE
               SET {self.value_column} = EXCLUDED.{self.value_column},
                   updated_at = now()
               RETURNING {self.key_column}, {self.value_column}"""
        )

    @property
    def list_sql(self) -> str:
        return (
            f"SELECT {self.key_column}, {self.value_column} "
            f"FROM {self.table} ORDER BY {self.key_column} ASC"
        )

    def _check(self, value: Any) -> None:
        if self.allowed is not None and value not in self.allowed:
            allowed = ' or '.join(self.allowed)
            raise ValidationError(f'{self.value_column.capitalize()} must be {allowed}', [self.value_column])

    async def apply(self, database: Any, key: str, value: Optional[str]) -> Dict[str, Any]:
        if value is None:
            await database.execute(self.delete_sql, (key,), operation=f'remove {self.label}')
            return {self.key_column: key, self.value_column: None}
        self._check(value)
        row = await database.fetch_one(self.upsert_sql, (key, value), operation=f'update {self.label}')
        if not row:
            raise StoreError(f'Failed to update {self.label}')
        return row

    def apply_local(self, rows: List[Dict[str, Any]], key: str, value: Optional[str]) -> Dict[str, Any]:
        """Same semantics on the in-file table; caller holds the store lock."""
        existing = next((row for row in rows if row.get(self.key_column) == key), None)
        if value is None:
            if existing is not None:
                rows.remove(existing)
            return {self.key_column: key, self.value_column: None}
        self._check(value)
        now = _now_text()
        if existing is None:
            existing = {self.key_column: key, 'created_at': now}
            rows.append(existing)
        existing[self.value_column] = value
        existing['updated_at'] = now
        return {self.key_column: key, self.value_column: value}


class CoalesceMergeUpsert:
    name = 'coalesce-merge'

    def __init__(self, table: str, key_column: str, defaults: Mapping[str, Any], label: Optional[str] = None):
        self.table = table
        self.key_column = key_column
        # column -> value stored on first insert when the write omits it
        self.defaults = dict(defaults)
        self.label = label or table.replace('_', ' ')

    @property
    def columns(self) -> List[str]:
        return list(self.defaults)

    @property
    def merge_sql(self) -> str:
        insert_columns = ', '.join([self.key_column, *self.columns, 'updated_at'])
        insert_values = ', '.join(
            ['%(key)s']
            + [f'COALESCE(%({col})s, %({col}__default)s)' for col in self.columns]
            + ['now()']
        )
        assignments = ',\n                   '.join(
            [f'{col} = COALESCE(%({col})s, {self.table}.{col})' for col in self.columns]
            + ['updated_at = now()']
        )
        returning = ', '.join([self.key_column, *self.columns])
        return (
            f"""INSERT INTO {self.table} ({insert_columns})
               VALUES ({insert_values})
               ON CONFLICT ({self.key_column}) DO UPDATE
               SET {assignments}
               RETURNING {returning}"""
        )

    @property
    def list_sql(self) -> str:
        returning = ', '.join([self.key_column, *self.columns])
        return f"SELECT {returning} FROM {self.table} ORDER BY {self.key_column} ASC"

    def params(self, key: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        params: Dict[str, Any] = {'key': key}
        for col, default in self.defaults.items():
            params[col] = fields.get(col)
            params[f'{col}__default'] = default
        return params

    async def apply(self, database: Any, key: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        row = await database.fetch_one(self.merge_sql, self.params(key, fields), operation=f'save {self.label}')
        if not row:
            raise StoreError(f'Failed to save {self.label}')
        return row

    def apply_local(self, rows: List[Dict[str, Any]], key: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Same semantics on the in-file table; caller holds the store lock."""
        now = _now_text()
        existing = next((row for row in rows if row.get(self.key_column) == key), None)
        if existing is None:
            existing = {self.key_column: key, 'created_at': now}
            for col, default in self.defaults.items():
                value = fields.get(col)
                existing[col] = default if value is None else value
            rows.append(existing)
        else:
            for col in self.columns:
                value = fields.get(col)
                if value is not None:
                    existing[col] = value
        existing['updated_at'] = now
        return {self.key_column: key, **{col: existing.get(col) for col in self.columns}}


DAY_SCHEDULES = DeleteOnNullUpsert('day_schedules', 'date', 'schedule', allowed=('A', 'B'), label='day schedule')
DAY_TYPES = DeleteOnNullUpsert('day_types', 'date', 'type', label='day type')
DATE_CONFIGS = CoalesceMergeUpsert(
    'date_configs',
    'date_key',
    {'color': None, 'day_type': None, 'is_access': False},
    label='date config',
)
