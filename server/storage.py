"""JSON-file store used when no DATABASE_URL is configured."""

import json
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Mapping, Optional, Union

from upsert import CoalesceMergeUpsert, DeleteOnNullUpsert

DEFAULT_STATE: Dict[str, Any] = {
    'events': [],
    'materials': [],
    'day_schedules': [],
    'day_types': [],
    'date_configs': [],
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ensure_defaults(data: Dict[str, Any]) -> Dict[str, Any]:
    for key, default in DEFAULT_STATE.items():
        if key not in data:
            data[key] = [] if isinstance(default, list) else default
    return data


def _next_id(items: List[Dict[str, Any]]) -> int:
    return max((int(item.get('id', 0)) for item in items), default=0) + 1


class JsonStorage:
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = Lock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return _ensure_defaults({})
        text = self.path.read_text(encoding='utf-8')
        data = json.loads(text) if text.strip() else {}
        return _ensure_defaults(data)

    def _write(self, obj: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(obj, ensure_ascii=False, indent=2), encoding='utf-8')

    # --- Keyed-by-id tables ---------------------------------------------------

    def _insert(self, table: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        with self._lock:
            obj = self._read()
            items = obj.setdefault(table, [])
            now = _now()
            rec = {'id': _next_id(items), **fields, 'created_at': now, 'updated_at': now}
            items.append(rec)
            self._write(obj)
            return dict(rec)

    def _update(self, table: str, record_id: int, changes: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            obj = self._read()
            for rec in obj.setdefault(table, []):
                if rec.get('id') == record_id:
                    rec.update(changes)
                    rec['updated_at'] = _now()
                    self._write(obj)
                    return dict(rec)
            return None

    def _delete(self, table: str, record_id: int) -> bool:
        with self._lock:
            obj = self._read()
            items = obj.setdefault(table, [])
            new = [rec for rec in items if rec.get('id') != record_id]
            if len(new) != len(items):
                obj[table] = new
                self._write(obj)
                return True
            return False

    # --- Events ---------------------------------------------------------------

    def list_events(self, school: str) -> List[Dict[str, Any]]:
        rows = [dict(rec) for rec in self._read()['events'] if rec.get('school') == school]
        # NULL times sort last, as in Postgres ascending order
        rows.sort(key=lambda rec: (rec['date'], rec.get('time') is None, rec.get('time') or '', rec['id']))
        return rows

    def create_event(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        return self._insert('events', fields)

    def update_event(self, event_id: int, changes: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        return self._update('events', event_id, changes)

    def delete_event(self, event_id: int) -> bool:
        return self._delete('events', event_id)

    # --- Materials ------------------------------------------------------------

    def list_materials(self, school: str, grade: Optional[int] = None) -> List[Dict[str, Any]]:
        rows = [
            dict(rec)
            for rec in self._read()['materials']
            if rec.get('school') == school and (grade is None or rec.get('grade_level') == grade)
        ]
        rows.sort(key=lambda rec: (rec['date'], rec['grade_level'], rec['id']))
        return rows

    def create_material(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        return self._insert('materials', fields)

    def update_material(self, material_id: int, changes: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        return self._update('materials', material_id, changes)

    def delete_material(self, material_id: int) -> bool:
        return self._delete('materials', material_id)

    # --- Keyed-by-date tables -------------------------------------------------

    def list_keyed(self, table: str, key_column: str) -> List[Dict[str, Any]]:
        rows = [dict(rec) for rec in self._read()[table]]
        rows.sort(key=lambda rec: rec[key_column])
        return rows

    def apply_upsert(
        self,
        policy: Union[DeleteOnNullUpsert, CoalesceMergeUpsert],
        key: str,
        value: Any,
    ) -> Dict[str, Any]:
        # Read, merge and write happen under one lock hold.
        with self._lock:
            obj = self._read()
            result = policy.apply_local(obj.setdefault(policy.table, []), key, value)
            self._write(obj)
            return result

    # --- Admin ----------------------------------------------------------------

    def clear_all(self) -> Dict[str, int]:
        with self._lock:
            obj = self._read()
            counts = {table: len(obj.get(table, [])) for table in DEFAULT_STATE}
            self._write(_ensure_defaults({}))
            return counts
