import pytest

from errors import ValidationError
from upsert import DATE_CONFIGS, DAY_SCHEDULES, DAY_TYPES

from conftest import RecordingDatabase


# --- delete-on-null ---------------------------------------------------------------


def test_delete_on_null_insert_then_replace():
    rows = []
    DAY_SCHEDULES.apply_local(rows, '2024-09-03', 'A')
    DAY_SCHEDULES.apply_local(rows, '2024-09-03', 'B')
    assert len(rows) == 1
    assert rows[0]['schedule'] == 'B'
    assert rows[0]['updated_at'] >= rows[0]['created_at']


def test_delete_on_null_is_idempotent():
    rows = [{'date': '2024-09-03', 'schedule': 'A'}]
    first = DAY_SCHEDULES.apply_local(rows, '2024-09-03', None)
    second = DAY_SCHEDULES.apply_local(rows, '2024-09-03', None)
    assert rows == []
    assert first == second == {'date': '2024-09-03', 'schedule': None}


def test_delete_on_null_missing_key_is_success():
    rows = [{'date': '2024-09-04', 'type': 'Finals'}]
    assert DAY_TYPES.apply_local(rows, '2024-09-03', None) == {'date': '2024-09-03', 'type': None}
    assert rows == [{'date': '2024-09-04', 'type': 'Finals'}]


def test_delete_on_null_enforces_domain():
    with pytest.raises(ValidationError):
        DAY_SCHEDULES.apply_local([], '2024-09-03', 'C')


@pytest.mark.anyio
async def test_delete_on_null_sql():
    db = RecordingDatabase(one={'date': '2024-09-03', 'schedule': 'A'})
    await DAY_SCHEDULES.apply(db, '2024-09-03', None)
    await DAY_SCHEDULES.apply(db, '2024-09-03', 'A')
    (kind, delete_sql, delete_params), (_, upsert_sql, upsert_params) = db.calls
    assert kind == 'execute'
    assert delete_sql.startswith('DELETE FROM day_schedules')
    assert delete_params == ('2024-09-03',)
    assert 'ON CONFLICT (date) DO UPDATE' in upsert_sql
    assert 'updated_at = now()' in upsert_sql
    assert upsert_params == ('2024-09-03', 'A')


# --- coalesce-merge ---------------------------------------------------------------


def test_coalesce_merge_first_write_uses_defaults():
    rows = []
    result = DATE_CONFIGS.apply_local(rows, '2024-09-03', {'color': '#fff', 'day_type': None, 'is_access': None})
    assert result == {'date_key': '2024-09-03', 'color': '#fff', 'day_type': None, 'is_access': False}


def test_coalesce_merge_preserves_untouched_fields():
    rows = [{'date_key': '2024-09-03', 'color': '#fff', 'day_type': 'A', 'is_access': False}]
    result = DATE_CONFIGS.apply_local(rows, '2024-09-03', {'color': None, 'day_type': None, 'is_access': True})
    assert result == {'date_key': '2024-09-03', 'color': '#fff', 'day_type': 'A', 'is_access': True}
    assert len(rows) == 1


def test_coalesce_merge_false_is_a_value():
    rows = [{'date_key': '2024-09-03', 'color': None, 'day_type': 'B', 'is_access': True}]
    result = DATE_CONFIGS.apply_local(rows, '2024-09-03', {'is_access': False})
    assert result['is_access'] is False
    assert result['day_type'] == 'B'


@pytest.mark.anyio
async def test_coalesce_merge_is_a_single_statement():
    db = RecordingDatabase(one={'date_key': '2024-09-03', 'color': '#fff', 'day_type': 'A', 'is_access': True})
    row = await DATE_CONFIGS.apply(db, '2024-09-03', {'color': None, 'day_type': None, 'is_access': True})
    assert row['color'] == '#fff'
    assert len(db.calls) == 1
    kind, sql, params = db.calls[0]
    assert kind == 'fetch_one'
    assert sql.startswith('INSERT INTO date_configs')
    assert 'ON CONFLICT (date_key) DO UPDATE' in sql
    for col in ('color', 'day_type', 'is_access'):
        assert f'{col} = COALESCE(%({col})s, date_configs.{col})' in sql
    assert params['key'] == '2024-09-03'
    assert params['is_access'] is True
    assert params['color'] is None
    assert params['is_access__default'] is False
