from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from calendar_repository import CalendarRepository
from main import create_app
from settings import Settings
from storage import JsonStorage


class RecordingDatabase:
    """Stands in for ``database.Database``; records every statement it is given."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, one: Optional[Dict[str, Any]] = None):
        self.rows = rows or []
        self.one = one
        self.calls: List[tuple] = []

    async def fetch_all(self, query, params=(), *, operation='query the database'):
        self.calls.append(('fetch_all', query, params))
        return self.rows

    async def fetch_one(self, query, params=(), *, operation='query the database'):
        self.calls.append(('fetch_one', query, params))
        return self.one

    async def execute(self, query, params=(), *, operation='update the database'):
        self.calls.append(('execute', query, params))
        return 1


@pytest.fixture
def anyio_backend():
    return 'asyncio'


@pytest.fixture
def storage(tmp_path) -> JsonStorage:
    return JsonStorage(tmp_path / 'storage.json')


@pytest.fixture
def repo(storage) -> CalendarRepository:
    return CalendarRepository(storage=storage)


@pytest.fixture
def client(tmp_path):
    settings = Settings(
        storage_path=tmp_path / 'storage.json',
        cors_origins=['http://localhost:3000'],
    )
    with TestClient(create_app(settings)) as test_client:
        yield test_client
