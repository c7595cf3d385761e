"""Outcome types surfaced by the calendar core.

Each error carries the HTTP status the request layer answers with, so the
FastAPI exception handlers in ``main`` stay a straight translation.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence


class CalendarError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_content(self) -> Dict[str, Any]:
        return {'error': self.message}


class ValidationError(CalendarError):
    """Caller-fault input: missing field, value outside its domain, bad date."""

    status_code = 400

    def __init__(self, message: str, fields: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.fields: List[str] = list(fields or [])

    def to_content(self) -> Dict[str, Any]:
        content = super().to_content()
        if self.fields:
            content['fields'] = self.fields
        return content


class NotFoundError(CalendarError):
    status_code = 404

    def __init__(self, entity: str, identifier: Any):
        super().__init__(f'{entity} not found')
        self.entity = entity
        self.identifier = identifier

    def to_content(self) -> Dict[str, Any]:
        content = super().to_content()
        content['id'] = self.identifier
        return content


class StoreError(CalendarError):
    """Persistence failure; ``details`` keeps the driver message for diagnostics."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.details = details

    def to_content(self) -> Dict[str, Any]:
        content = super().to_content()
        if self.details:
            content['details'] = self.details
        return content
