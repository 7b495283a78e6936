"""
API Mapper
==========

Transforms engine results into response DTOs. Raw structure is exposed
as-is: errors keep both document ids, boundaries keep their role.
"""
from typing import Any, Dict, List, Optional
from datetime import datetime

from ..contracts.base import format_instant
from ..contracts.events import Boundary, StateErrorSummary
from ..contracts.errors import StateChangeError
from ..contracts.state import State, simplify_state, state_to_json


def map_error_to_dto(error: StateChangeError) -> Dict[str, Any]:
    return {
        "type": type(error).__name__,
        "code": error.code.name,
        "field": error.field,
        "occur_time": format_instant(error.occur_time),
        "ids": list(error.ids),
        "message": error.message,
    }


def map_summary_to_dto(field: str, summary: StateErrorSummary) -> Dict[str, Any]:
    return {
        "field": field,
        "ok": summary.ok,
        "errors": [map_error_to_dto(e) for e in summary.errors],
    }


def map_boundary_to_dto(row: Boundary) -> Dict[str, Any]:
    return {
        "id": row.id,
        "timestamp": format_instant(row.timestamp),
        "role": row.role.value,
        "last_state": state_to_json(row.last_state),
        "active_state": state_to_json(row.active_state),
    }


def map_timeline_to_dto(field: str, rows: List[Boundary]) -> Dict[str, Any]:
    return {
        "field": field,
        "rows": [map_boundary_to_dto(row) for row in rows],
    }


def map_state_to_dto(field: str, state: State, at: Optional[datetime]) -> Dict[str, Any]:
    return {
        "field": field,
        "at": format_instant(at) if at is not None else None,
        "state": state_to_json(state),
        "simple": simplify_state(state),
    }
