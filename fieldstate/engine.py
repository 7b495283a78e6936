"""
Engine Orchestration Module

This module provides the unified interface over the storage, validation
and observability layers.

DESIGN PRINCIPLES:
==================
1. Layers communicate ONLY through contracts
2. One ConsistencyOrchestrator per field per check; no state is shared
   between fields except the audit trail
3. Every check is recorded by observability
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional
import os

from .contracts.base import to_utc
from .contracts.events import Boundary, StateErrorSummary
from .contracts.state import State, UNTRACKED
from .observability import AuditLogEntry, AuditTrail, AuditEventType
from .storage import InMemoryEventStore, StoreConfig, create_store
from .temporal.derivation import BOUNDARY_VIEW
from .validation.orchestrator import ConsistencyOrchestrator


_FALSE_VALUES = ("0", "false", "no", "off")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() not in _FALSE_VALUES


@dataclass
class CheckConfig:
    """Defaults for consistency checks."""
    fail_on_error: bool = True
    fix: bool = False
    flag_repeated_states: bool = False
    sweep_overlaps: bool = True
    max_conflict_restarts: int = 1


@dataclass
class EngineConfig:
    """Unified configuration for the engine."""
    store: StoreConfig = None
    check: CheckConfig = None

    def __post_init__(self):
        self.store = self.store or StoreConfig()
        self.check = self.check or CheckConfig()

    @staticmethod
    def from_env() -> EngineConfig:
        """
        FIELDSTATE_STORE_PATH      JSON-lines store (in-memory when unset)
        FIELDSTATE_FAIL_ON_ERROR   stop at the first error (default on)
        FIELDSTATE_FLAG_REPEATED   report repeated states (default off)
        """
        path = os.environ.get("FIELDSTATE_STORE_PATH")
        store = StoreConfig(backend_type="file", path=path) if path else StoreConfig()
        check = CheckConfig(
            fail_on_error=_env_flag("FIELDSTATE_FAIL_ON_ERROR", True),
            flag_repeated_states=_env_flag("FIELDSTATE_FLAG_REPEATED", False),
        )
        return EngineConfig(store=store, check=check)


class FieldStateEngine:
    """
    Facade over one event store.

    Checks, state lookups and timelines for any field in the store.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        store: Optional[InMemoryEventStore] = None
    ):
        self._config = config or EngineConfig()
        self._store = store if store is not None else create_store(self._config.store)
        self._audit = AuditTrail()

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def store(self) -> InMemoryEventStore:
        return self._store

    def orchestrator(self, field: str) -> ConsistencyOrchestrator:
        check = self._config.check
        return ConsistencyOrchestrator(
            self._store,
            field,
            audit=self._audit,
            flag_repeated_states=check.flag_repeated_states,
            sweep_overlaps=check.sweep_overlaps,
            max_conflict_restarts=check.max_conflict_restarts,
        )

    def check(
        self,
        field: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        fail_on_error: Optional[bool] = None,
        fix: Optional[bool] = None
    ) -> StateErrorSummary:
        if fail_on_error is None:
            fail_on_error = self._config.check.fail_on_error
        if fix is None:
            fix = self._config.check.fix
        return self.orchestrator(field).check(
            start=start, end=end, fail_on_error=fail_on_error, fix=fix
        )

    def check_fields(
        self,
        fields: Optional[Iterable[str]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        fail_on_error: Optional[bool] = None,
        fix: Optional[bool] = None
    ) -> Dict[str, StateErrorSummary]:
        """Check each field independently; defaults to every field in the store."""
        names = list(fields) if fields is not None else self._store.fields()
        return {
            name: self.check(name, start=start, end=end, fail_on_error=fail_on_error, fix=fix)
            for name in names
        }

    def active_state(self, field: str, at: Optional[datetime] = None) -> State:
        """State in effect at `at` (inclusive), or the latest state."""
        rows = self._store.range_scan(
            BOUNDARY_VIEW, field, end=to_utc(at) if at is not None else None,
            descending=True, limit=1,
        )
        return rows[0].active_state if rows else UNTRACKED

    def timeline(
        self,
        field: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[Boundary]:
        return self._store.range_scan(BOUNDARY_VIEW, field, start, end, inclusive_end=False)

    def fields(self) -> List[str]:
        return self._store.fields()

    def audit_log(
        self,
        event_type: Optional[AuditEventType] = None,
        field: Optional[str] = None
    ) -> List[AuditLogEntry]:
        return self._audit.get_entries(event_type=event_type, field=field)
