"""
Observability & Audit Layer

RESPONSIBILITY: Record what consistency checks found and changed
ALLOWED INPUTS: Notifications from the orchestrator and the engine
OUTPUTS: AuditLogEntry records

WHAT THIS LAYER MUST NOT DO:
============================
- Modify system behavior
- Filter or interpret events at record time
- Make decisions based on logged data

BOUNDARY ENFORCEMENT:
=====================
- Entries are immutable and append-only
- Read access returns copies
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple
import threading

from ..contracts.base import Timestamp, TimeRange


# =============================================================================
# AUDIT ENTRIES
# =============================================================================

class AuditEventType(Enum):
    """Explicit audit event types."""
    CHECK_STARTED = "check_started"
    CHECK_FINISHED = "check_finished"
    ERROR_REPORTED = "error_reported"
    REPAIR_APPLIED = "repair_applied"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class AuditLogEntry:
    """Immutable audit log entry."""
    entry_id: str
    event_type: AuditEventType
    timestamp: Timestamp
    field: Optional[str]
    action: str
    entity_id: Optional[str] = None
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, object]:
        return {
            'entry_id': self.entry_id,
            'event_type': self.event_type.value,
            'timestamp': self.timestamp.to_iso(),
            'field': self.field,
            'action': self.action,
            'entity_id': self.entity_id,
            'metadata': dict(self.metadata),
        }


# =============================================================================
# AUDIT TRAIL
# =============================================================================

class AuditTrail:
    """
    Append-only collector of audit entries.

    One trail is shared by every orchestrator an engine creates; entries
    from different fields are told apart by `field`.
    """

    def __init__(self):
        self._entries: List[AuditLogEntry] = []
        self._sequence: int = 0
        self._lock = threading.Lock()

    def record(
        self,
        event_type: AuditEventType,
        action: str,
        field: Optional[str] = None,
        entity_id: Optional[str] = None,
        **metadata: str
    ) -> AuditLogEntry:
        pairs = tuple(sorted((key, str(value)) for key, value in metadata.items()))
        with self._lock:
            self._sequence += 1
            entry = AuditLogEntry(
                entry_id=f"audit_{self._sequence:06d}",
                event_type=event_type,
                timestamp=Timestamp.now(),
                field=field,
                action=action,
                entity_id=entity_id,
                metadata=pairs,
            )
            self._entries.append(entry)
        return entry

    def get_entries(
        self,
        event_type: Optional[AuditEventType] = None,
        field: Optional[str] = None,
        time_range: Optional[TimeRange] = None
    ) -> List[AuditLogEntry]:
        """Get entries, optionally filtered."""
        with self._lock:
            entries = list(self._entries)

        if event_type:
            entries = [e for e in entries if e.event_type == event_type]

        if field is not None:
            entries = [e for e in entries if e.field == field]

        if time_range:
            entries = [e for e in entries if time_range.contains(e.timestamp.value)]

        return list(entries)


__all__ = ['AuditEventType', 'AuditLogEntry', 'AuditTrail']
