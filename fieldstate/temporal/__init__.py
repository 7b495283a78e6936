"""
Temporal Layer

Duration parsing, event normalization and per-event derivation of
timeline facts. Everything here is pure and deterministic.
"""

from .duration import parse_duration_seconds
from .normalizer import NormalizedEvent, TransitionKind, normalize_event, default_last_state
from .derivation import IntervalDeriver, BOUNDARY_VIEW, DELTA_VIEW

__all__ = [
    'parse_duration_seconds',
    'NormalizedEvent',
    'TransitionKind',
    'normalize_event',
    'default_last_state',
    'IntervalDeriver',
    'BOUNDARY_VIEW',
    'DELTA_VIEW',
]
