"""
Validation Layer

RESPONSIBILITY: Decide whether a field's derived timeline is consistent
ALLOWED INPUTS: Ordered Boundary / IntervalDelta rows, an EventIndex
OUTPUTS: StateErrorSummary, StateChangeError

WHAT THIS LAYER MUST NOT DO:
============================
- Derive facts itself (that is the temporal layer)
- Write anything except the single lastState repair patch
"""

from .chain import ChainValidator, initial_boundary, INITIAL_BOUNDARY_ID
from .overlap import (
    BlockOverlapValidator, initial_delta, INITIAL_DELTA_ID,
    BLOCK_STARTS_WITHIN_BLOCK, STATE_CHANGES_WITHIN_BLOCK, BLOCK_ENDS_WITHIN_BLOCK,
)
from .orchestrator import ConsistencyOrchestrator

__all__ = [
    'ChainValidator',
    'initial_boundary',
    'INITIAL_BOUNDARY_ID',
    'BlockOverlapValidator',
    'initial_delta',
    'INITIAL_DELTA_ID',
    'BLOCK_STARTS_WITHIN_BLOCK',
    'STATE_CHANGES_WITHIN_BLOCK',
    'BLOCK_ENDS_WITHIN_BLOCK',
    'ConsistencyOrchestrator',
]
