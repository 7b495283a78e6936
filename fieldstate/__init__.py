"""
Field State Engine

Derives per-field state timelines from an append-only event log and
checks them for consistency.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Immutable shared types: State union, Event, Boundary, IntervalDelta,
     error taxonomy
   - MUST NOT: Perform I/O or import another layer

2. TEMPORAL (temporal/)
   - Responsibility: Duration parsing, event normalization, derivation
     of Boundary / IntervalDelta facts
   - MUST NOT: Read storage, judge consistency

3. STORAGE (storage/)
   - Responsibility: Event persistence and the ordered derived-fact index
   - MUST NOT: Interpret timelines or repair on its own

4. VALIDATION (validation/)
   - Responsibility: Chain continuity, block overlap, root-causing and
     lastState repair
   - MUST NOT: Write anything except the single repair patch

5. OBSERVABILITY (observability/)
   - Responsibility: Append-only audit trail of checks and repairs

Surfaces: engine.FieldStateEngine (facade), cli (argparse), api (FastAPI,
read-only).
"""

__version__ = "0.1.0"
