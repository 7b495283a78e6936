"""
State Union
===========

The tracked value of a field, as a closed set of variants:

    Untracked | Active | Inactive | Named(id, extra) | Composite(states)

INVARIANTS:
- Untracked never appears inside a Composite
- A Composite has at least two members and is always flat
- Equality is structural; Named ids compare type-sensitively
  (Named(True) is not Named(1))

`normalize_state` is the only way raw JSON becomes a State.
`state_to_json` is its inverse, used when a state is written back to an event.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Tuple, Union
import json

from .errors import BadStateError
from ..logger import get_logger

logger = get_logger(__name__)

StateId = Union[str, int, float, bool]


class State:
    """Base of the closed state union. Not instantiated directly."""
    __slots__ = ()

    @property
    def is_untracked(self) -> bool:
        return False


@dataclass(frozen=True)
class Untracked(State):
    """The field is not being monitored at all (JSON null)."""

    @property
    def is_untracked(self) -> bool:
        return True

    def __repr__(self):
        return "UNTRACKED"


@dataclass(frozen=True)
class Active(State):
    def __repr__(self):
        return "ACTIVE"


@dataclass(frozen=True)
class Inactive(State):
    def __repr__(self):
        return "INACTIVE"


@dataclass(frozen=True, eq=False)
class Named(State):
    """A state identified by a string/number/bool id with optional extra data."""
    id: StateId
    extra: Mapping[str, Any] = field(default_factory=dict)

    def _identity(self):
        return (type(self.id).__name__, self.id, _canonical(dict(self.extra)))

    def __eq__(self, other):
        if not isinstance(other, Named):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self):
        return hash(self._identity())


@dataclass(frozen=True)
class Composite(State):
    """Several simultaneous states. Order is significant."""
    states: Tuple[State, ...]


UNTRACKED = Untracked()
ACTIVE = Active()
INACTIVE = Inactive()


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def _primitive(value: StateId) -> State:
    if isinstance(value, bool):
        return ACTIVE if value else INACTIVE
    return Named(value)


def _with_extra(state: State, extra: Dict[str, Any]) -> State:
    """Attach extra keys to a normalized (non-untracked) id."""
    if isinstance(state, Active):
        return Named(True, dict(extra))
    if isinstance(state, Inactive):
        return Named(False, dict(extra))
    if isinstance(state, Named):
        return Named(state.id, {**state.extra, **extra})
    if isinstance(state, Composite):
        return Composite(tuple(_with_extra(member, extra) for member in state.states))
    raise BadStateError(f"Cannot attach data to state {state!r}")


def _flatten(members: Iterable[State]) -> Tuple[State, ...]:
    flat = []
    for member in members:
        if member.is_untracked:
            raise BadStateError(
                "null is a special state to indicate that the field is not being "
                "tracked and cannot exist together with other states"
            )
        if isinstance(member, Composite):
            flat.extend(member.states)
        else:
            flat.append(member)
    return tuple(flat)


def normalize_state(raw: Any) -> State:
    """
    Turn a raw JSON state value into a State.

    - null -> Untracked, true/false -> Active/Inactive
    - string/number -> Named
    - list: [] -> Inactive, [x] -> normalize(x), otherwise a flat Composite
    - object: id defaults to true; extra keys ride along on the id
    """
    if isinstance(raw, State):
        return raw
    if raw is None:
        return UNTRACKED
    if isinstance(raw, (bool, int, float, str)):
        return _primitive(raw)
    if isinstance(raw, (list, tuple)):
        if len(raw) == 0:
            return INACTIVE
        if len(raw) == 1:
            return normalize_state(raw[0])
        return Composite(_flatten(normalize_state(member) for member in raw))
    if isinstance(raw, Mapping):
        extra = {key: value for key, value in raw.items() if key != "id"}
        normalized_id = normalize_state(raw.get("id", True))
        if not extra:
            return normalized_id
        if normalized_id.is_untracked:
            logger.warning(
                "null is a special state to indicate that the field is not being "
                "tracked, but additional state data was provided. It has been removed"
            )
            return UNTRACKED
        return _with_extra(normalized_id, extra)
    raise BadStateError(f"Unsupported state value: {raw!r}")


def state_to_json(state: State) -> Any:
    """Inverse of normalize_state: the canonical JSON form of a State."""
    if isinstance(state, Untracked):
        return None
    if isinstance(state, Active):
        return True
    if isinstance(state, Inactive):
        return False
    if isinstance(state, Named):
        if not state.extra:
            return state.id
        return {"id": state.id, **state.extra}
    if isinstance(state, Composite):
        return [state_to_json(member) for member in state.states]
    raise BadStateError(f"Unknown state variant: {state!r}")


def simplify_state(state: State) -> Any:
    """Human-facing form: ids only, composites as lists, None for untracked."""
    if isinstance(state, Named):
        return state.id
    if isinstance(state, Composite):
        return [simplify_state(member) for member in state.states]
    return state_to_json(state)
