from __future__ import annotations

from enum import Enum
from typing import Any

from sprintmarkov.core.errors import InvalidLevelError, UnknownStateError


class UnifiedState(str, Enum):
    """
    The Markov chain's alphabet.

    Member order is the matrix index order: 0=Healthy, 1=At Risk, 2=Critical.
    """

    HEALTHY = "Healthy"
    AT_RISK = "At Risk"
    CRITICAL = "Critical"

    @property
    def index(self) -> int:
        return _STATE_TO_INDEX[self]

    @classmethod
    def from_index(cls, index: int) -> "UnifiedState":
        try:
            return _INDEX_TO_STATE[int(index)]
        except (KeyError, TypeError, ValueError):
            raise UnknownStateError(f"State index out of range (0..2): {index!r}") from None

    def __str__(self) -> str:
        return self.value


STATES: tuple[UnifiedState, ...] = (
    UnifiedState.HEALTHY,
    UnifiedState.AT_RISK,
    UnifiedState.CRITICAL,
)
STATE_LABELS: list[str] = [s.value for s in STATES]
N_STATES = len(STATES)

_STATE_TO_INDEX = {s: i for i, s in enumerate(STATES)}
_INDEX_TO_STATE = dict(enumerate(STATES))

# Graded levels 0..4, most healthy to most critical
GRADED_LEVELS = (0, 1, 2, 3, 4)

# Fixed fold: {0,1} -> Healthy, {2} -> At Risk, {3,4} -> Critical
_LEVEL_FOLD = {
    0: UnifiedState.HEALTHY,
    1: UnifiedState.HEALTHY,
    2: UnifiedState.AT_RISK,
    3: UnifiedState.CRITICAL,
    4: UnifiedState.CRITICAL,
}


def fold_level(level: int) -> UnifiedState:
    """
    Fold a graded level (0..4) into its unified state.
    """
    try:
        if not isinstance(level, bool) and level in _LEVEL_FOLD:
            return _LEVEL_FOLD[level]
    except TypeError:
        pass
    raise InvalidLevelError(f"Graded level must be one of {GRADED_LEVELS}, got {level!r}")


def coerce_state(x: Any) -> UnifiedState:
    """
    Accept a UnifiedState, its value ("At Risk") or its name ("AT_RISK"),
    case-insensitively. Anything else is a caller bug.
    """
    if isinstance(x, UnifiedState):
        return x
    if isinstance(x, str):
        key = x.strip().lower()
        for s in STATES:
            if key in (s.value.lower(), s.name.lower()):
                return s
    raise UnknownStateError(f"Unknown unified state: {x!r} (expected one of {STATE_LABELS})")
