from __future__ import annotations

import logging
from typing import Any, Sequence

import numpy as np
import pandas as pd

from sprintmarkov.core.errors import InvalidWindowError
from sprintmarkov.core.matrix import identity, uniform
from sprintmarkov.core.states import N_STATES, STATE_LABELS, UnifiedState, coerce_state

logger = logging.getLogger(__name__)


def _check_window(window_size: int) -> int:
    if isinstance(window_size, bool) or not isinstance(window_size, (int, np.integer)):
        raise InvalidWindowError(f"window_size must be an integer, got {window_size!r}")
    if window_size < 0:
        raise InvalidWindowError(f"window_size must be >= 0, got {window_size}")
    return int(window_size)


def trailing_window(history: Sequence[Any], window_size: int) -> list[UnifiedState]:
    """
    The last window_size + 1 states (window_size transitions), oldest first.
    """
    n = _check_window(window_size)
    states = [coerce_state(s) for s in history]
    keep = min(n + 1, len(states))
    return states[len(states) - keep:] if keep else []


def _count(window: Sequence[UnifiedState]) -> np.ndarray:
    counts = np.zeros((N_STATES, N_STATES), dtype=int)
    for src, dst in zip(window[:-1], window[1:]):
        counts[src.index, dst.index] += 1
    return counts


def transition_counts(history: Sequence[Any], window_size: int) -> pd.DataFrame:
    """
    Observed i -> j counts in the trailing window, labelled by state.
    """
    window = trailing_window(history, window_size)
    counts = _count(window) if len(window) >= 2 else np.zeros((N_STATES, N_STATES), dtype=int)
    df = pd.DataFrame(counts, index=list(STATE_LABELS), columns=list(STATE_LABELS))
    df.index.name = "from_state"
    return df


def estimate(history: Sequence[Any], window_size: int) -> np.ndarray:
    """
    Row-stochastic transition matrix from the trailing window of history.

    P[i, j] = n_ij / sum_k n_ik. Every state is validated, even in a history
    too short to count. Fewer than two states in the window gives the uniform
    matrix; an origin never seen in the window gets an identity row.
    """
    window = trailing_window(history, window_size)
    if len(window) < 2:
        return uniform()

    counts = _count(window)
    totals = counts.sum(axis=1)

    matrix = identity()
    for i in range(N_STATES):
        if totals[i] > 0:
            matrix[i] = counts[i] / totals[i]
        else:
            logger.warning(
                "State %s never observed as an origin in the last %d transitions; using identity row.",
                UnifiedState.from_index(i).value,
                len(window) - 1,
            )
    return matrix
