from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from sprintmarkov.core.contract import CELL_TOLERANCE, MATERIAL_DIFFERENCE, STOCHASTIC_TOLERANCE
from sprintmarkov.core.errors import InvalidMatrixError, InvalidPowerError
from sprintmarkov.core.states import N_STATES

SHAPE = (N_STATES, N_STATES)


@dataclass(frozen=True)
class CellDifference:
    row: int
    col: int
    a: float
    b: float
    difference: float


@dataclass(frozen=True)
class MatrixComparison:
    max_absolute_difference: float
    materially_different: bool
    differences: tuple[CellDifference, ...] = ()

    @property
    def equal(self) -> bool:
        return not self.differences


def identity() -> np.ndarray:
    return np.eye(N_STATES, dtype=float)


def uniform() -> np.ndarray:
    return np.full(SHAPE, 1.0 / N_STATES, dtype=float)


def as_matrix(m: Any) -> np.ndarray:
    """
    Fresh float64 3x3 copy of m. Raises InvalidMatrixError on wrong shape,
    non-finite or negative entries.
    """
    try:
        arr = np.array(m, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidMatrixError(f"Matrix is not numeric: {e}") from e

    if arr.shape != SHAPE:
        raise InvalidMatrixError(f"Transition matrix must be {SHAPE[0]}x{SHAPE[1]}, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise InvalidMatrixError("Transition matrix contains NaN or infinite entries.")
    if np.any(arr < 0):
        raise InvalidMatrixError("Transition matrix contains negative entries.")
    return arr


def is_stochastic(m: Any) -> bool:
    """
    True when every row sums to 1 within tolerance. Malformed input is simply
    not stochastic.
    """
    try:
        arr = as_matrix(m)
    except InvalidMatrixError:
        return False
    return bool(np.all(np.abs(arr.sum(axis=1) - 1.0) <= STOCHASTIC_TOLERANCE))


def normalize(m: Any) -> np.ndarray:
    """
    Divide each row by its sum; rows summing to zero become uniform.
    """
    arr = as_matrix(m)
    sums = arr.sum(axis=1)
    out = uniform()
    nonzero = sums > 0
    out[nonzero] = arr[nonzero] / sums[nonzero, None]
    return out


def multiply(a: Any, b: Any) -> np.ndarray:
    return as_matrix(a) @ as_matrix(b)


def power(m: Any, k: int) -> np.ndarray:
    """
    m**k by repeated squaring (O(log k) multiplications). k=0 gives identity.
    """
    if isinstance(k, bool) or not isinstance(k, (int, np.integer)):
        raise InvalidPowerError(f"Matrix power must be an integer, got {k!r}")
    if k < 0:
        raise InvalidPowerError(f"Matrix power must be >= 0, got {k}")

    base = as_matrix(m)
    result = identity()
    n = int(k)
    while n:
        if n & 1:
            result = result @ base
        n >>= 1
        if n:
            base = base @ base
    return result


def compare(a: Any, b: Any) -> MatrixComparison:
    """
    Largest per-cell absolute difference, and whether it exceeds the
    10-percentage-point materiality threshold.
    """
    ma = as_matrix(a)
    mb = as_matrix(b)
    diff = np.abs(ma - mb)

    cells = tuple(
        CellDifference(
            row=int(i),
            col=int(j),
            a=float(ma[i, j]),
            b=float(mb[i, j]),
            difference=float(diff[i, j]),
        )
        for i, j in zip(*np.nonzero(diff > CELL_TOLERANCE))
    )

    max_diff = float(diff.max())
    return MatrixComparison(
        max_absolute_difference=max_diff,
        materially_different=max_diff > MATERIAL_DIFFERENCE,
        differences=cells,
    )


def matrix_to_rows(m: Any) -> list[list[float]]:
    return [[float(v) for v in row] for row in as_matrix(m)]
