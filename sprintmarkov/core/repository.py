from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

import numpy as np

from sprintmarkov.core.contract import SNAPSHOT_KEEP_COUNT
from sprintmarkov.core.matrix import as_matrix
from sprintmarkov.core.rubric import RubricCriterion


def new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MatrixKind(str, Enum):
    INITIAL = "INITIAL"
    DYNAMIC = "DYNAMIC"


@dataclass(frozen=True)
class Rubric:
    project_id: str
    name: str
    criteria: tuple[RubricCriterion, ...]
    active: bool = False
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class MatrixSnapshot:
    project_id: str
    iteration_id: str
    kind: MatrixKind
    matrix: np.ndarray = field(compare=False)
    window_size: int | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=_now)


class RubricRepository(Protocol):
    def get(self, rubric_id: str) -> Rubric | None: ...

    def put(self, rubric: Rubric) -> Rubric: ...

    def list_by_project(self, project_id: str) -> list[Rubric]: ...


class SnapshotRepository(Protocol):
    def get(self, snapshot_id: str) -> MatrixSnapshot | None: ...

    def put(self, snapshot: MatrixSnapshot) -> MatrixSnapshot: ...

    def list_by_project(self, project_id: str) -> list[MatrixSnapshot]: ...


# ----------------------------
# In-memory implementations
# ----------------------------

class InMemoryRubricRepository:
    """
    Rubric store keyed by id. One instance per caller; nothing is global.
    """

    def __init__(self) -> None:
        self._items: dict[str, Rubric] = {}

    def get(self, rubric_id: str) -> Rubric | None:
        return self._items.get(rubric_id)

    def put(self, rubric: Rubric) -> Rubric:
        self._items[rubric.id] = rubric
        return rubric

    def delete(self, rubric_id: str) -> bool:
        return self._items.pop(rubric_id, None) is not None

    def list_by_project(self, project_id: str) -> list[Rubric]:
        return [r for r in self._items.values() if r.project_id == project_id]

    def active(self, project_id: str) -> Rubric | None:
        return next((r for r in self.list_by_project(project_id) if r.active), None)

    def activate(self, project_id: str, rubric_id: str) -> bool:
        """
        Make rubric_id the project's only active rubric. False if unknown.
        """
        target = self._items.get(rubric_id)
        if target is None or target.project_id != project_id:
            return False
        for r in self.list_by_project(project_id):
            want = r.id == rubric_id
            if r.active != want:
                self._items[r.id] = replace(r, active=want)
        return True


class InMemorySnapshotRepository:
    """
    Matrix snapshot store. Matrices are copied in and out so callers never
    share arrays with the store.
    """

    def __init__(self) -> None:
        self._items: dict[str, MatrixSnapshot] = {}
        self._order: dict[str, int] = {}

    @staticmethod
    def _copy(s: MatrixSnapshot) -> MatrixSnapshot:
        return replace(s, matrix=as_matrix(s.matrix))

    def get(self, snapshot_id: str) -> MatrixSnapshot | None:
        s = self._items.get(snapshot_id)
        return self._copy(s) if s is not None else None

    def put(self, snapshot: MatrixSnapshot) -> MatrixSnapshot:
        stored = self._copy(snapshot)
        self._items[stored.id] = stored
        self._order.setdefault(stored.id, len(self._order))
        return self._copy(stored)

    def list_by_project(self, project_id: str) -> list[MatrixSnapshot]:
        """
        Newest first.
        """
        items = [s for s in self._items.values() if s.project_id == project_id]
        items.sort(key=lambda s: (s.created_at, self._order[s.id]), reverse=True)
        return [self._copy(s) for s in items]

    def latest(self, project_id: str, kind: MatrixKind | None = None) -> MatrixSnapshot | None:
        for s in self.list_by_project(project_id):
            if kind is None or s.kind == kind:
                return s
        return None

    def cleanup(self, project_id: str, keep: int = SNAPSHOT_KEEP_COUNT) -> int:
        """
        Drop the project's oldest snapshots beyond `keep`. Returns how many went.
        """
        stale = self.list_by_project(project_id)[max(keep, 0):]
        for s in stale:
            del self._items[s.id]
        return len(stale)

    def delete_project(self, project_id: str) -> int:
        ids = [s.id for s in self._items.values() if s.project_id == project_id]
        for i in ids:
            del self._items[i]
        return len(ids)

    def stats(self, project_id: str) -> dict[str, Any]:
        snaps = self.list_by_project(project_id)
        windows = [s.window_size for s in snaps if s.window_size is not None]
        return {
            "total": len(snaps),
            "initial": sum(1 for s in snaps if s.kind == MatrixKind.INITIAL),
            "dynamic": sum(1 for s in snaps if s.kind == MatrixKind.DYNAMIC),
            "oldest": snaps[-1].created_at if snaps else None,
            "newest": snaps[0].created_at if snaps else None,
            "average_window_size": round(sum(windows) / len(windows), 1) if windows else 0.0,
        }
