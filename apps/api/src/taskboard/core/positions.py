"""
Sparse integer ordering for board lanes.

A lane is every task sharing (workspace_id, project_id, status). New tasks are
appended at max + step; moves between two neighbours take the midpoint, so a
single move never rewrites other rows. Positions stay inside [floor, ceiling];
when a gap or the space at either end of the lane is used up the lane is
renumbered.

Allocation is read-max-then-insert with no lock: two concurrent creates in the
same lane can receive the same position. Ties are broken by board_order_key.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from taskboard.core.config import settings
from taskboard.db.models import Task, TaskStatus

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def next_position(max_position: Optional[int], step: int = 1000) -> int:
    if max_position is None:
        return step
    return max_position + step


def position_between(
    prev_position: Optional[int],
    next_position_: Optional[int],
    step: int = 1000,
    floor: int = 1000,
    ceiling: int = 1_000_000,
) -> Optional[int]:
    """
    Position for a task dropped between two neighbours, within [floor, ceiling].

    Returns None when the integer gap is exhausted and the lane needs rebalancing.
    """
    if prev_position is None and next_position_ is None:
        return floor

    lower = prev_position if prev_position is not None else floor - 1
    upper = next_position_
    if upper is None:
        appended = next_position(prev_position, step)
        if appended <= ceiling:
            return appended
        upper = ceiling + 1

    if upper - lower < 2:
        return None
    return (lower + upper) // 2


def lane_max_position(db: Session, *, workspace_id: uuid.UUID, project_id: uuid.UUID, status: str) -> Optional[int]:
    return db.execute(
        select(func.max(Task.position)).where(
            Task.workspace_id == workspace_id,
            Task.project_id == project_id,
            Task.status == status,
        )
    ).scalar_one_or_none()


def _between(prev_position: Optional[int], next_position_: Optional[int]) -> Optional[int]:
    return position_between(
        prev_position,
        next_position_,
        step=settings.POSITION_STEP,
        floor=settings.POSITION_STEP,
        ceiling=settings.POSITION_MAX,
    )


def allocate_position(db: Session, *, workspace_id: uuid.UUID, project_id: uuid.UUID, status: str) -> int:
    """
    Tail position for a task entering a lane. A lane whose tail has reached
    the ceiling is renumbered first.
    """
    lane = dict(workspace_id=workspace_id, project_id=project_id, status=status)
    current_max = lane_max_position(db, **lane)
    position = _between(current_max, None)
    if position is None:
        tasks = rebalance_lane(db, **lane)
        position = _between(tasks[-1].position if tasks else None, None)
    return position


def place_between(
    db: Session,
    *,
    workspace_id: uuid.UUID,
    project_id: uuid.UUID,
    status: str,
    prev_task: Optional[Task],
    next_task: Optional[Task],
) -> int:
    """
    Midpoint position between two lane neighbours, renumbering the lane once
    when there is no integer left between them. Neighbour rows are updated in
    place by the renumbering, so their new positions are read back.
    """
    def _current() -> Optional[int]:
        return _between(
            prev_task.position if prev_task is not None else None,
            next_task.position if next_task is not None else None,
        )

    position = _current()
    if position is None:
        # dropping at the head needs a free slot above the floor
        rebalance_lane(
            db,
            workspace_id=workspace_id,
            project_id=project_id,
            status=status,
            lead=1 if prev_task is None else 0,
        )
        position = _current()
    return position


def _aware(dt: Optional[datetime]) -> datetime:
    if dt is None:
        return _EPOCH
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def board_order_key(task: Task) -> Tuple[int, int, datetime, str]:
    return (TaskStatus(task.status).order, task.position, _aware(task.created_at), str(task.id))


def lane_tasks(db: Session, *, workspace_id: uuid.UUID, project_id: uuid.UUID, status: str) -> Sequence[Task]:
    rows = (
        db.execute(
            select(Task).where(
                Task.workspace_id == workspace_id,
                Task.project_id == project_id,
                Task.status == status,
            )
        )
        .scalars()
        .all()
    )
    return sorted(rows, key=board_order_key)


def rebalance_lane(
    db: Session,
    *,
    workspace_id: uuid.UUID,
    project_id: uuid.UUID,
    status: str,
    lead: int = 0,
) -> Sequence[Task]:
    """
    Renumber a lane to evenly spaced positions keeping its current board order.

    Spacing is the configured step (giving step, 2*step, ...) unless the lane is
    too long to fit under the ceiling, in which case it shrinks so that a free
    slot always remains after the last task. `lead` leaves that many free slots
    before the first task.

    Flushes but does not commit; the caller owns the transaction.
    """
    tasks = lane_tasks(db, workspace_id=workspace_id, project_id=project_id, status=status)
    floor, ceiling = settings.POSITION_STEP, settings.POSITION_MAX
    spacing = max(1, min(settings.POSITION_STEP, (ceiling - floor) // max(1, len(tasks) + lead)))
    for i, t in enumerate(tasks):
        t.position = floor + (i + lead) * spacing
        db.add(t)
    db.flush()

    logger.warning(
        "Rebalanced lane workspace=%s project=%s status=%s (%d tasks, spacing %d)",
        workspace_id,
        project_id,
        status,
        len(tasks),
        spacing,
    )
    return tasks
