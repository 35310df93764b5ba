from __future__ import annotations

import argparse
import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskboard.core.config import settings
from taskboard.core.logging_setup import setup_logging
from taskboard.core.positions import rebalance_lane
from taskboard.db.models import Task
from taskboard.db.session import SessionLocal

logger = logging.getLogger(__name__)


def rebalance_all(db: Session, workspace_id: Optional[uuid.UUID] = None) -> int:
    """
    Renumber every lane (optionally within one workspace). Returns the number of lanes touched.
    """
    q = select(Task.workspace_id, Task.project_id, Task.status).distinct()
    if workspace_id is not None:
        q = q.where(Task.workspace_id == workspace_id)

    lanes = db.execute(q).all()
    for ws_id, project_id, status in lanes:
        rebalance_lane(db, workspace_id=ws_id, project_id=project_id, status=status)
    db.commit()
    return len(lanes)


def main() -> None:
    parser = argparse.ArgumentParser(description="Renumber board positions to evenly spaced values.")
    parser.add_argument("--workspace-id", type=uuid.UUID, default=None)
    args = parser.parse_args()

    setup_logging(settings.LOG_LEVEL)

    db: Session = SessionLocal()
    try:
        count = rebalance_all(db, workspace_id=args.workspace_id)
        logger.info("Rebalance complete. %d lanes renumbered.", count)
    finally:
        db.close()


if __name__ == "__main__":
    main()
