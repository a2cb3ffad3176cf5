"""Best-effort activity log writer."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from caseflow.core.clock import naive_utc, utc_now
from caseflow.models.entities import ActivityLog

logger = logging.getLogger(__name__)


class ActivityRecorder:
    """Writes ``ActivityLog`` rows in their own commit.

    Call only after the primary mutation is committed: a failed write is
    logged and rolled back and never surfaces to the caller.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        *,
        actor_email: str,
        actor_type: str,
        activity_type: str,
        entity_name: str,
        entity_id: object,
        details: dict[str, object] | None = None,
    ) -> None:
        entry = ActivityLog(
            actor_email=actor_email,
            actor_type=actor_type,
            activity_type=activity_type,
            entity_name=entity_name,
            entity_id=str(entity_id),
            details=details,
            created_at=naive_utc(utc_now()),
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning(
                "activity log write failed activity=%s entity=%s:%s",
                activity_type,
                entity_name,
                entity_id,
                exc_info=True,
            )
