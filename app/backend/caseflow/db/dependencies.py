"""Request-scoped database session."""

from collections.abc import Iterator

from sqlalchemy.orm import Session

from caseflow.core.logging import bind_logger
from caseflow.db.session import SessionLocal

logger = bind_logger(__name__)


def get_db_session() -> Iterator[Session]:
    """One session per request; uncommitted work is discarded when a handler fails."""

    session = SessionLocal()
    try:
        yield session
    except Exception:
        logger.debug("request failed, rolling back open transaction")
        session.rollback()
        raise
    finally:
        session.close()
