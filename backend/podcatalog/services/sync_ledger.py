import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from podcatalog.core.timestamps import utcnow
from podcatalog.models.sync import SyncJobType, SyncLog, SyncStatus

# Configure logger for this module
logger = logging.getLogger(__name__)


class SyncLedger:
    """
    A service class recording the lifecycle of every sync invocation.

    Each invocation gets one SyncLog row, created as PENDING (queued) or
    RUNNING (inline) and moved to SUCCESS or FAILED exactly once. Updates that
    would touch a row already in a terminal status are ignored.
    """

    def start(
        self,
        db: Session,
        job_type: SyncJobType,
        podcast_id: Optional[int] = None,
        message: Optional[str] = None,
        queued: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ) -> SyncLog:
        """
        Creates a ledger row for a new invocation.

        Args:
            db: The SQLAlchemy database session.
            job_type: What kind of sync this is.
            podcast_id: Local podcast the sync concerns, when known.
            message: Human-readable description.
            queued: Start as PENDING (waiting in the job queue) instead of RUNNING.
            details: Optional structured context stored with the row.

        Returns:
            The newly created SyncLog row.
        """
        log = SyncLog(
            job_type=job_type.value,
            status=SyncStatus.PENDING if queued else SyncStatus.RUNNING,
            podcast_id=podcast_id,
            message=message,
            details=details,
            started_at=utcnow(),
        )
        db.add(log)
        db.commit()
        db.refresh(log)
        logger.debug(f"SyncLedger: Started log {log.id} ({job_type.value}, {log.status.value})")
        return log

    def get(self, db: Session, log_id: int) -> Optional[SyncLog]:
        return db.get(SyncLog, log_id)

    def _open_log(self, db: Session, log_id: int) -> Optional[SyncLog]:
        log = self.get(db, log_id)
        if log is None:
            logger.warning(f"SyncLedger: Log {log_id} does not exist")
            return None
        if log.status.is_terminal:
            logger.warning(f"SyncLedger: Log {log_id} is already {log.status.value}; ignoring update")
            return None
        return log

    def mark_running(self, db: Session, log_id: int, queue_job_id: Optional[str] = None) -> Optional[SyncLog]:
        log = self._open_log(db, log_id)
        if log is None:
            return None
        log.status = SyncStatus.RUNNING
        if queue_job_id is not None:
            log.queue_job_id = queue_job_id
        db.commit()
        return log

    def attach_job(self, db: Session, log_id: int, queue_job_id: str, message: Optional[str] = None) -> Optional[SyncLog]:
        log = self._open_log(db, log_id)
        if log is None:
            return None
        log.queue_job_id = queue_job_id
        if message is not None:
            log.message = message
        db.commit()
        return log

    def succeed(
        self,
        db: Session,
        log_id: int,
        message: str,
        podcast_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[SyncLog]:
        return self._finish(db, log_id, SyncStatus.SUCCESS, message, podcast_id=podcast_id, details=details)

    def fail(
        self,
        db: Session,
        log_id: int,
        message: str,
        error: Optional[Dict[str, Any]] = None,
        podcast_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[SyncLog]:
        return self._finish(
            db, log_id, SyncStatus.FAILED, message, error=error, podcast_id=podcast_id, details=details
        )

    def _finish(
        self,
        db: Session,
        log_id: int,
        status: SyncStatus,
        message: str,
        error: Optional[Dict[str, Any]] = None,
        podcast_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[SyncLog]:
        log = self._open_log(db, log_id)
        if log is None:
            return None
        log.status = status
        log.message = message
        log.finished_at = utcnow()
        if error is not None:
            log.error = error
        if podcast_id is not None:
            log.podcast_id = podcast_id
        if details is not None:
            log.details = details
        db.commit()
        logger.info(f"SyncLedger: Log {log_id} {status.value}: {message}")
        return log

    def list_recent(self, db: Session, limit: int = 50) -> List[SyncLog]:
        return (
            db.query(SyncLog)
            .order_by(SyncLog.started_at.desc(), SyncLog.id.desc())
            .limit(limit)
            .all()
        )


# Create a single instance of the service to be used as a dependency
sync_ledger = SyncLedger()

def get_sync_ledger():
    """
    Dependency function to provide the sync ledger instance.
    """
    return sync_ledger
