import logging
import threading
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from podcatalog.core.timestamps import utcnow
from podcatalog.jobs.queue import SYNC_FEED_JOB, SYNC_RECENT_JOB, SyncJobQueue
from podcatalog.models.sync import SyncWorker
from podcatalog.services.recent_sync_service import deadline_after
from podcatalog.services.sync_runner import SyncJobRunner

# Configure logger for this module
logger = logging.getLogger(__name__)


class SyncRecentWorker:
    """
    Consumes sync jobs from the queue and runs them through the SyncJobRunner.

    Every job gets a fresh database session. A job that raises is handed back
    to the queue for another attempt; the ledger row of the failed attempt has
    already been closed by the runner. The worker's last known state is kept in
    the `sync_workers` table.
    """

    def __init__(
        self,
        queue: SyncJobQueue,
        runner: SyncJobRunner,
        session_factory: Callable[[], Session],
        name: str = "sync-recent-worker",
        poll_timeout: int = 5,
        deadline_seconds: Optional[float] = None,
    ):
        self.queue = queue
        self.runner = runner
        self.session_factory = session_factory
        self.name = name
        self.poll_timeout = poll_timeout
        # Time budget per recent-data sweep; unset means the sweep runs to the end.
        self.deadline_seconds = deadline_seconds

    def heartbeat(self, db: Session, status: str, details: Optional[Dict[str, Any]] = None):
        worker = db.query(SyncWorker).filter(SyncWorker.name == self.name).first()
        if worker is None:
            worker = SyncWorker(name=self.name, status=status, details=details)
            db.add(worker)
        else:
            worker.status = status
            worker.details = details
            worker.updated_at = utcnow()
        db.commit()

    def handle(self, job: Dict[str, Any]) -> bool:
        """
        Runs a single job.

        Returns:
            True if the job succeeded, False if it failed and was requeued or dead-lettered.
        """
        payload = job.get("payload") or {}
        job_name = job.get("name")
        logger.info(f"SyncRecentWorker: Processing {job_name} job {job.get('id')} (attempt {int(job.get('attempts', 0)) + 1})")
        db = self.session_factory()
        try:
            try:
                if job_name == SYNC_RECENT_JOB:
                    summary = self.runner.run_recent_sync(
                        db,
                        max=payload.get("max"),
                        since=payload.get("since"),
                        log_id=payload.get("logId"),
                        queue_job_id=job.get("id"),
                        deadline=deadline_after(self.deadline_seconds),
                    )
                    result_details = summary.to_dict()
                elif job_name == SYNC_FEED_JOB:
                    result = self.runner.run_feed_sync(db, int(payload["feedId"]))
                    result_details = {"feedId": payload["feedId"], "found": result is not None}
                else:
                    raise ValueError(f"Unknown job type: {job_name}")
            except Exception as e:
                logger.error(f"SyncRecentWorker: Job {job.get('id')} failed: {e}")
                db.rollback()
                self.heartbeat(db, "error", {"jobId": job.get("id"), "error": str(e)})
                self.queue.retry(job, error=str(e))
                return False

            self.heartbeat(db, "online", {"jobId": job.get("id"), "result": result_details})
            return True
        finally:
            db.close()

    def run_once(self) -> bool:
        """Waits for one job and handles it. Returns False if no job arrived."""
        job = self.queue.dequeue(timeout=self.poll_timeout)
        if job is None:
            return False
        self.handle(job)
        return True

    def run_forever(self, stop_event: Optional[threading.Event] = None):
        logger.info(f"SyncRecentWorker: {self.name} listening on {self.queue.jobs_key}")
        db = self.session_factory()
        try:
            self.heartbeat(db, "online", {"queue": self.queue.jobs_key})
        finally:
            db.close()
        while stop_event is None or not stop_event.is_set():
            self.run_once()
        logger.info(f"SyncRecentWorker: {self.name} stopped")
