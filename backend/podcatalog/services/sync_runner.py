import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from podcatalog.core.podcast_index import PodcastIndexRequestError
from podcatalog.jobs.queue import SYNC_RECENT_JOB, SyncJobQueue
from podcatalog.models.podcast import Podcast
from podcatalog.models.sync import SyncJobType
from podcatalog.services.cursor_service import SyncCursorStore, cursor_store as default_cursor_store
from podcatalog.services.podcast_sync_service import PodcastSyncResult, PodcastSyncService
from podcatalog.services.quality_service import QualityService, quality_service as default_quality_service
from podcatalog.services.recent_sync_service import RecentSyncOrchestrator, RecentSyncSummary
from podcatalog.services.sync_ledger import SyncLedger, sync_ledger as default_ledger

# Configure logger for this module
logger = logging.getLogger(__name__)

FEED_NOT_FOUND = "Feed not found"


def error_payload(error: Exception) -> Dict[str, Any]:
    payload = {"message": str(error) or type(error).__name__, "type": type(error).__name__}
    if isinstance(error, PodcastIndexRequestError):
        payload["statusCode"] = error.status_code
        payload["retryable"] = error.retryable
    return payload


class SyncJobRunner:
    """
    Brackets every sync invocation with a ledger row.

    The synchronizer and orchestrator know nothing about the ledger; this class
    opens the row, runs the work, and closes the row as SUCCESS or FAILED. A
    feed PodcastIndex does not know is recorded as FAILED with a plain message
    and no error payload. Exceptions are recorded with their payload and then
    re-raised. After a run finishes, the quality checks are re-evaluated.
    """

    def __init__(
        self,
        podcast_sync: PodcastSyncService,
        orchestrator: Optional[RecentSyncOrchestrator] = None,
        ledger: Optional[SyncLedger] = None,
        cursor_store: Optional[SyncCursorStore] = None,
        quality: Optional[QualityService] = None,
    ):
        self.podcast_sync = podcast_sync
        self.orchestrator = orchestrator or RecentSyncOrchestrator(podcast_sync.client, podcast_sync=podcast_sync)
        self.ledger = ledger or default_ledger
        self.cursor_store = cursor_store or default_cursor_store
        self.quality = quality or default_quality_service

    def _record_exception(self, db: Session, log_id: int, error: Exception):
        db.rollback()
        logger.error(f"SyncJobRunner: Log {log_id} failed: {error}", exc_info=True)
        self.ledger.fail(db, log_id, str(error) or type(error).__name__, error=error_payload(error))

    def run_feed_sync(self, db: Session, feed_id: int, full_refresh: bool = False) -> Optional[PodcastSyncResult]:
        """
        Syncs one feed and its episodes under a SYNC_EPISODES ledger row.

        Returns:
            The sync result, or None if PodcastIndex does not know the feed.
        """
        known = db.query(Podcast.id).filter(Podcast.podcast_index_id == feed_id).first()
        log = self.ledger.start(
            db,
            SyncJobType.SYNC_EPISODES,
            podcast_id=known[0] if known else None,
            message=f"Sync episodes for feed {feed_id}",
        )
        try:
            result = self.podcast_sync.sync_by_feed_id(db, feed_id, full_refresh=full_refresh)
        except Exception as e:
            self._record_exception(db, log.id, e)
            raise

        if result is None:
            self.ledger.fail(db, log.id, FEED_NOT_FOUND)
        else:
            self.ledger.succeed(
                db,
                log.id,
                f"Fetched {result.episode_delta} episodes",
                podcast_id=result.podcast.id,
                details=_reconcile_details(result),
            )
        self.quality.evaluate_and_persist(db)
        return result

    def run_import(self, db: Session, feed_url: str) -> Optional[PodcastSyncResult]:
        """
        Imports a feed by URL under an IMPORT_FEED ledger row.

        The URL is first registered with PodcastIndex; if PodcastIndex refuses,
        it is looked up as an already indexed feed instead.
        """
        log = self.ledger.start(
            db, SyncJobType.IMPORT_FEED, message="Importing feed from URL", details={"feedUrl": feed_url}
        )
        try:
            result = self.podcast_sync.add_by_feed_url(db, feed_url)
            if result is None:
                result = self.podcast_sync.sync_by_feed_url(db, feed_url)
        except Exception as e:
            self._record_exception(db, log.id, e)
            raise

        if result is None:
            self.ledger.fail(db, log.id, "Feed not found in PodcastIndex")
        else:
            self.ledger.succeed(
                db,
                log.id,
                f"Imported and registered feed with {result.episode_delta} episodes",
                podcast_id=result.podcast.id,
                details=dict(_reconcile_details(result), feedUrl=feed_url),
            )
        self.quality.evaluate_and_persist(db)
        return result

    def run_recent_sync(
        self,
        db: Session,
        max: Optional[int] = None,
        since: Optional[int] = None,
        log_id: Optional[int] = None,
        queue_job_id: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> RecentSyncSummary:
        """
        Runs one recent-data sweep under a SYNC_RECENT_DATA ledger row.

        Args:
            db: The SQLAlchemy database session.
            max: Items requested from recent/data.
            since: Explicit lower bound; defaults to the stored sweep cursor.
            log_id: Existing PENDING row created at enqueue time, if any.
            queue_job_id: Id of the queue job running this sweep, if any.
            deadline: Monotonic time after which no further feed is started.

        Returns:
            The sweep summary. The sweep cursor is advanced to its `next_since`.

        Raises:
            Exception: Whatever aborted the sweep as a whole, after it was recorded.
        """
        if log_id is None:
            log = self.ledger.start(
                db,
                SyncJobType.SYNC_RECENT_DATA,
                message="Recent data sync",
                details={"max": max, "since": since},
            )
            log_id = log.id
            if queue_job_id is not None:
                self.ledger.attach_job(db, log_id, queue_job_id)
        else:
            self.ledger.mark_running(db, log_id, queue_job_id=queue_job_id)

        try:
            summary = self.orchestrator.sync_recent_data(db, max=max, since=since, deadline=deadline)
            self.cursor_store.advance_recent_cursor(db, summary.next_since)
        except Exception as e:
            self._record_exception(db, log_id, e)
            raise

        if summary.all_failed:
            self.ledger.fail(
                db,
                log_id,
                f"Recent sync failed for all {summary.feeds_attempted} feeds",
                error={
                    "message": "Every feed in the sweep failed",
                    "failures": [failure.to_dict() for failure in summary.failures],
                },
                details=summary.to_dict(),
            )
        else:
            self.ledger.succeed(
                db,
                log_id,
                f"Recent sync processed {summary.episodes_processed} episodes across {summary.feeds_processed} feeds",
                details=summary.to_dict(),
            )
        self.quality.evaluate_and_persist(db)
        return summary

    def enqueue_recent_sync(
        self, db: Session, queue: SyncJobQueue, max: Optional[int] = None, triggered_by: str = "api"
    ) -> Dict[str, Any]:
        """
        Creates a PENDING ledger row and queues a sweep for the worker.

        Returns:
            A dict with the queue `jobId` and ledger `logId`.
        """
        log = self.ledger.start(
            db,
            SyncJobType.SYNC_RECENT_DATA,
            message="Queued recent data sync",
            queued=True,
            details={"max": max, "triggeredBy": triggered_by},
        )
        try:
            job = queue.enqueue(SYNC_RECENT_JOB, {"max": max, "logId": log.id, "triggeredBy": triggered_by})
        except Exception as e:
            self._record_exception(db, log.id, e)
            raise
        self.ledger.attach_job(db, log.id, job["id"], message=f"Queued job {job['id']} for recent data sync")
        return {"jobId": job["id"], "logId": log.id}


def _reconcile_details(result: PodcastSyncResult) -> Dict[str, Any]:
    details: Dict[str, Any] = {"feedId": result.podcast.podcast_index_id, "episodesTouched": result.episode_delta}
    if result.reconcile is not None:
        details.update(
            inserted=result.reconcile.inserted,
            updated=result.reconcile.updated,
            skipped=result.reconcile.skipped,
            pages=result.reconcile.pages,
            cursor=result.reconcile.new_cursor,
        )
    return details
