import logging
from typing import List, Optional, Union
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

# Configure logger for this module
logger = logging.getLogger(__name__)

# Import services, schemas, and dependencies
from podcatalog.core.config import settings
from podcatalog.core.deps import get_sync_queue, get_sync_runner
from podcatalog.db.session import get_db
from podcatalog.jobs.queue import SyncJobQueue
from podcatalog.schemas.sync import (
    RecentSyncQueuedResponse,
    RecentSyncRequest,
    RecentSyncSummaryResponse,
    SyncLogInDB,
)
from podcatalog.services.recent_sync_service import deadline_after
from podcatalog.services.sync_ledger import SyncLedger, get_sync_ledger
from podcatalog.services.sync_runner import SyncJobRunner

# Create a new router for this module.
router = APIRouter()

@router.post(
    "/recent",
    response_model=Union[RecentSyncQueuedResponse, RecentSyncSummaryResponse],
    summary="Trigger a recent-data sweep",
    description="Queues a sweep of PodcastIndex's recently changed episodes and returns 202 with the job id. When no job queue is configured the sweep runs inline and its summary is returned instead."
)
def trigger_recent_sync(
    *,
    db: Session = Depends(get_db),
    response: Response,
    sync_in: Optional[RecentSyncRequest] = Body(None),
    runner: SyncJobRunner = Depends(get_sync_runner),
    queue: Optional[SyncJobQueue] = Depends(get_sync_queue)
):
    """
    Queue or run a recent-data sweep.

    Args:
        db (Session): Database session dependency.
        response (Response): Used to set 202 for queued sweeps.
        sync_in (RecentSyncRequest): Optional body with `max` (50-1000).
        runner (SyncJobRunner): Dependency running or queueing the sweep.
        queue (SyncJobQueue): The job queue, if configured.

    Returns:
        RecentSyncQueuedResponse | RecentSyncSummaryResponse: Job reference or inline summary.

    Raises:
        HTTPException: 500 Internal Server Error if the sweep cannot be queued or fails.
    """
    max_items = sync_in.max if sync_in else None
    try:
        if queue is not None:
            queued = runner.enqueue_recent_sync(db, queue, max=max_items, triggered_by="api")
            logger.info(f"API: Queued recent data sync as job {queued['jobId']}")
            response.status_code = status.HTTP_202_ACCEPTED
            return RecentSyncQueuedResponse(queued=True, jobId=queued["jobId"], logId=queued["logId"])

        logger.info("API: No job queue configured; running recent data sync inline")
        summary = runner.run_recent_sync(
            db, max=max_items, deadline=deadline_after(settings.RECENT_SYNC_DEADLINE_SECONDS)
        )
        return RecentSyncSummaryResponse(queued=False, **summary.to_dict())
    except HTTPException as e:
        raise e
    except Exception as e:
        logger.error(f"API: Recent data sync failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Recent data sync failed: {str(e)}"
        )

@router.get(
    "/logs",
    response_model=List[SyncLogInDB],
    summary="List recent sync log entries",
    description="Returns the most recent sync ledger entries, newest first."
)
def read_sync_logs(
    db: Session = Depends(get_db),
    limit: int = Query(50, ge=1, le=500, description="Maximum number of entries to return."),
    ledger: SyncLedger = Depends(get_sync_ledger)
):
    """
    Retrieve recent sync log entries.

    Returns:
        List[SyncLogInDB]: Ledger entries ordered by start time, newest first.
    """
    logs = ledger.list_recent(db, limit=limit)
    return [SyncLogInDB.model_validate(log, from_attributes=True) for log in logs]
