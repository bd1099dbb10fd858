import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, status
from sqlalchemy import text
from sqlalchemy.orm import Session

# Configure logger for this module
logger = logging.getLogger(__name__)

# Import services, schemas, and dependencies
from podcatalog.core.deps import get_sync_queue
from podcatalog.db.session import get_db
from podcatalog.jobs.queue import SyncJobQueue
from podcatalog.schemas.quality import AlertMessageSchema, HealthResponse, QualityAlertInDB
from podcatalog.services.quality_service import QualityService, get_quality_service

# Create a new router for this module.
router = APIRouter()

@router.get(
    "/alerts",
    response_model=List[QualityAlertInDB],
    summary="List open quality alerts",
    description="Returns the currently open data quality alerts, newest first."
)
def read_open_alerts(
    db: Session = Depends(get_db),
    limit: int = Query(20, ge=1, le=200, description="Maximum number of alerts to return."),
    quality_service: QualityService = Depends(get_quality_service)
):
    """
    Retrieve open quality alerts.

    Returns:
        List[QualityAlertInDB]: Open alerts.
    """
    alerts = quality_service.list_open_alerts(db, limit=limit)
    return [QualityAlertInDB.model_validate(alert, from_attributes=True) for alert in alerts]

@router.post(
    "/alerts",
    response_model=List[AlertMessageSchema],
    summary="Evaluate quality checks",
    description="Runs every data quality check now, opens or refreshes alerts for raised conditions and resolves alerts whose condition cleared. Returns the alerts raised by this pass."
)
def evaluate_alerts(
    db: Session = Depends(get_db),
    quality_service: QualityService = Depends(get_quality_service)
):
    """
    Run the quality checks.

    Returns:
        List[AlertMessageSchema]: Alerts raised by this evaluation.

    Raises:
        HTTPException: 500 Internal Server Error if an evaluation query fails.
    """
    try:
        alerts = quality_service.evaluate_and_persist(db)
    except Exception as e:
        db.rollback()
        logger.error(f"API: Quality evaluation failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Quality evaluation failed: {str(e)}"
        )
    return [AlertMessageSchema.model_validate(alert, from_attributes=True) for alert in alerts]

@router.post(
    "/alerts/{alert_id}/resolve",
    response_model=QualityAlertInDB,
    summary="Resolve a quality alert",
    description="Marks an alert as resolved. Resolving an already resolved alert is a no-op. Returns 404 if the alert does not exist."
)
def resolve_alert(
    *,
    db: Session = Depends(get_db),
    alert_id: int = Path(..., description="The ID of the alert to resolve."),
    quality_service: QualityService = Depends(get_quality_service)
):
    """
    Resolve a single alert.

    Raises:
        HTTPException: 404 Not Found if the alert does not exist.
    """
    alert = quality_service.resolve_alert(db, alert_id)
    if alert is None:
        logger.warning(f"API: Alert {alert_id} not found.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Alert not found")
    return QualityAlertInDB.model_validate(alert, from_attributes=True)

@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Check service health",
    description="Reports whether the database answers, whether PodcastIndex credentials are configured and whether the job queue answers a ping."
)
def read_health(
    request: Request,
    db: Session = Depends(get_db),
    queue: Optional[SyncJobQueue] = Depends(get_sync_queue)
):
    """
    Report dependency health. Never fails; problems are reported per dependency.
    """
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        logger.error(f"API: Database health check failed: {e}")
        database = "error"

    podcast_index = "configured" if getattr(request.app.state, "podcast_index", None) else "not_configured"

    if queue is None:
        queue_status = "disabled"
    else:
        queue_status = "ok" if queue.ping() else "error"

    overall = "ok" if database == "ok" and podcast_index == "configured" and queue_status != "error" else "degraded"
    return HealthResponse(status=overall, database=database, podcastIndex=podcast_index, queue=queue_status)
