import logging
from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.orm import Session

# Configure logger for this module
logger = logging.getLogger(__name__)

# Import services, schemas, and dependencies
from podcatalog.core.deps import get_podcast_sync_service, get_sync_runner
from podcatalog.db.session import get_db
from podcatalog.schemas.podcast import (
    PodcastImportRequest,
    PodcastInDB,
    PodcastSearchResponse,
    PodcastSyncResponse,
)
from podcatalog.services.podcast_sync_service import PodcastSyncResult, PodcastSyncService
from podcatalog.services.sync_runner import SyncJobRunner

# Create a new router for this module.
router = APIRouter()


def _sync_response(result: PodcastSyncResult) -> PodcastSyncResponse:
    reconciled = result.reconcile
    return PodcastSyncResponse(
        podcast=PodcastInDB.model_validate(result.podcast, from_attributes=True),
        episodesAdded=result.episode_delta,
        inserted=reconciled.inserted if reconciled else 0,
        updated=reconciled.updated if reconciled else 0,
        cursor=reconciled.new_cursor if reconciled else None,
    )


@router.post(
    "/{feed_id}/sync",
    response_model=PodcastSyncResponse,
    summary="Sync a podcast and its episodes",
    description="Fetches the feed from PodcastIndex, upserts the podcast and reconciles its episodes newer than the stored cursor. Every call is recorded in the sync log. Returns 404 if PodcastIndex does not know the feed."
)
def sync_podcast(
    *,
    db: Session = Depends(get_db),
    feed_id: int = Path(..., gt=0, description="The PodcastIndex feed id."),
    full_refresh: bool = Query(False, alias="fullRefresh", description="Ignore the stored episode cursor."),
    runner: SyncJobRunner = Depends(get_sync_runner)
):
    """
    Synchronously sync one feed.

    Args:
        db (Session): Database session dependency.
        feed_id (int): The PodcastIndex feed id.
        full_refresh (bool): Ignore the stored episode cursor.
        runner (SyncJobRunner): Dependency running the sync under a ledger entry.

    Returns:
        PodcastSyncResponse: The podcast and the number of episodes touched.

    Raises:
        HTTPException: 404 Not Found if the feed does not exist upstream.
        HTTPException: 500 Internal Server Error if the sync fails.
    """
    logger.info(f"API: Received request to sync feed {feed_id}")
    try:
        result = runner.run_feed_sync(db, feed_id, full_refresh=full_refresh)
    except HTTPException as e:
        raise e
    except Exception as e:
        logger.error(f"API: Sync of feed {feed_id} failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to sync feed {feed_id}: {str(e)}"
        )
    if result is None:
        logger.warning(f"API: Feed {feed_id} not found in PodcastIndex.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Feed not found")
    logger.info(f"API: Synced feed {feed_id} with {result.episode_delta} episode(s).")
    return _sync_response(result)


@router.post(
    "/import",
    response_model=PodcastSyncResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Import a podcast by feed URL",
    description="Registers the feed URL with PodcastIndex (or looks it up if already indexed), then imports the podcast and its episodes. Returns 404 if PodcastIndex cannot resolve the URL."
)
def import_podcast(
    *,
    db: Session = Depends(get_db),
    import_in: PodcastImportRequest,
    runner: SyncJobRunner = Depends(get_sync_runner)
):
    """
    Import a podcast from its RSS feed URL.

    Args:
        db (Session): Database session dependency.
        import_in (PodcastImportRequest): Request body with the feed URL.
        runner (SyncJobRunner): Dependency running the import under a ledger entry.

    Returns:
        PodcastSyncResponse: The imported podcast and its episode count.

    Raises:
        HTTPException: 400 Bad Request if the URL is blank.
        HTTPException: 404 Not Found if PodcastIndex cannot resolve the URL.
        HTTPException: 500 Internal Server Error if the import fails.
    """
    feed_url = import_in.feedUrl.strip()
    if not feed_url:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="feedUrl is required")
    logger.info(f"API: Received request to import feed {feed_url}")
    try:
        result = runner.run_import(db, feed_url)
    except HTTPException as e:
        raise e
    except Exception as e:
        logger.error(f"API: Import of {feed_url} failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to import feed: {str(e)}"
        )
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Feed not found in PodcastIndex")
    return _sync_response(result)


@router.get(
    "/search",
    response_model=PodcastSearchResponse,
    summary="Search PodcastIndex",
    description="Searches PodcastIndex by term. Results are returned as reported upstream and are not stored."
)
def search_podcasts(
    q: str = Query(..., min_length=1, description="Search term."),
    max: int = Query(25, ge=1, le=100, description="Maximum number of feeds to return."),
    podcast_sync: PodcastSyncService = Depends(get_podcast_sync_service)
):
    """
    Search PodcastIndex by term.

    Returns:
        PodcastSearchResponse: The matching feeds.
    """
    try:
        feeds = podcast_sync.search(q, max=max)
    except Exception as e:
        logger.error(f"API: Search for '{q}' failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Search failed: {str(e)}"
        )
    return PodcastSearchResponse(count=len(feeds), feeds=feeds)
