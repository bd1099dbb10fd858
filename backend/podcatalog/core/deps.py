from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from podcatalog.core.podcast_index import PodcastIndexClient
from podcatalog.jobs.queue import SyncJobQueue
from podcatalog.services.podcast_sync_service import PodcastSyncService
from podcatalog.services.sync_runner import SyncJobRunner


# --- External Client Dependencies ---
# The clients are built once at application startup and stored on `app.state`,
# so every request shares one HTTP connection pool and one Redis connection.

def get_podcast_index_client(request: Request) -> PodcastIndexClient:
    """
    Returns the application's PodcastIndex client.

    Raises:
        HTTPException: 503 if the PodcastIndex credentials are not configured.
    """
    client = getattr(request.app.state, "podcast_index", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="PodcastIndex credentials are not configured",
        )
    return client


def get_sync_queue(request: Request) -> Optional[SyncJobQueue]:
    """Returns the job queue, or None when REDIS_URL is not set."""
    return getattr(request.app.state, "sync_queue", None)


# --- Service Dependencies ---

def get_podcast_sync_service(
    client: PodcastIndexClient = Depends(get_podcast_index_client),
) -> PodcastSyncService:
    return PodcastSyncService(client)


def get_sync_runner(
    podcast_sync: PodcastSyncService = Depends(get_podcast_sync_service),
) -> SyncJobRunner:
    return SyncJobRunner(podcast_sync)
