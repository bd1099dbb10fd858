from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from podcatalog.models.sync import SyncStatus

# --- Request Model ---
class RecentSyncRequest(BaseModel):
    """
    Pydantic model for the request body to trigger a recent-data sweep.
    """
    max: Optional[int] = Field(None, ge=50, le=1000, description="Number of recent items to request (50-1000).")

# --- Response Models ---
class RecentSyncQueuedResponse(BaseModel):
    """
    Returned when the sweep was handed to the job queue.
    """
    queued: bool = Field(True, description="Always true for queued sweeps.")
    jobId: str = Field(..., description="Identifier of the queued job.")
    logId: int = Field(..., description="Identifier of the PENDING sync log created for the job.")

class FeedFailureSchema(BaseModel):
    feedId: int
    message: str
    type: str

class RecentSyncSummaryResponse(BaseModel):
    """
    Returned when the sweep ran inline because no queue is configured.
    """
    queued: bool = Field(False, description="Always false for inline sweeps.")
    feedsProcessed: int = Field(..., description="Feeds synced successfully.")
    episodesProcessed: int = Field(..., description="Episodes inserted or refreshed across all feeds.")
    nextSince: Optional[int] = Field(None, description="Cursor for the next sweep, in Unix seconds.")
    feedsAttempted: int = Field(0, description="Feeds the sweep started.")
    failures: List[FeedFailureSchema] = Field(default_factory=list, description="Feeds whose sync raised.")
    notFound: List[int] = Field(default_factory=list, description="Feed ids PodcastIndex no longer knows.")
    aborted: bool = Field(False, description="True if the sweep stopped at its deadline.")

class SyncLogInDB(BaseModel):
    """
    Pydantic model representing a sync ledger entry.
    """
    id: int
    job_type: str = Field(..., description="SYNC_EPISODES, IMPORT_FEED or SYNC_RECENT_DATA.")
    status: SyncStatus = Field(..., description="PENDING, RUNNING, SUCCESS or FAILED.")
    podcast_id: Optional[int] = None
    queue_job_id: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None
    message: Optional[str] = None
    error: Optional[Dict[str, Any]] = None
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(from_attributes=True)
