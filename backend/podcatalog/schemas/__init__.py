# This file re-exports the Pydantic schemas used by the API layer.

from .podcast import PodcastInDB as PodcastSchema, PodcastImportRequest, PodcastSyncResponse, PodcastSearchResponse
from .sync import RecentSyncRequest, RecentSyncQueuedResponse, RecentSyncSummaryResponse, SyncLogInDB as SyncLogSchema
from .quality import QualityAlertInDB as QualityAlertSchema, AlertMessageSchema, HealthResponse
