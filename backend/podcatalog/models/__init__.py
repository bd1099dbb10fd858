# This file imports all of the SQLAlchemy models.
# By importing them here, we make them available to SQLAlchemy's metadata
# and ensure that all relationships between tables can be correctly resolved
# when the application starts up.

from .podcast import Podcast, Category, PodcastCategory, PodcastValueDestination
from .episode import Episode, EpisodeTranscript, EpisodeValueDestination
from .sync import SyncCursor, SyncJobType, SyncLog, SyncStatus, SyncWorker
from .quality_alert import QualityAlert
