from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

# --- Request Models ---
class PodcastImportRequest(BaseModel):
    """
    Pydantic model for the request body to import a feed by URL.
    """
    feedUrl: str = Field(..., min_length=1, description="The RSS feed URL to register with PodcastIndex and import.")

# --- Response Models ---
class PodcastInDB(BaseModel):
    """
    Pydantic model representing a podcast as stored in the catalog.
    """
    id: int = Field(..., description="Local identifier of the podcast.")
    podcast_index_id: int = Field(..., description="The PodcastIndex feed id.")
    podcast_guid: Optional[str] = Field(None, description="The podcast:guid of the feed, when published.")
    title: str = Field(..., description="Title of the podcast.")
    url: str = Field(..., description="Canonical subscribe URL.")
    link: Optional[str] = Field(None, description="Website of the podcast.")
    author: Optional[str] = Field(None, description="Author as reported by the feed.")
    image: Optional[str] = Field(None, description="Artwork URL.")
    language: Optional[str] = Field(None, description="Language code of the feed.")
    medium: Optional[str] = Field(None, description="podcast:medium value, e.g. 'podcast' or 'music'.")
    episode_count: Optional[int] = Field(None, description="Episode count reported by PodcastIndex.")
    dead: Optional[int] = Field(None, description="Non-zero when PodcastIndex marked the feed dead.")
    newest_item_pubdate: Optional[datetime] = Field(None, description="Publish time of the newest item.")
    updated_at: datetime = Field(..., description="When the catalog last refreshed this podcast.")

    model_config = ConfigDict(from_attributes=True)

class PodcastSyncResponse(BaseModel):
    """
    Pydantic model for the outcome of a single-feed sync or import.
    """
    podcast: PodcastInDB = Field(..., description="The podcast after the sync.")
    episodesAdded: int = Field(..., description="Number of episodes inserted or refreshed by this sync.")
    inserted: int = Field(0, description="Episodes that did not exist before.")
    updated: int = Field(0, description="Existing episodes refreshed in place.")
    cursor: Optional[int] = Field(None, description="Feed cursor (Unix seconds) after the sync.")

class PodcastSearchResponse(BaseModel):
    """
    Pydantic model wrapping raw PodcastIndex search results.
    """
    count: int = Field(..., description="Number of feeds returned.")
    feeds: List[Dict[str, Any]] = Field(default_factory=list, description="Feeds as returned by PodcastIndex.")
