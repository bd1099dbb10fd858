from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from podcatalog.core.timestamps import utcnow
from podcatalog.db.session import Base


class Episode(Base):
    """
    SQLAlchemy model for the 'episodes' table.

    One row per feed item. `guid` always holds the resolved de-duplication key:
    the upstream GUID when the feed publishes one, otherwise the synthetic
    `pi-<podcast_index_id>`. This keeps the (podcast_id, guid) constraint
    meaningful on every engine, regardless of how it treats NULLs in unique
    indexes.
    """
    __tablename__ = "episodes"
    __table_args__ = (
        UniqueConstraint("podcast_id", "guid", name="episodes_podcast_guid_unique"),
        Index("episodes_podcast_published_idx", "podcast_id", "date_published"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # `ondelete="CASCADE"` removes episodes together with their podcast.
    podcast_id = Column(Integer, ForeignKey("podcasts.id", ondelete="CASCADE"), nullable=False)
    podcast_index_id = Column(BigInteger, unique=True, nullable=True)
    guid = Column(String(512), nullable=False)
    feed_id = Column(Integer, nullable=True, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    link = Column(String, nullable=True)
    date_published = Column(DateTime(timezone=True), nullable=True, index=True)
    date_crawled = Column(DateTime(timezone=True), nullable=True)

    # --- Enclosure ---
    enclosure_url = Column(Text, nullable=True)
    enclosure_type = Column(String(128), nullable=True)
    enclosure_length = Column(BigInteger, nullable=True)
    duration = Column(Integer, nullable=True)

    explicit = Column(Boolean, nullable=True)
    episode = Column(Integer, nullable=True)
    episode_type = Column(String(32), nullable=True)
    season = Column(Integer, nullable=True)
    image = Column(String, nullable=True)
    feed_image = Column(String, nullable=True)
    feed_language = Column(String, nullable=True)

    # --- Secondary content ---
    transcript_url = Column(String, nullable=True)
    chapters_url = Column(String, nullable=True)

    # --- Monetization ---
    value_model_type = Column(String, nullable=True)
    value_model_method = Column(String, nullable=True)
    value_model_suggested = Column(String, nullable=True)
    value_created_on = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # --- Relationships ---
    podcast = relationship("Podcast", back_populates="episodes")
    transcripts = relationship("EpisodeTranscript", back_populates="episode", cascade="all, delete-orphan", passive_deletes=True)
    value_destinations = relationship("EpisodeValueDestination", back_populates="episode", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return (
            f"<Episode(id={self.id}, podcast_index_id={self.podcast_index_id}, "
            f"guid='{self.guid}', title='{self.title}')>"
        )


class EpisodeTranscript(Base):
    __tablename__ = "episode_transcripts"
    __table_args__ = (
        UniqueConstraint("episode_id", "url", name="episode_transcripts_episode_url_unique"),
    )

    id = Column(Integer, primary_key=True, index=True)
    episode_id = Column(Integer, ForeignKey("episodes.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String, nullable=False)
    type = Column(String, nullable=True)
    language = Column(String, nullable=True)
    rel = Column(String, nullable=True)

    episode = relationship("Episode", back_populates="transcripts")


class EpisodeValueDestination(Base):
    __tablename__ = "episode_value_destinations"

    id = Column(Integer, primary_key=True, index=True)
    episode_id = Column(Integer, ForeignKey("episodes.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=True)
    address = Column(String, nullable=False)
    type = Column(String, nullable=True)
    split = Column(Integer, nullable=True)
    fee = Column(Boolean, nullable=True)
    custom_key = Column(String, nullable=True)
    custom_value = Column(String, nullable=True)

    episode = relationship("Episode", back_populates="value_destinations")
