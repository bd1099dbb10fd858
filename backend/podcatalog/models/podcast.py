from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from podcatalog.core.timestamps import utcnow
from podcatalog.db.session import Base


class Podcast(Base):
    """
    SQLAlchemy model for the 'podcasts' table.

    One row per distinct PodcastIndex feed. `podcast_index_id` is the upstream
    feed id and the key every sync upserts on; `podcast_guid` and `url` are
    secondary lookup keys used when a feed is imported by hand.
    """
    __tablename__ = "podcasts"

    id = Column(Integer, primary_key=True, index=True)
    podcast_index_id = Column(Integer, unique=True, nullable=False, index=True)
    podcast_guid = Column(String, unique=True, nullable=True)
    url = Column(String, unique=True, nullable=False)
    original_url = Column(String, nullable=True)
    link = Column(String, nullable=True)

    # --- Descriptive metadata ---
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    author = Column(String, nullable=True)
    owner_name = Column(String, nullable=True)
    owner_email = Column(String, nullable=True)
    image = Column(String, nullable=True)
    artwork = Column(String, nullable=True)
    image_url_hash = Column(BigInteger, nullable=True)
    language = Column(String, nullable=True)
    medium = Column(String, nullable=True)
    generator = Column(String, nullable=True)
    content_type = Column(String, nullable=True)
    itunes_id = Column(Integer, nullable=True)
    itunes_type = Column(String, nullable=True)
    explicit = Column(Boolean, nullable=True)
    type = Column(Integer, nullable=True)
    locked = Column(Boolean, nullable=True)
    chash = Column(String, nullable=True)
    popularity = Column(Integer, nullable=True)
    trend_score = Column(Integer, nullable=True)
    priority = Column(Integer, nullable=True)
    in_polling_queue = Column(Boolean, nullable=True)

    # Denormalized count as reported upstream.
    episode_count = Column(Integer, nullable=True)

    # --- Upstream timestamps ---
    last_update_time = Column(DateTime(timezone=True), nullable=True)
    last_crawl_time = Column(DateTime(timezone=True), nullable=True)
    last_parse_time = Column(DateTime(timezone=True), nullable=True)
    last_good_http_status_time = Column(DateTime(timezone=True), nullable=True)
    oldest_item_pubdate = Column(DateTime(timezone=True), nullable=True)
    newest_item_pubdate = Column(DateTime(timezone=True), nullable=True)
    created_on = Column(DateTime(timezone=True), nullable=True)

    # --- Feed health ---
    last_http_status = Column(Integer, nullable=True)
    crawl_errors = Column(Integer, nullable=True)
    parse_errors = Column(Integer, nullable=True)
    dead = Column(Integer, nullable=True)
    duplicate_of_feed_id = Column(Integer, nullable=True)

    # --- Monetization (value-for-value) ---
    value_model_type = Column(String, nullable=True)
    value_model_method = Column(String, nullable=True)
    value_model_suggested = Column(String, nullable=True)
    value_block = Column(String, nullable=True)
    value_created_on = Column(DateTime(timezone=True), nullable=True)
    funding_url = Column(String, nullable=True)
    funding_message = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # --- Relationships ---
    episodes = relationship("Episode", back_populates="podcast", cascade="all, delete-orphan", passive_deletes=True)
    categories = relationship("PodcastCategory", back_populates="podcast", cascade="all, delete-orphan", passive_deletes=True)
    value_destinations = relationship("PodcastValueDestination", back_populates="podcast", cascade="all, delete-orphan", passive_deletes=True)
    sync_logs = relationship("SyncLog", back_populates="podcast", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<Podcast(id={self.id}, podcast_index_id={self.podcast_index_id}, title='{self.title}')>"


class Category(Base):
    """
    Upstream category dictionary; ids come from PodcastIndex.
    """
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String, nullable=False)


class PodcastCategory(Base):
    __tablename__ = "podcast_categories"

    podcast_id = Column(Integer, ForeignKey("podcasts.id", ondelete="CASCADE"), primary_key=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True, index=True)

    podcast = relationship("Podcast", back_populates="categories")
    category = relationship("Category")


class PodcastValueDestination(Base):
    """
    A value-for-value payment recipient declared by the feed.
    """
    __tablename__ = "podcast_value_destinations"

    id = Column(Integer, primary_key=True, index=True)
    podcast_id = Column(Integer, ForeignKey("podcasts.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=True)
    address = Column(String, nullable=False)
    type = Column(String, nullable=True)
    split = Column(Integer, nullable=True)
    fee = Column(Boolean, nullable=True)
    custom_key = Column(String, nullable=True)
    custom_value = Column(String, nullable=True)

    podcast = relationship("Podcast", back_populates="value_destinations")
