import enum

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from podcatalog.core.timestamps import utcnow
from podcatalog.db.session import Base


class SyncStatus(str, enum.Enum):
    """
    Ledger lifecycle: PENDING -> RUNNING -> SUCCESS | FAILED.
    SUCCESS and FAILED are terminal.
    """
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncStatus.SUCCESS, SyncStatus.FAILED)


class SyncJobType(str, enum.Enum):
    SYNC_EPISODES = "SYNC_EPISODES"
    IMPORT_FEED = "IMPORT_FEED"
    SYNC_RECENT_DATA = "SYNC_RECENT_DATA"


class SyncCursor(Base):
    """
    SQLAlchemy model for the 'sync_cursors' table.

    Keyed by a natural string id such as `feed:<feed id>` or `recent:data`.
    `cursor` is a Unix timestamp in seconds serialized as a string.
    """
    __tablename__ = "sync_cursors"

    id = Column(String, primary_key=True)
    cursor = Column(String, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class SyncLog(Base):
    """
    SQLAlchemy model for the 'sync_logs' table.

    Append-only ledger: one row per sync invocation, created when the
    invocation starts and moved to a terminal status exactly once.
    """
    __tablename__ = "sync_logs"
    __table_args__ = (
        Index("sync_logs_status_started_idx", "status", "started_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    podcast_id = Column(Integer, ForeignKey("podcasts.id", ondelete="CASCADE"), nullable=True, index=True)
    job_type = Column(String(64), nullable=False)
    status = Column(Enum(SyncStatus), nullable=False, default=SyncStatus.PENDING)
    queue_job_id = Column(String(64), nullable=True, index=True)
    started_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=True)
    message = Column(Text, nullable=True)
    # Structured error payload, at least {"message": ...}.
    error = Column(JSON, nullable=True)
    details = Column(JSON, nullable=True)

    podcast = relationship("Podcast", back_populates="sync_logs")

    def __repr__(self):
        return f"<SyncLog(id={self.id}, job_type='{self.job_type}', status={self.status})>"


class SyncWorker(Base):
    """
    Last reported state of a named queue worker.
    """
    __tablename__ = "sync_workers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(64), nullable=False, unique=True)
    status = Column(String(32), nullable=False)
    details = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
