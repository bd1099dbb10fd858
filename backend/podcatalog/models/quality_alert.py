from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from podcatalog.core.timestamps import utcnow
from podcatalog.db.session import Base


class QualityAlert(Base):
    """
    SQLAlchemy model for the 'quality_alerts' table.

    One row per raised condition, identified by its title. At most one row per
    title is open at a time; resolved rows are kept as history.
    """
    __tablename__ = "quality_alerts"

    id = Column(Integer, primary_key=True, index=True)

    # One of "info", "warning", "critical".
    severity = Column(String(16), nullable=False)
    title = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)

    # "open" or "resolved".
    status = Column(String(16), nullable=False, default="open", index=True)

    # `metadata` is reserved on declarative classes, so the attribute is renamed.
    alert_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
