import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from podcatalog.core.config import settings
from podcatalog.core.timestamps import utcnow
from podcatalog.models.episode import Episode
from podcatalog.models.podcast import Podcast
from podcatalog.models.quality_alert import QualityAlert
from podcatalog.models.sync import SyncLog, SyncStatus

# Configure logger for this module
logger = logging.getLogger(__name__)

OPEN = "open"
RESOLVED = "resolved"


@dataclass
class AlertMessage:
    title: str
    severity: str
    description: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class QualityService:
    """
    A service class containing the post-sync data quality checks.

    Each pass runs every check, upserts one open alert per raised title and
    resolves any open alert whose condition no longer holds. Alert state is
    therefore a full reflection of the latest pass.
    """

    def __init__(
        self,
        window_hours: Optional[int] = None,
        failed_sync_critical: Optional[int] = None,
        stale_days: Optional[int] = None,
    ):
        self.window_hours = window_hours or settings.QUALITY_WINDOW_HOURS
        self.failed_sync_critical = (
            failed_sync_critical if failed_sync_critical is not None else settings.QUALITY_FAILED_SYNC_CRITICAL
        )
        self.stale_days = stale_days or settings.QUALITY_STALE_DAYS

    # --- Checks ---

    def check_failed_syncs(self, db: Session, since: datetime) -> Optional[AlertMessage]:
        failed = (
            db.query(SyncLog)
            .filter(SyncLog.status == SyncStatus.FAILED, SyncLog.started_at >= since)
            .count()
        )
        if not failed:
            return None
        return AlertMessage(
            title="Recent sync failures",
            severity="critical" if failed > self.failed_sync_critical else "warning",
            description=(
                f"{failed} sync job(s) failed in the last {self.window_hours} hours. "
                f"Check the PodcastIndex credentials and network access."
            ),
            metadata={"failedSyncs": failed},
        )

    def check_value_destinations(self, db: Session) -> Optional[AlertMessage]:
        incomplete = (
            db.query(Podcast)
            .filter(
                or_(Podcast.value_model_type.isnot(None), Podcast.value_block.isnot(None)),
                ~Podcast.value_destinations.any(),
            )
            .count()
        )
        if not incomplete:
            return None
        return AlertMessage(
            title="Incomplete value-for-value configuration",
            severity="warning",
            description=f"{incomplete} podcast(s) declare a value block but have no payment destinations.",
            metadata={"valueFeeds": incomplete},
        )

    def check_stale_feeds(self, db: Session, now: datetime) -> Optional[AlertMessage]:
        cutoff = now - timedelta(days=self.stale_days)
        stale = (
            db.query(Podcast)
            .filter(
                or_(Podcast.dead.is_(None), Podcast.dead == 0),
                Podcast.updated_at < cutoff,
            )
            .count()
        )
        if not stale:
            return None
        return AlertMessage(
            title="Stale podcasts",
            severity="warning",
            description=f"{stale} live podcast(s) have not been refreshed for more than {self.stale_days} days.",
            metadata={"staleFeeds": stale, "staleDays": self.stale_days},
        )

    def check_missing_chapters(self, db: Session, since: datetime) -> Optional[AlertMessage]:
        missing = (
            db.query(Episode)
            .join(Podcast, Episode.podcast_id == Podcast.id)
            .filter(
                Episode.date_published >= since,
                Episode.chapters_url.is_(None),
                Podcast.medium == "music",
            )
            .count()
        )
        if not missing:
            return None
        return AlertMessage(
            title="Music episodes missing chapters",
            severity="info",
            description=(
                f"{missing} music episode(s) published in the last {self.window_hours} hours have no chapters. "
                f"Check whether the source publishes chapters.json."
            ),
            metadata={"missingChapters": missing},
        )

    def check_missing_transcripts(self, db: Session, since: datetime) -> Optional[AlertMessage]:
        missing = (
            db.query(Episode)
            .join(Podcast, Episode.podcast_id == Podcast.id)
            .filter(
                Episode.date_published >= since,
                Episode.transcript_url.is_(None),
                Podcast.medium.in_(["podcast", "music"]),
            )
            .count()
        )
        if not missing:
            return None
        return AlertMessage(
            title="Episodes missing transcripts",
            severity="info",
            description=f"{missing} episode(s) published in the last {self.window_hours} hours have no transcript.",
            metadata={"missingTranscripts": missing},
        )

    # --- Persistence ---

    def evaluate_and_persist(self, db: Session, now: Optional[datetime] = None) -> List[AlertMessage]:
        """
        Runs every check and reconciles the stored alerts with the result.

        Args:
            db: The SQLAlchemy database session.
            now: Reference time for the trailing windows; defaults to the current UTC time.

        Returns:
            The alerts raised by this pass.
        """
        now = now or utcnow()
        since = now - timedelta(hours=self.window_hours)

        candidates = [
            self.check_failed_syncs(db, since),
            self.check_value_destinations(db),
            self.check_stale_feeds(db, now),
            self.check_missing_chapters(db, since),
            self.check_missing_transcripts(db, since),
        ]
        alerts = [alert for alert in candidates if alert is not None]

        for alert in alerts:
            self._upsert_alert(db, alert, now)
        resolved = self._resolve_stale_alerts(db, [alert.title for alert in alerts], now)
        db.commit()

        if alerts:
            logger.info(
                f"QualityService: Raised {len(alerts)} alert(s): "
                + ", ".join(f"{alert.title} ({alert.severity})" for alert in alerts)
            )
        else:
            logger.debug("QualityService: Quality checks passed without alerts")
        if resolved:
            logger.info(f"QualityService: Resolved {resolved} alert(s) whose condition cleared")
        return alerts

    def _upsert_alert(self, db: Session, alert: AlertMessage, now: datetime) -> QualityAlert:
        existing = (
            db.query(QualityAlert)
            .filter(QualityAlert.title == alert.title, QualityAlert.status == OPEN)
            .first()
        )
        if existing is not None:
            existing.severity = alert.severity
            existing.description = alert.description
            existing.alert_metadata = alert.metadata
            existing.updated_at = now
            return existing
        created = QualityAlert(
            severity=alert.severity,
            title=alert.title,
            description=alert.description,
            alert_metadata=alert.metadata,
            status=OPEN,
            created_at=now,
            updated_at=now,
        )
        db.add(created)
        return created

    def _resolve_stale_alerts(self, db: Session, active_titles: List[str], now: datetime) -> int:
        query = db.query(QualityAlert).filter(QualityAlert.status == OPEN)
        if active_titles:
            query = query.filter(QualityAlert.title.notin_(active_titles))
        stale = query.all()
        for alert in stale:
            alert.status = RESOLVED
            alert.resolved_at = now
            alert.updated_at = now
        return len(stale)

    def list_open_alerts(self, db: Session, limit: int = 20) -> List[QualityAlert]:
        return (
            db.query(QualityAlert)
            .filter(QualityAlert.status == OPEN)
            .order_by(QualityAlert.created_at.desc(), QualityAlert.id.desc())
            .limit(limit)
            .all()
        )

    def resolve_alert(self, db: Session, alert_id: int) -> Optional[QualityAlert]:
        alert = db.get(QualityAlert, alert_id)
        if alert is None:
            return None
        if alert.status != RESOLVED:
            now = utcnow()
            alert.status = RESOLVED
            alert.resolved_at = now
            alert.updated_at = now
            db.commit()
            db.refresh(alert)
        return alert


# Create a single instance of the service to be used as a dependency
quality_service = QualityService()

def get_quality_service():
    """
    Dependency function to provide the quality service instance.
    """
    return quality_service
