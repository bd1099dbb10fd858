"""Unit tests for the post-sync quality evaluator."""
from datetime import timedelta

from podcatalog.core.timestamps import utcnow
from podcatalog.models.episode import Episode
from podcatalog.models.podcast import Podcast, PodcastValueDestination
from podcatalog.models.quality_alert import QualityAlert
from podcatalog.models.sync import SyncJobType, SyncLog, SyncStatus
from podcatalog.services.quality_service import QualityService


def _failed_logs(db, count):
    for _ in range(count):
        db.add(SyncLog(job_type=SyncJobType.SYNC_EPISODES.value, status=SyncStatus.FAILED, started_at=utcnow()))
    db.commit()


def _podcast(db, feed_id, **fields):
    podcast = Podcast(
        podcast_index_id=feed_id,
        url=f'https://example.com/feeds/{feed_id}.xml',
        title=f'Feed {feed_id}',
        **fields,
    )
    db.add(podcast)
    db.commit()
    return podcast


def _titles(alerts):
    return sorted(alert.title for alert in alerts)


class TestChecks:
    """Tests for the individual checks."""

    def test_clean_database_raises_nothing(self, db):
        assert QualityService().evaluate_and_persist(db) == []
        assert db.query(QualityAlert).count() == 0

    def test_failed_syncs_warning(self, db):
        _failed_logs(db, 2)

        alerts = QualityService(failed_sync_critical=5).evaluate_and_persist(db)

        assert len(alerts) == 1
        assert alerts[0].title == 'Recent sync failures'
        assert alerts[0].severity == 'warning'
        assert alerts[0].metadata == {'failedSyncs': 2}

    def test_failed_syncs_critical_above_threshold(self, db):
        _failed_logs(db, 6)

        alerts = QualityService(failed_sync_critical=5).evaluate_and_persist(db)

        assert alerts[0].severity == 'critical'

    def test_failed_syncs_outside_window_ignored(self, db):
        _failed_logs(db, 3)

        alerts = QualityService(window_hours=24).evaluate_and_persist(db, now=utcnow() + timedelta(days=2))

        assert alerts == []

    def test_value_block_without_destinations(self, db):
        _podcast(db, 1, value_model_type='lightning')
        paid = _podcast(db, 2, value_model_type='lightning')
        db.add(PodcastValueDestination(podcast_id=paid.id, address='abc', split=100))
        db.commit()

        alerts = QualityService().evaluate_and_persist(db)

        assert _titles(alerts) == ['Incomplete value-for-value configuration']
        assert alerts[0].metadata == {'valueFeeds': 1}

    def test_stale_podcasts_exclude_dead_feeds(self, db):
        _podcast(db, 1)
        _podcast(db, 2, dead=1)

        alerts = QualityService(stale_days=7).evaluate_and_persist(db, now=utcnow() + timedelta(days=8))

        assert _titles(alerts) == ['Stale podcasts']
        assert alerts[0].metadata['staleFeeds'] == 1

    def test_recent_episodes_missing_chapters_and_transcripts(self, db):
        music = _podcast(db, 1, medium='music')
        db.add(Episode(
            podcast_id=music.id,
            guid='song-1',
            title='Song',
            date_published=utcnow() - timedelta(hours=1),
        ))
        db.commit()

        alerts = QualityService().evaluate_and_persist(db)

        assert _titles(alerts) == ['Episodes missing transcripts', 'Music episodes missing chapters']
        assert {alert.severity for alert in alerts} == {'info'}


class TestAlertLifecycle:
    """Tests for alert persistence across evaluation passes."""

    def test_alert_is_refreshed_not_duplicated(self, db):
        service = QualityService(failed_sync_critical=5)
        _failed_logs(db, 1)
        service.evaluate_and_persist(db)

        _failed_logs(db, 1)
        service.evaluate_and_persist(db)

        alerts = db.query(QualityAlert).all()
        assert len(alerts) == 1
        assert alerts[0].status == 'open'
        assert alerts[0].alert_metadata == {'failedSyncs': 2}

    def test_cleared_condition_resolves_alert(self, db):
        """open -> resolved once the condition no longer holds."""
        service = QualityService(window_hours=24)
        _failed_logs(db, 1)
        service.evaluate_and_persist(db)

        service.evaluate_and_persist(db, now=utcnow() + timedelta(days=2))

        alert = db.query(QualityAlert).one()
        assert alert.status == 'resolved'
        assert alert.resolved_at is not None

    def test_recurring_condition_opens_new_alert(self, db):
        """A resolved alert stays resolved; a recurrence opens a fresh one."""
        service = QualityService(window_hours=24)
        _failed_logs(db, 1)
        service.evaluate_and_persist(db)
        service.evaluate_and_persist(db, now=utcnow() + timedelta(days=2))

        _failed_logs(db, 1)
        service.evaluate_and_persist(db)

        statuses = sorted(alert.status for alert in db.query(QualityAlert).all())
        assert statuses == ['open', 'resolved']

    def test_list_and_resolve(self, db):
        service = QualityService()
        _failed_logs(db, 1)
        service.evaluate_and_persist(db)
        alert = service.list_open_alerts(db)[0]

        resolved = service.resolve_alert(db, alert.id)

        assert resolved.status == 'resolved'
        assert resolved.resolved_at is not None
        assert service.list_open_alerts(db) == []
        assert service.resolve_alert(db, 9999) is None
