"""Integration tests for the HTTP API.

The application runs against the in-memory test database, with the
PodcastIndex client and the job queue replaced by in-memory fakes.
"""
import pytest
from fastapi.testclient import TestClient

from podcatalog.core.deps import get_podcast_index_client, get_sync_queue
from podcatalog.db.session import get_db
from podcatalog.jobs.queue import SyncJobQueue
from podcatalog.main import app


@pytest.fixture
def app_client(session_factory, fake_client):
    """TestClient wired to the test database and the fake PodcastIndex client."""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_podcast_index_client] = lambda: fake_client
    app.dependency_overrides[get_sync_queue] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def queued_client(app_client, fake_redis):
    """Same as app_client, with a job queue configured."""
    queue = SyncJobQueue(fake_redis, name='test-sync')
    app.dependency_overrides[get_sync_queue] = lambda: queue
    return app_client


class TestRootEndpoint:
    """Tests for the root endpoint."""

    def test_welcome_message(self, app_client):
        response = app_client.get('/')

        assert response.status_code == 200
        assert 'message' in response.json()


class TestPodcastEndpoints:
    """Tests for /api/v1/podcasts."""

    def test_sync_feed(self, app_client, fake_client, make_feed, make_episode):
        """POST /podcasts/{id}/sync stores the feed and reports the episode delta."""
        fake_client.feeds[42] = make_feed(42)
        fake_client.episodes[42] = [make_episode(1, 42, 1700000100), make_episode(2, 42, 1700000200)]

        response = app_client.post('/api/v1/podcasts/42/sync')

        assert response.status_code == 200
        data = response.json()
        assert data['podcast']['podcast_index_id'] == 42
        assert data['episodesAdded'] == 2
        assert data['inserted'] == 2
        assert data['cursor'] == 1700000200

    def test_sync_full_refresh(self, app_client, fake_client, make_feed):
        fake_client.feeds[42] = make_feed(42)

        response = app_client.post('/api/v1/podcasts/42/sync', params={'fullRefresh': 'true'})

        assert response.status_code == 200
        assert ('episodes_by_feed_id', 42, 1000, None) in fake_client.calls

    def test_sync_unknown_feed(self, app_client):
        response = app_client.post('/api/v1/podcasts/999/sync')

        assert response.status_code == 404

    def test_sync_upstream_failure(self, app_client, fake_client, upstream_error):
        fake_client.failures[42] = upstream_error

        response = app_client.post('/api/v1/podcasts/42/sync')

        assert response.status_code == 500
        assert 'Failed to sync feed 42' in response.json()['detail']

    def test_sync_rejects_invalid_feed_id(self, app_client):
        response = app_client.post('/api/v1/podcasts/0/sync')

        assert response.status_code == 422

    def test_import_feed(self, app_client, fake_client, make_feed):
        url = 'https://new.example.com/feed.xml'
        fake_client.registered[url] = 77
        fake_client.feeds[77] = make_feed(77, url=url)

        response = app_client.post('/api/v1/podcasts/import', json={'feedUrl': url})

        assert response.status_code == 201
        assert response.json()['podcast']['url'] == url

    def test_import_validation(self, app_client):
        """A missing feedUrl is a validation error; a blank one is a bad request."""
        assert app_client.post('/api/v1/podcasts/import', json={}).status_code == 422
        assert app_client.post('/api/v1/podcasts/import', json={'feedUrl': '   '}).status_code == 400

    def test_import_unknown_feed(self, app_client):
        response = app_client.post('/api/v1/podcasts/import', json={'feedUrl': 'https://nowhere.example.com/x'})

        assert response.status_code == 404

    def test_search(self, app_client, fake_client):
        fake_client.search_results = [{'id': 1, 'title': 'Python Bytes'}]

        response = app_client.get('/api/v1/podcasts/search', params={'q': 'python'})

        assert response.status_code == 200
        assert response.json() == {'count': 1, 'feeds': [{'id': 1, 'title': 'Python Bytes'}]}

    def test_missing_credentials_return_503(self, app_client):
        """Without a configured client the PodcastIndex-backed endpoints are unavailable."""
        del app.dependency_overrides[get_podcast_index_client]

        response = app_client.post('/api/v1/podcasts/42/sync')

        assert response.status_code == 503


class TestSyncEndpoints:
    """Tests for /api/v1/sync."""

    def test_recent_sync_runs_inline_without_queue(self, app_client, fake_client, make_feed):
        fake_client.feeds[1] = make_feed(1)
        fake_client.recent_items = [{'feedId': 1, 'episodeId': 11, 'episodeAdded': 1700005000}]

        response = app_client.post('/api/v1/sync/recent', json={'max': 100})

        assert response.status_code == 200
        data = response.json()
        assert data['queued'] is False
        assert data['feedsProcessed'] == 1
        assert data['nextSince'] == 1700005000
        assert ('recent_changes', 100, None) in fake_client.calls

    def test_recent_sync_is_queued(self, queued_client, fake_redis):
        response = queued_client.post('/api/v1/sync/recent')

        assert response.status_code == 202
        data = response.json()
        assert data['queued'] is True
        assert data['jobId']
        assert len(fake_redis.lists['test-sync:jobs']) == 1

        logs = queued_client.get('/api/v1/sync/logs').json()
        assert logs[0]['id'] == data['logId']
        assert logs[0]['status'] == 'PENDING'
        assert logs[0]['queue_job_id'] == data['jobId']

    def test_recent_sync_max_bounds(self, app_client):
        assert app_client.post('/api/v1/sync/recent', json={'max': 10}).status_code == 422
        assert app_client.post('/api/v1/sync/recent', json={'max': 5000}).status_code == 422

    def test_logs_list_sync_outcomes(self, app_client):
        app_client.post('/api/v1/podcasts/999/sync')

        response = app_client.get('/api/v1/sync/logs', params={'limit': 5})

        assert response.status_code == 200
        logs = response.json()
        assert logs[0]['status'] == 'FAILED'
        assert logs[0]['message'] == 'Feed not found'
        assert logs[0]['job_type'] == 'SYNC_EPISODES'


class TestSystemEndpoints:
    """Tests for /api/v1/system."""

    def test_alerts_after_failed_sync(self, app_client):
        """A failed sync raises an open alert that can be resolved."""
        app_client.post('/api/v1/podcasts/999/sync')

        alerts = app_client.get('/api/v1/system/alerts').json()
        assert [alert['title'] for alert in alerts] == ['Recent sync failures']
        assert alerts[0]['metadata'] == {'failedSyncs': 1}

        response = app_client.post(f"/api/v1/system/alerts/{alerts[0]['id']}/resolve")
        assert response.status_code == 200
        assert response.json()['status'] == 'resolved'
        assert app_client.get('/api/v1/system/alerts').json() == []

    def test_evaluate_alerts(self, app_client):
        response = app_client.post('/api/v1/system/alerts')

        assert response.status_code == 200
        assert response.json() == []

    def test_resolve_unknown_alert(self, app_client):
        assert app_client.post('/api/v1/system/alerts/9999/resolve').status_code == 404

    def test_health_without_clients(self, app_client):
        """Missing credentials and queue degrade the status without failing the call."""
        response = app_client.get('/api/v1/system/health')

        assert response.status_code == 200
        assert response.json() == {
            'status': 'degraded',
            'database': 'ok',
            'podcastIndex': 'not_configured',
            'queue': 'disabled',
        }

    def test_health_with_clients(self, queued_client, fake_client, fake_redis, monkeypatch):
        monkeypatch.setattr(app.state, 'podcast_index', fake_client, raising=False)

        data = queued_client.get('/api/v1/system/health').json()
        assert data['status'] == 'ok'
        assert data['queue'] == 'ok'

        fake_redis.healthy = False
        data = queued_client.get('/api/v1/system/health').json()
        assert data['status'] == 'degraded'
        assert data['queue'] == 'error'
