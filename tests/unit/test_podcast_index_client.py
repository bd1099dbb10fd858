"""Unit tests for the PodcastIndex REST client."""
import hashlib
from unittest.mock import Mock

import pytest
import requests

from podcatalog.core.config import Settings
from podcatalog.core.podcast_index import (
    ConfigurationError,
    PodcastIndexAuthError,
    PodcastIndexClient,
    PodcastIndexRequestError,
)

BASE_URL = 'https://api.podcastindex.org/api/1.0'
NOW = 1700000000


def _response(status_code=200, body=None, text=''):
    response = Mock(status_code=status_code, text=text)
    response.json.return_value = body if body is not None else {}
    return response


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def client(session):
    return PodcastIndexClient('key', 'secret', session=session, clock=lambda: NOW)


class TestConstruction:
    """Tests for client construction and configuration."""

    def test_missing_credentials_raise(self):
        with pytest.raises(ConfigurationError):
            PodcastIndexClient('', 'secret')
        with pytest.raises(ConfigurationError):
            PodcastIndexClient('key', None)

    def test_default_session_retries_transient_failures(self):
        """The mounted adapter retries GETs on 429 and 5xx."""
        client = PodcastIndexClient('key', 'secret', max_retries=2)

        retry = client._session.get_adapter(BASE_URL).max_retries
        assert retry.total == 2
        assert 429 in retry.status_forcelist
        assert 503 in retry.status_forcelist
        client.close()

    def test_from_settings_strips_quoted_values(self):
        """Quoted .env values are unwrapped before use."""
        settings = Settings(
            _env_file=None,
            PODCASTINDEX_API_KEY=' "abc" ',
            PODCASTINDEX_API_SECRET="'xyz'",
            PODCASTINDEX_BASE_URL='https://example.com/api/1.0/',
        )

        client = PodcastIndexClient.from_settings(settings)

        assert client.api_key == 'abc'
        assert client.api_secret == 'xyz'
        assert client.base_url == 'https://example.com/api/1.0'
        client.close()

    def test_from_settings_without_credentials(self):
        settings = Settings(_env_file=None, PODCASTINDEX_API_KEY='', PODCASTINDEX_API_SECRET='')

        with pytest.raises(ConfigurationError):
            PodcastIndexClient.from_settings(settings)


class TestRequests:
    """Tests for request signing and response handling."""

    def test_auth_headers(self, client):
        """Authorization is the SHA-1 of key, secret and auth date."""
        headers = client.auth_headers()

        assert headers['X-Auth-Key'] == 'key'
        assert headers['X-Auth-Date'] == str(NOW)
        assert headers['Authorization'] == hashlib.sha1(f'keysecret{NOW}'.encode('utf-8')).hexdigest()
        assert headers['User-Agent'] == 'PodcastIndexManager/1.0'

    def test_feed_by_id(self, client, session):
        session.get.return_value = _response(body={'status': 'true', 'feed': {'id': 42, 'title': 'Feed 42'}})

        feed = client.feed_by_id(42)

        assert feed == {'id': 42, 'title': 'Feed 42'}
        args, kwargs = session.get.call_args
        assert args[0] == f'{BASE_URL}/podcasts/byfeedid'
        assert kwargs['params'] == {'id': 42}
        assert kwargs['timeout'] == 30

    def test_empty_feed_is_none(self, client, session):
        """Unknown feeds may come back as 200 with an empty `feed` list."""
        session.get.return_value = _response(body={'status': 'true', 'feed': []})

        assert client.feed_by_guid('missing') is None

    def test_not_found_is_none(self, client, session):
        session.get.return_value = _response(status_code=404)

        assert client.feed_by_url('https://nowhere.example.com/feed') is None

    def test_rejected_credentials(self, client, session):
        session.get.return_value = _response(status_code=401)

        with pytest.raises(PodcastIndexAuthError) as excinfo:
            client.feed_by_id(42)

        assert excinfo.value.status_code == 401
        assert not excinfo.value.retryable

    def test_server_error_is_retryable(self, client, session):
        session.get.return_value = _response(status_code=503, text='Service Unavailable')

        with pytest.raises(PodcastIndexRequestError) as excinfo:
            client.feed_by_id(42)

        assert excinfo.value.status_code == 503
        assert excinfo.value.retryable

    def test_client_error_is_not_retryable(self, client, session):
        session.get.return_value = _response(status_code=400, text='Bad Request')

        with pytest.raises(PodcastIndexRequestError) as excinfo:
            client.feed_by_id(42)

        assert not excinfo.value.retryable

    def test_transport_error_is_wrapped(self, client, session):
        session.get.side_effect = requests.ConnectionError('connection refused')

        with pytest.raises(PodcastIndexRequestError) as excinfo:
            client.feed_by_id(42)

        assert excinfo.value.retryable
        assert excinfo.value.status_code is None

    def test_invalid_json(self, client, session):
        response = _response()
        response.json.side_effect = ValueError('not json')
        session.get.return_value = response

        with pytest.raises(PodcastIndexRequestError):
            client.feed_by_id(42)


class TestEndpoints:
    """Tests for the endpoint wrappers."""

    def test_episodes_drop_unset_params(self, client, session):
        session.get.return_value = _response(body={'items': [{'id': 1}], 'count': 1})

        items = client.episodes_by_feed_id(42, max=100)

        assert items == [{'id': 1}]
        assert session.get.call_args.kwargs['params'] == {'id': 42, 'max': 100}

    def test_episodes_with_since(self, client, session):
        session.get.return_value = _response(body={'items': []})

        assert client.episodes_by_feed_id(42, max=100, since=1700000000) == []
        assert session.get.call_args.kwargs['params'] == {'id': 42, 'max': 100, 'since': 1700000000}

    def test_recent_changes_nested_payload(self, client, session):
        session.get.return_value = _response(body={'data': {'items': [{'feedId': 1, 'episodeId': 2}]}})

        assert client.recent_changes(max=50) == [{'feedId': 1, 'episodeId': 2}]
        args, kwargs = session.get.call_args
        assert args[0] == f'{BASE_URL}/recent/data'
        assert kwargs['params'] == {'max': 50}

    def test_recent_changes_flat_payload(self, client, session):
        session.get.return_value = _response(body={'items': [{'feedId': 1}]})

        assert client.recent_changes() == [{'feedId': 1}]

    def test_recent_changes_include_feed_level_entries(self, client, session):
        session.get.return_value = _response(body={'data': {
            'feeds': [{'feedId': 5, 'feedUrl': 'https://feeds.example.com/5.xml'}, {'id': 6}],
            'items': [{'feedId': 1, 'episodeId': 2}],
        }})

        changes = client.recent_changes()

        assert [change['feedId'] for change in changes] == [5, 6, 1]
        assert changes[2] == {'feedId': 1, 'episodeId': 2}

    def test_register_by_url(self, client, session):
        session.get.return_value = _response(body={'status': 'true', 'feedId': '77'})

        assert client.register_by_url('https://new.example.com/feed.xml') == 77
        assert session.get.call_args.args[0] == f'{BASE_URL}/add/byfeedurl'

    def test_register_by_url_refused(self, client, session):
        session.get.return_value = _response(body={'status': 'false', 'description': 'Invalid feed'})

        assert client.register_by_url('https://bad.example.com/feed.xml') is None

    def test_search_by_term(self, client, session):
        session.get.return_value = _response(body={'feeds': [{'id': 1}]})

        assert client.search_by_term('python', max=5) == [{'id': 1}]
        assert session.get.call_args.kwargs['params'] == {'q': 'python', 'max': 5}
