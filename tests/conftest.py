"""Shared pytest fixtures for the podcast catalog tests."""
import os
import sys

import pytest
import redis
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend to path for imports when the package is not installed
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import podcatalog.models  # noqa: F401,E402
from podcatalog.core.podcast_index import PodcastIndexRequestError  # noqa: E402
from podcatalog.db.session import Base, enable_sqlite_foreign_keys  # noqa: E402


class FakePodcastIndexClient:
    """In-memory stand-in for PodcastIndexClient.

    `feeds` maps feed id to feed payload, `episodes` maps feed id to the items
    returned on every call, and `episode_pages` maps feed id to a list of pages
    consumed one per call. `failures` maps feed id to an exception raised by
    any call for that feed.
    """

    def __init__(self):
        self.feeds = {}
        self.episodes = {}
        self.episode_pages = {}
        self.failures = {}
        self.recent_items = []
        self.registered = {}
        self.search_results = []
        self.calls = []
        self.closed = False

    def _check(self, feed_id):
        error = self.failures.get(feed_id)
        if error is not None:
            raise error

    def search_by_term(self, term, max=25):
        self.calls.append(('search_by_term', term, max))
        return list(self.search_results)[:max]

    def feed_by_id(self, feed_id):
        self.calls.append(('feed_by_id', feed_id))
        self._check(feed_id)
        return self.feeds.get(feed_id)

    def _find_feed(self, key, value):
        for feed in self.feeds.values():
            if feed.get(key) == value:
                return feed
        return None

    def feed_by_guid(self, guid):
        self.calls.append(('feed_by_guid', guid))
        return self._find_feed('podcastGuid', guid)

    def feed_by_url(self, url):
        self.calls.append(('feed_by_url', url))
        return self._find_feed('url', url)

    def feed_by_itunes_id(self, itunes_id):
        self.calls.append(('feed_by_itunes_id', itunes_id))
        return self._find_feed('itunesId', itunes_id)

    def register_by_url(self, url):
        self.calls.append(('register_by_url', url))
        return self.registered.get(url)

    def episodes_by_feed_id(self, feed_id, max=None, since=None):
        self.calls.append(('episodes_by_feed_id', feed_id, max, since))
        self._check(feed_id)
        if feed_id in self.episode_pages:
            pages = self.episode_pages[feed_id]
            return list(pages.pop(0)) if pages else []
        return list(self.episodes.get(feed_id, []))

    def recent_changes(self, max=None, since=None):
        self.calls.append(('recent_changes', max, since))
        return list(self.recent_items)

    def close(self):
        self.closed = True


class FakeRedis:
    """The subset of redis.Redis used by SyncJobQueue, backed by dicts."""

    def __init__(self):
        self.lists = {}
        self.closed = False
        self.healthy = True

    def rpush(self, key, value):
        self.lists.setdefault(key, []).append(value)
        return len(self.lists[key])

    def blpop(self, keys, timeout=0):
        for key in keys:
            if self.lists.get(key):
                return key, self.lists[key].pop(0)
        return None

    def lrange(self, key, start, end):
        values = self.lists.get(key, [])
        return values[start:] if end == -1 else values[start:end + 1]

    def llen(self, key):
        return len(self.lists.get(key, []))

    def ping(self):
        if not self.healthy:
            raise redis.ConnectionError("connection refused")
        return True

    def close(self):
        self.closed = True


def build_feed(feed_id, **overrides):
    feed = {
        'id': feed_id,
        'podcastGuid': f'guid-feed-{feed_id}',
        'title': f'Feed {feed_id}',
        'url': f'https://example.com/feeds/{feed_id}.xml',
        'link': f'https://example.com/{feed_id}',
        'author': 'Example Author',
        'image': f'https://example.com/{feed_id}.jpg',
        'language': 'en',
        'medium': 'podcast',
        'explicit': False,
        'dead': 0,
        'episodeCount': 3,
        'lastUpdateTime': 1700000600,
        'categories': {'102': 'Technology', '9': 'Business'},
    }
    feed.update(overrides)
    return feed


def build_episode(episode_id, feed_id, date_published, guid='auto', **overrides):
    item = {
        'id': episode_id,
        'guid': f'guid-episode-{episode_id}' if guid == 'auto' else guid,
        'title': f'Episode {episode_id}',
        'feedId': feed_id,
        'datePublished': date_published,
        'enclosureUrl': f'https://cdn.example.com/{episode_id}.mp3',
        'enclosureType': 'audio/mpeg',
        'enclosureLength': 1234567,
        'duration': 1800,
    }
    item.update(overrides)
    return item


@pytest.fixture
def engine():
    """In-memory SQLite engine shared across threads, with foreign keys on."""
    test_engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    event.listen(test_engine, 'connect', enable_sqlite_foreign_keys)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    """A fresh session on an empty database."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fake_client():
    return FakePodcastIndexClient()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def make_feed():
    """Factory for PodcastIndex feed payloads."""
    return build_feed


@pytest.fixture
def make_episode():
    """Factory for episodes/byfeedid items."""
    return build_episode


@pytest.fixture
def upstream_error():
    """A retryable upstream failure as raised by the real client."""
    return PodcastIndexRequestError('PodcastIndex request failed (503)', status_code=503, retryable=True)
