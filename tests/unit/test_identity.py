"""Unit tests for episode and feed identity resolution."""
import pytest

from podcatalog.core.identity import (
    EpisodeIdentity,
    IdentityError,
    feed_cursor_key,
    resolve_episode_identity,
    resolve_feed_key,
    synthetic_guid,
)


class TestEpisodeIdentity:
    """Tests for resolve_episode_identity."""

    def test_guid_is_dedup_key(self):
        """Upstream GUID is used as the dedup key when present."""
        identity = resolve_episode_identity({'id': 123, 'guid': 'abc-123'})

        assert identity.remote_id == 123
        assert identity.guid == 'abc-123'
        assert identity.dedup_key == 'abc-123'
        assert not identity.is_synthetic

    def test_missing_guid_uses_synthetic_key(self):
        """Items without a GUID fall back to pi-<id>."""
        identity = resolve_episode_identity({'id': 98765, 'guid': None})

        assert identity.dedup_key == 'pi-98765'
        assert identity.is_synthetic

    def test_blank_guid_treated_as_missing(self):
        """Whitespace-only GUIDs are ignored."""
        identity = resolve_episode_identity({'id': 5, 'guid': '   '})

        assert identity.guid is None
        assert identity.dedup_key == 'pi-5'

    def test_guid_is_trimmed(self):
        """Surrounding whitespace is stripped from GUIDs."""
        identity = resolve_episode_identity({'id': 5, 'guid': '  urn:uuid:1  '})

        assert identity.dedup_key == 'urn:uuid:1'

    def test_string_remote_id_is_parsed(self):
        """Numeric string ids are accepted."""
        identity = resolve_episode_identity({'id': '42'})

        assert identity.remote_id == 42
        assert identity.dedup_key == 'pi-42'

    def test_guid_without_remote_id(self):
        """A GUID alone is enough to identify an item."""
        identity = resolve_episode_identity({'guid': 'only-guid'})

        assert identity.remote_id is None
        assert identity.dedup_key == 'only-guid'

    def test_neither_guid_nor_id_raises(self):
        """Items with no identifier at all are rejected."""
        with pytest.raises(IdentityError):
            resolve_episode_identity({'title': 'Mystery'})

    def test_same_remote_id_resolves_to_same_key(self):
        """Two GUID-less fetches of one item share a key."""
        first = resolve_episode_identity({'id': 77})
        second = resolve_episode_identity({'id': 77, 'title': 'Edited'})

        assert first == second
        assert first.dedup_key == second.dedup_key

    def test_identity_is_hashable(self):
        """Identities can be used in sets."""
        assert len({EpisodeIdentity(1, None), EpisodeIdentity(1, None)}) == 1


class TestFeedKeys:
    """Tests for feed key helpers."""

    def test_synthetic_guid_format(self):
        assert synthetic_guid(10) == 'pi-10'

    def test_feed_id_takes_precedence(self):
        """The numeric feed id wins over every other identifier."""
        key = resolve_feed_key(feed_id=42, guid='g', url='https://x', itunes_id=1)

        assert key == 'feed:42'

    def test_fallback_order(self):
        """GUID, then URL, then iTunes id."""
        assert resolve_feed_key(guid='g', url='https://x') == 'guid:g'
        assert resolve_feed_key(url='https://x', itunes_id=1) == 'url:https://x'
        assert resolve_feed_key(itunes_id=1) == 'itunes:1'

    def test_no_identifier_raises(self):
        with pytest.raises(IdentityError):
            resolve_feed_key()

    def test_feed_cursor_key(self):
        assert feed_cursor_key(42) == 'feed:42'
