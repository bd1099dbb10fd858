from dataclasses import dataclass
from typing import Any, Dict, Optional

SYNTHETIC_GUID_PREFIX = "pi-"
RECENT_DATA_CURSOR_KEY = "recent:data"


class IdentityError(ValueError):
    """Raised when an item carries neither an upstream GUID nor a remote id."""


@dataclass(frozen=True)
class EpisodeIdentity:
    """
    Resolved identity of a single feed item.

    `remote_id` is the PodcastIndex episode id and `guid` the publisher's GUID;
    either may be missing, never both. `dedup_key` is what gets stored in the
    `episodes.guid` column and matched against on the next sync.
    """
    remote_id: Optional[int]
    guid: Optional[str]

    @property
    def dedup_key(self) -> str:
        if self.guid:
            return self.guid
        return synthetic_guid(self.remote_id)

    @property
    def is_synthetic(self) -> bool:
        return not self.guid


def synthetic_guid(remote_id: Any) -> str:
    return f"{SYNTHETIC_GUID_PREFIX}{remote_id}"


def _as_remote_id(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value else None
    if isinstance(value, str) and value.strip():
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _as_guid(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def resolve_episode_identity(item: Dict[str, Any]) -> EpisodeIdentity:
    """
    Picks the identity of an upstream episode payload.

    The publisher GUID is preferred. Items without one fall back to the
    synthetic `pi-<id>` key derived from the PodcastIndex episode id, which is
    stable across fetches of the same item.

    Raises:
        IdentityError: If the item has neither a GUID nor a remote id.
    """
    remote_id = _as_remote_id(item.get("id"))
    guid = _as_guid(item.get("guid"))
    if remote_id is None and guid is None:
        raise IdentityError(f"Episode payload has neither guid nor id: {item.get('title')!r}")
    return EpisodeIdentity(remote_id=remote_id, guid=guid)


def resolve_feed_key(
    feed_id: Optional[int] = None,
    guid: Optional[str] = None,
    url: Optional[str] = None,
    itunes_id: Optional[int] = None,
) -> str:
    """
    Returns a namespaced key for a feed reference, using the strongest
    identifier available: the numeric feed id, then the podcast GUID, then the
    feed URL, then the iTunes id.
    """
    if feed_id is not None:
        return f"feed:{feed_id}"
    if guid:
        return f"guid:{guid.strip()}"
    if url:
        return f"url:{url.strip()}"
    if itunes_id is not None:
        return f"itunes:{itunes_id}"
    raise IdentityError("A feed reference needs at least one identifier")


def feed_cursor_key(feed_id: int) -> str:
    return resolve_feed_key(feed_id=feed_id)
