"""
Maps raw PodcastIndex JSON payloads onto column values of the local models.

PodcastIndex is loose about types: numbers arrive as strings, booleans as 0/1
and timestamps as Unix seconds, and some endpoints use camelCase where others
use snake_case. Everything here is pure; nothing touches the database.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from podcatalog.core.identity import EpisodeIdentity, resolve_episode_identity
from podcatalog.core.timestamps import from_unix


class PayloadError(ValueError):
    """Raised when an upstream payload lacks a field needed to store it."""


# --- Coercion helpers ---

def coerce_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def coerce_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            value = float(value)
        except ValueError:
            return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return value
    return None


def coerce_int(value: Any) -> Optional[int]:
    numeric = coerce_number(value)
    return int(numeric) if numeric is not None else None


def coerce_boolean(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0
    return None


def unix_seconds(value: Any) -> Optional[int]:
    """Positive Unix timestamp in whole seconds, or None."""
    numeric = coerce_number(value)
    if numeric is None or numeric <= 0:
        return None
    return int(numeric)


def _pick(payload: Dict[str, Any], *keys: str) -> Any:
    """First non-None value among `keys`; covers snake/camel case variants."""
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def _value_destinations(value_block: Any) -> List[Dict[str, Any]]:
    if not isinstance(value_block, dict):
        return []
    destinations = []
    for destination in value_block.get("destinations") or []:
        if not isinstance(destination, dict):
            continue
        address = coerce_string(destination.get("address"))
        if address is None:
            continue
        fee = destination.get("fee")
        destinations.append({
            "name": coerce_string(destination.get("name")),
            "address": address,
            "type": coerce_string(destination.get("type")),
            "split": coerce_int(destination.get("split")),
            "fee": None if fee is None else bool(fee),
            "custom_key": coerce_string(_pick(destination, "customKey", "custom_key")),
            "custom_value": coerce_string(_pick(destination, "customValue", "custom_value")),
        })
    return destinations


def _value_model(value_block: Any) -> Dict[str, Any]:
    model = value_block.get("model") if isinstance(value_block, dict) else None
    if not isinstance(model, dict):
        model = {}
    suggested = model.get("suggested")
    return {
        "value_model_type": coerce_string(model.get("type")),
        "value_model_method": coerce_string(model.get("method")),
        "value_model_suggested": None if suggested is None else str(suggested),
    }


# --- Feeds ---

@dataclass
class NormalizedFeed:
    feed_id: int
    fields: Dict[str, Any]
    categories: List[Tuple[int, str]] = field(default_factory=list)
    value_destinations: List[Dict[str, Any]] = field(default_factory=list)


def normalize_feed_payload(feed: Dict[str, Any]) -> NormalizedFeed:
    """
    Builds Podcast column values from a `feed` object of the podcasts/* endpoints.

    Raises:
        PayloadError: If the feed has no id or no URL.
    """
    feed_id = coerce_int(feed.get("id"))
    if feed_id is None:
        raise PayloadError("Feed payload is missing its PodcastIndex id")
    url = coerce_string(feed.get("url"))
    if url is None:
        raise PayloadError(f"Feed {feed_id} payload is missing its url")

    value_block = feed.get("value")
    funding = feed.get("funding") if isinstance(feed.get("funding"), dict) else {}

    fields = {
        "podcast_index_id": feed_id,
        "podcast_guid": coerce_string(_pick(feed, "podcastGuid", "podcast_guid")),
        "title": coerce_string(feed.get("title")) or url,
        "url": url,
        "original_url": coerce_string(_pick(feed, "originalUrl", "original_url")),
        "link": coerce_string(feed.get("link")),
        "description": feed.get("description"),
        "author": coerce_string(feed.get("author")),
        "owner_name": coerce_string(_pick(feed, "ownerName", "owner_name")),
        "owner_email": coerce_string(_pick(feed, "ownerEmail", "owner_email")),
        "image": coerce_string(feed.get("image")),
        "artwork": coerce_string(feed.get("artwork")),
        "image_url_hash": coerce_int(_pick(feed, "imageUrlHash", "image_url_hash")),
        "language": coerce_string(feed.get("language")),
        "medium": coerce_string(feed.get("medium")),
        "generator": coerce_string(feed.get("generator")),
        "content_type": coerce_string(_pick(feed, "contentType", "content_type")),
        "itunes_id": coerce_int(_pick(feed, "itunesId", "itunes_id")),
        "itunes_type": coerce_string(_pick(feed, "itunesType", "itunes_type")),
        "explicit": coerce_boolean(feed.get("explicit")),
        "type": coerce_int(feed.get("type")),
        "locked": coerce_boolean(feed.get("locked")),
        "chash": coerce_string(feed.get("chash")),
        "popularity": coerce_int(feed.get("popularity")),
        "trend_score": coerce_int(_pick(feed, "trendScore", "trend_score")),
        "priority": coerce_int(feed.get("priority")),
        "in_polling_queue": coerce_boolean(_pick(feed, "inPollingQueue", "in_polling_queue")),
        "episode_count": coerce_int(_pick(feed, "episodeCount", "episode_count")),
        "last_update_time": from_unix(_pick(feed, "lastUpdateTime", "last_update_time")),
        "last_crawl_time": from_unix(_pick(feed, "lastCrawlTime", "last_crawl_time")),
        "last_parse_time": from_unix(_pick(feed, "lastParseTime", "last_parse_time")),
        "last_good_http_status_time": from_unix(
            _pick(feed, "lastGoodHttpStatusTime", "last_good_http_status_time")
        ),
        "oldest_item_pubdate": from_unix(
            _pick(feed, "oldestItemPubdate", "oldest_item_pubdate", "oldestItemPublishTime")
        ),
        "newest_item_pubdate": from_unix(
            _pick(feed, "newestItemPubdate", "newest_item_pubdate", "newestItemPublishTime")
        ),
        "created_on": from_unix(_pick(feed, "createdOn", "created_on")),
        "last_http_status": coerce_int(_pick(feed, "lastHttpStatus", "last_http_status")),
        "crawl_errors": coerce_int(_pick(feed, "crawlErrors", "crawl_errors")),
        "parse_errors": coerce_int(_pick(feed, "parseErrors", "parse_errors")),
        "dead": coerce_int(feed.get("dead")),
        "duplicate_of_feed_id": coerce_int(_pick(feed, "duplicateOf", "duplicate_of")),
        "value_block": coerce_string(_pick(feed, "valueBlock", "value_block")),
        "value_created_on": from_unix(_pick(feed, "valueCreatedOn", "value_created_on")),
        "funding_url": coerce_string(funding.get("url")),
        "funding_message": coerce_string(funding.get("message")),
    }
    fields.update(_value_model(value_block))

    categories = []
    raw_categories = feed.get("categories")
    if isinstance(raw_categories, dict):
        for category_id, name in raw_categories.items():
            parsed_id = coerce_int(category_id)
            if parsed_id is not None and coerce_string(name):
                categories.append((parsed_id, name.strip()))

    return NormalizedFeed(
        feed_id=feed_id,
        fields=fields,
        categories=categories,
        value_destinations=_value_destinations(value_block),
    )


# --- Episodes ---

@dataclass
class NormalizedEpisode:
    identity: EpisodeIdentity
    feed_id: int
    fields: Dict[str, Any]
    published_at: Optional[int] = None
    transcripts: List[Dict[str, Any]] = field(default_factory=list)
    value_destinations: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def dedup_key(self) -> str:
        return self.identity.dedup_key


def normalize_episode_payload(item: Dict[str, Any], feed_id: Optional[int] = None) -> NormalizedEpisode:
    """
    Builds Episode column values from an item of episodes/byfeedid.

    `feed_id` is used when the item itself does not name its feed.

    Raises:
        PayloadError: If no feed id can be determined.
        IdentityError: If the item has neither a GUID nor an id.
    """
    identity = resolve_episode_identity(item)
    feed = item.get("feed") if isinstance(item.get("feed"), dict) else {}
    item_feed_id = coerce_int(_pick(item, "feedId", "feed_id")) or coerce_int(feed.get("id")) or feed_id
    if item_feed_id is None:
        raise PayloadError(f"Episode payload is missing feedId (episode id: {item.get('id')})")

    published_at = unix_seconds(_pick(item, "datePublished", "date_published"))
    value_block = item.get("value")

    fields = {
        "podcast_index_id": identity.remote_id,
        "guid": identity.dedup_key,
        "feed_id": item_feed_id,
        "title": coerce_string(item.get("title")) or f"Episode {identity.remote_id or identity.dedup_key}",
        "description": item.get("description"),
        "link": coerce_string(item.get("link")),
        "date_published": from_unix(published_at),
        "date_crawled": from_unix(_pick(item, "dateCrawled", "date_crawled")),
        "enclosure_url": coerce_string(_pick(item, "enclosureUrl", "enclosure_url")),
        "enclosure_type": coerce_string(_pick(item, "enclosureType", "enclosure_type")),
        "enclosure_length": coerce_int(_pick(item, "enclosureLength", "enclosure_length")),
        "duration": coerce_int(item.get("duration")),
        "explicit": coerce_boolean(item.get("explicit")),
        "episode": coerce_int(item.get("episode")),
        "episode_type": coerce_string(_pick(item, "episodeType", "episode_type")),
        "season": coerce_int(item.get("season")),
        "image": coerce_string(item.get("image")),
        "feed_image": coerce_string(_pick(item, "feedImage", "feed_image")),
        "feed_language": coerce_string(_pick(item, "feedLanguage", "feed_language")),
        "transcript_url": coerce_string(_pick(item, "transcriptUrl", "transcript_url")),
        "chapters_url": coerce_string(_pick(item, "chaptersUrl", "chapters_url")),
        "value_created_on": from_unix(_pick(item, "valueCreatedOn", "value_created_on")),
    }
    fields.update(_value_model(value_block))

    transcripts = []
    seen_urls = set()
    for transcript in item.get("transcripts") or []:
        if not isinstance(transcript, dict):
            continue
        url = coerce_string(transcript.get("url"))
        if url is None or url in seen_urls:
            continue
        seen_urls.add(url)
        transcripts.append({
            "url": url,
            "type": coerce_string(transcript.get("type")),
            "language": coerce_string(transcript.get("language")),
            "rel": None if transcript.get("rel") is None else str(transcript.get("rel")),
        })

    return NormalizedEpisode(
        identity=identity,
        feed_id=item_feed_id,
        fields=fields,
        published_at=published_at,
        transcripts=transcripts,
        value_destinations=_value_destinations(value_block),
    )
