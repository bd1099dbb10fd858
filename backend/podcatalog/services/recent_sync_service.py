import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from podcatalog.core.config import settings
from podcatalog.core.normalize import coerce_int, unix_seconds
from podcatalog.core.podcast_index import PodcastIndexClient
from podcatalog.services.cursor_service import SyncCursorStore, cursor_store as default_cursor_store
from podcatalog.services.podcast_sync_service import PodcastSyncService

# Configure logger for this module
logger = logging.getLogger(__name__)


@dataclass
class FeedFailure:
    feed_id: int
    message: str
    type: str

    def to_dict(self) -> Dict[str, Any]:
        return {"feedId": self.feed_id, "message": self.message, "type": self.type}


@dataclass
class RecentSyncSummary:
    feeds_processed: int = 0
    episodes_processed: int = 0
    next_since: Optional[int] = None
    feeds_attempted: int = 0
    failures: List[FeedFailure] = field(default_factory=list)
    not_found: List[int] = field(default_factory=list)
    aborted: bool = False

    @property
    def all_failed(self) -> bool:
        return self.feeds_attempted > 0 and len(self.failures) == self.feeds_attempted

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feedsProcessed": self.feeds_processed,
            "episodesProcessed": self.episodes_processed,
            "nextSince": self.next_since,
            "feedsAttempted": self.feeds_attempted,
            "failures": [failure.to_dict() for failure in self.failures],
            "notFound": list(self.not_found),
            "aborted": self.aborted,
        }


def deadline_after(seconds: Optional[float], clock: Callable[[], float] = time.monotonic) -> Optional[float]:
    """Turns a time budget in seconds into a deadline on `clock`. None or 0 means no deadline."""
    if not seconds:
        return None
    return clock() + seconds


def item_timestamp(item: Dict[str, Any]) -> Optional[int]:
    """When PodcastIndex saw the change: `episodeAdded`, else `episodeTimestamp`."""
    return unix_seconds(item.get("episodeAdded")) or unix_seconds(item.get("episodeTimestamp"))


def group_by_feed(items: List[Dict[str, Any]]) -> "OrderedDict[int, List[Dict[str, Any]]]":
    """Groups recent/data items by feed id, keeping first-seen feed order."""
    grouped: "OrderedDict[int, List[Dict[str, Any]]]" = OrderedDict()
    for item in items:
        feed_id = coerce_int(item.get("feedId"))
        if feed_id is None:
            logger.debug(f"RecentSyncOrchestrator: Ignoring item without feedId: {item.get('episodeId')}")
            continue
        grouped.setdefault(feed_id, []).append(item)
    return grouped


class RecentSyncOrchestrator:
    """
    Sweeps PodcastIndex's recent/data endpoint and syncs every feed it mentions.

    Feeds are synced one after another. A failing feed is logged, rolled back
    and recorded in the summary; the sweep moves on to the next one. The
    orchestrator reads the global `recent:data` cursor as its default lower
    bound but never writes it: persisting `next_since` is up to the caller.
    """

    def __init__(
        self,
        client: PodcastIndexClient,
        podcast_sync: Optional[PodcastSyncService] = None,
        cursor_store: Optional[SyncCursorStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.podcast_sync = podcast_sync or PodcastSyncService(client)
        self.cursor_store = cursor_store or default_cursor_store
        self._clock = clock

    def sync_recent_data(
        self,
        db: Session,
        max: Optional[int] = None,
        since: Optional[int] = None,
        deadline: Optional[float] = None,
    ) -> RecentSyncSummary:
        """
        Runs one sweep.

        Args:
            db: The SQLAlchemy database session.
            max: Upper bound on items requested from recent/data.
            since: Lower bound in Unix seconds; defaults to the stored sweep cursor.
            deadline: Value of the orchestrator clock (monotonic seconds) after
                which no further feed is started. A feed already running is
                never interrupted.

        Returns:
            A RecentSyncSummary. `next_since` is the newest change timestamp among
            feeds handled without error, or the input `since` if there was none.
            It is held below the oldest change of any feed that failed or was
            not started, so the next sweep returns those changes again.

        Raises:
            PodcastIndexError: If the recent/data call itself fails.
        """
        max = max or settings.RECENT_SYNC_MAX
        if since is None:
            since = self.cursor_store.get_recent_cursor(db)

        items = self.client.recent_changes(max=max, since=since)
        grouped = group_by_feed(items)
        logger.info(
            f"RecentSyncOrchestrator: recent/data returned {len(items)} item(s) across {len(grouped)} feed(s) "
            f"(since={since}, max={max})"
        )

        summary = RecentSyncSummary(next_since=since)
        # Changes that still have to be synced: failed feeds and feeds the deadline cut off.
        left_over: List[Dict[str, Any]] = []
        feeds = list(grouped.items())
        for index, (feed_id, feed_items) in enumerate(feeds):
            if deadline is not None and self._clock() >= deadline:
                summary.aborted = True
                for _, remaining in feeds[index:]:
                    left_over.extend(remaining)
                logger.warning(
                    f"RecentSyncOrchestrator: Deadline reached after {summary.feeds_attempted} feed(s); "
                    f"{len(feeds) - index} feed(s) left for the next sweep"
                )
                break

            summary.feeds_attempted += 1
            try:
                result = self.podcast_sync.sync_by_feed_id(db, feed_id)
            except Exception as e:
                db.rollback()
                summary.failures.append(FeedFailure(feed_id=feed_id, message=str(e), type=type(e).__name__))
                left_over.extend(feed_items)
                logger.error(f"RecentSyncOrchestrator: Feed {feed_id} failed: {e}", exc_info=True)
                continue

            if result is None:
                summary.not_found.append(feed_id)
            else:
                summary.feeds_processed += 1
                summary.episodes_processed += result.episode_delta
            summary.next_since = _newest(summary.next_since, feed_items)

        summary.next_since = _hold_back(summary.next_since, _oldest(left_over), since)

        logger.info(
            f"RecentSyncOrchestrator: Processed {summary.episodes_processed} episode(s) across "
            f"{summary.feeds_processed} feed(s); {len(summary.failures)} failed, "
            f"{len(summary.not_found)} not found, next_since={summary.next_since}"
        )
        return summary


def _newest(current: Optional[int], items: List[Dict[str, Any]]) -> Optional[int]:
    for item in items:
        timestamp = item_timestamp(item)
        if timestamp is not None and (current is None or timestamp > current):
            current = timestamp
    return current


def _oldest(items: List[Dict[str, Any]]) -> Optional[int]:
    timestamps = [ts for ts in (item_timestamp(item) for item in items) if ts is not None]
    return min(timestamps) if timestamps else None


def _hold_back(next_since: Optional[int], oldest_left: Optional[int], since: Optional[int]) -> Optional[int]:
    """Keeps the cursor below the oldest change that has not been synced yet."""
    if next_since is None or oldest_left is None or next_since < oldest_left:
        return next_since
    held = oldest_left - 1
    if since is not None and held < since:
        return since
    return held
