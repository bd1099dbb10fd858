import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from podcatalog.core.config import settings
from podcatalog.core.identity import IdentityError
from podcatalog.core.normalize import NormalizedEpisode, PayloadError, normalize_episode_payload, unix_seconds
from podcatalog.core.podcast_index import PodcastIndexClient
from podcatalog.models.episode import Episode, EpisodeTranscript, EpisodeValueDestination
from podcatalog.services.cursor_service import SyncCursorStore, cursor_store as default_cursor_store

# Configure logger for this module
logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass for a single feed."""
    upserted: List[Episode] = field(default_factory=list)
    new_cursor: Optional[int] = None
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    pages: int = 0


def chunked(items: List[Any], size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class EpisodeReconciler:
    """
    Brings the stored episodes of one podcast in line with PodcastIndex.

    A pass fetches every page newer than the feed cursor, upserts each item by
    its resolved identity and only then advances the cursor. Items are written
    in fetch order, so when two items resolve to the same identity the later
    one wins. Writes are committed in chunks; if a chunk fails, earlier chunks
    stay committed, the cursor is left untouched and the next pass rewrites the
    same items.
    """

    def __init__(
        self,
        client: PodcastIndexClient,
        cursor_store: Optional[SyncCursorStore] = None,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
        write_chunk_size: Optional[int] = None,
    ):
        self.client = client
        self.cursor_store = cursor_store or default_cursor_store
        self.page_size = max(1, page_size or settings.EPISODE_PAGE_SIZE)
        self.max_pages = max(1, max_pages or settings.EPISODE_MAX_PAGES)
        self.write_chunk_size = max(1, write_chunk_size or settings.EPISODE_WRITE_CHUNK_SIZE)

    def fetch_pages(
        self, feed_id: int, since: Optional[int], full_refresh: bool = False
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Pages through episodes/byfeedid, moving `since` to the newest publish
        time of each page.

        Stops on a short page, once `max_pages` pages were fetched, when a page
        does not move `since` forward, or after the first page of a full
        refresh (the endpoint has no offset parameter).

        Returns:
            All fetched items in fetch order, and the number of pages requested.
        """
        items: List[Dict[str, Any]] = []
        pages = 0
        while True:
            batch = self.client.episodes_by_feed_id(feed_id, max=self.page_size, since=since)
            pages += 1
            items.extend(batch)
            if len(batch) < self.page_size or full_refresh:
                break
            if pages >= self.max_pages:
                logger.warning(
                    f"EpisodeReconciler: Page ceiling of {self.max_pages} reached for feed {feed_id}; "
                    f"remaining episodes will be picked up by the next pass."
                )
                break
            batch_max = _max_published(batch)
            if batch_max is None or (since is not None and batch_max <= since):
                break
            since = batch_max
        return items, pages

    def existing_keys(self, db: Session, podcast_id: int) -> Set[str]:
        rows = db.query(Episode.guid).filter(Episode.podcast_id == podcast_id).all()
        return {row[0] for row in rows}

    def reconcile(
        self,
        db: Session,
        podcast_id: int,
        feed_id: int,
        since: Optional[int] = None,
        full_refresh: bool = False,
    ) -> ReconcileResult:
        """
        Fetches, de-duplicates and upserts the episodes of one feed.

        Args:
            db: The SQLAlchemy database session.
            podcast_id: Local id of the podcast owning the episodes.
            feed_id: PodcastIndex feed id.
            since: Explicit lower bound (Unix seconds); defaults to the stored cursor.
            full_refresh: Ignore the stored cursor and fetch the latest page only.

        Returns:
            A ReconcileResult with the touched episodes and the cursor after the pass.

        Raises:
            PodcastIndexError: Upstream failures propagate; the cursor is not written.
        """
        prior_cursor = self.cursor_store.get_feed_cursor(db, feed_id)
        effective_since = since if (since is not None or full_refresh) else prior_cursor
        logger.debug(
            f"EpisodeReconciler: Reconciling feed {feed_id} (podcast {podcast_id}) since={effective_since} "
            f"full_refresh={full_refresh}"
        )

        raw_items, pages = self.fetch_pages(feed_id, effective_since, full_refresh=full_refresh)
        result = ReconcileResult(new_cursor=prior_cursor, pages=pages)

        normalized: List[NormalizedEpisode] = []
        for item in raw_items:
            try:
                normalized.append(normalize_episode_payload(item, feed_id=feed_id))
            except (IdentityError, PayloadError) as e:
                result.skipped += 1
                logger.warning(f"EpisodeReconciler: Skipping unusable item {item.get('id')} of feed {feed_id}: {e}")

        existing = self.existing_keys(db, podcast_id)
        fresh = [episode for episode in normalized if episode.dedup_key not in existing]
        logger.debug(
            f"EpisodeReconciler: Feed {feed_id}: fetched {len(raw_items)} items over {pages} page(s), "
            f"{len(fresh)} new, {len(normalized) - len(fresh)} already stored"
        )

        # A chunk is one transaction on this session, so its items are written in order.
        for chunk in chunked(normalized, self.write_chunk_size):
            try:
                for episode_data in chunk:
                    episode, created = self._upsert(db, podcast_id, episode_data)
                    result.upserted.append(episode)
                    if created:
                        result.inserted += 1
                    else:
                        result.updated += 1
                db.commit()
            except Exception:
                db.rollback()
                logger.error(f"EpisodeReconciler: Write failed for feed {feed_id}; cursor stays at {prior_cursor}")
                raise

        candidate = _max_published_normalized(normalized)
        result.new_cursor = self.cursor_store.advance_feed_cursor(db, feed_id, candidate)
        logger.info(
            f"EpisodeReconciler: Feed {feed_id}: {result.inserted} inserted, {result.updated} updated, "
            f"cursor {prior_cursor} -> {result.new_cursor}"
        )
        return result

    def _find_existing(self, db: Session, podcast_id: int, episode_data: NormalizedEpisode) -> Optional[Episode]:
        remote_id = episode_data.identity.remote_id
        if remote_id is not None:
            episode = db.query(Episode).filter(Episode.podcast_index_id == remote_id).first()
            if episode is not None:
                return episode
        return (
            db.query(Episode)
            .filter(Episode.podcast_id == podcast_id, Episode.guid == episode_data.dedup_key)
            .first()
        )

    def _upsert(self, db: Session, podcast_id: int, episode_data: NormalizedEpisode) -> Tuple[Episode, bool]:
        episode = self._find_existing(db, podcast_id, episode_data)
        created = episode is None

        if created:
            episode = Episode(podcast_id=podcast_id, **episode_data.fields)
            db.add(episode)
        else:
            if episode.podcast_id != podcast_id or episode.guid != episode_data.dedup_key:
                # The row matched on remote id now carries another identity; drop
                # any other row of this podcast already holding that identity.
                conflict = (
                    db.query(Episode)
                    .filter(
                        Episode.podcast_id == podcast_id,
                        Episode.guid == episode_data.dedup_key,
                        Episode.id != episode.id,
                    )
                    .first()
                )
                if conflict is not None:
                    logger.debug(
                        f"EpisodeReconciler: Removing superseded episode {conflict.id} ({conflict.guid})"
                    )
                    db.delete(conflict)
                    db.flush()
            episode.podcast_id = podcast_id
            for key, value in episode_data.fields.items():
                setattr(episode, key, value)

        # Sessions run with autoflush off; flushing here makes the row visible
        # to the lookups of later items in the same chunk.
        db.flush()
        self._replace_relations(db, episode, episode_data)
        return episode, created

    def _replace_relations(self, db: Session, episode: Episode, episode_data: NormalizedEpisode):
        db.query(EpisodeTranscript).filter(EpisodeTranscript.episode_id == episode.id).delete()
        db.query(EpisodeValueDestination).filter(EpisodeValueDestination.episode_id == episode.id).delete()
        for transcript in episode_data.transcripts:
            db.add(EpisodeTranscript(episode_id=episode.id, **transcript))
        for destination in episode_data.value_destinations:
            db.add(EpisodeValueDestination(episode_id=episode.id, **destination))
        db.flush()


def _max_published(items: List[Dict[str, Any]]) -> Optional[int]:
    values = [unix_seconds(item.get("datePublished", item.get("date_published"))) for item in items]
    values = [value for value in values if value is not None]
    return max(values) if values else None


def _max_published_normalized(items: List[NormalizedEpisode]) -> Optional[int]:
    values = [item.published_at for item in items if item.published_at is not None]
    return max(values) if values else None
