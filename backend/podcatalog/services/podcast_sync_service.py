import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from podcatalog.core.identity import resolve_feed_key
from podcatalog.core.normalize import NormalizedFeed, normalize_feed_payload
from podcatalog.core.podcast_index import PodcastIndexClient
from podcatalog.core.timestamps import utcnow
from podcatalog.models.episode import Episode
from podcatalog.models.podcast import Category, Podcast, PodcastCategory, PodcastValueDestination
from podcatalog.services.episode_reconciler import EpisodeReconciler, ReconcileResult

# Configure logger for this module
logger = logging.getLogger(__name__)


@dataclass
class PodcastSyncResult:
    podcast: Podcast
    # Episodes touched by this pass, not the stored total.
    episode_delta: int = 0
    episodes: List[Episode] = field(default_factory=list)
    reconcile: Optional[ReconcileResult] = None


class PodcastSyncService:
    """
    A service class containing the logic for pulling one feed from PodcastIndex
    into the local catalog.

    Every entry point resolves a PodcastIndex feed id first and then delegates
    to `sync_by_feed_id`, so there is a single upsert-and-reconcile path.
    """

    def __init__(self, client: PodcastIndexClient, reconciler: Optional[EpisodeReconciler] = None):
        self.client = client
        self.reconciler = reconciler or EpisodeReconciler(client)

    def search(self, term: str, max: int = 25) -> List[Dict[str, Any]]:
        logger.debug(f"PodcastSyncService: Searching PodcastIndex for '{term}' (max {max})")
        return self.client.search_by_term(term, max=max)

    def sync_by_feed_id(
        self,
        db: Session,
        feed_id: int,
        synchronize_episodes: bool = True,
        episode_since: Optional[int] = None,
        full_refresh: bool = False,
    ) -> Optional[PodcastSyncResult]:
        """
        Upserts a podcast and its episodes from PodcastIndex.

        Args:
            db: The SQLAlchemy database session.
            feed_id: PodcastIndex feed id.
            synchronize_episodes: Also reconcile episodes (default True).
            episode_since: Explicit lower bound for episode fetches, in Unix seconds.
            full_refresh: Ignore the stored episode cursor.

        Returns:
            A PodcastSyncResult, or None when PodcastIndex does not know the feed.

        Raises:
            PodcastIndexError: On upstream failures.
            PayloadError: If the feed payload cannot be stored.
        """
        logger.debug(f"PodcastSyncService: Syncing {resolve_feed_key(feed_id=feed_id)}")
        feed = self.client.feed_by_id(feed_id)
        if feed is None:
            logger.info(f"PodcastSyncService: Feed {feed_id} not found in PodcastIndex")
            return None

        normalized = normalize_feed_payload(feed)
        try:
            podcast = self._upsert_podcast(db, normalized)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(podcast)

        result = PodcastSyncResult(podcast=podcast)
        if synchronize_episodes:
            reconciled = self.reconciler.reconcile(
                db,
                podcast.id,
                normalized.feed_id,
                since=episode_since,
                full_refresh=full_refresh,
            )
            result.reconcile = reconciled
            result.episodes = reconciled.upserted
            result.episode_delta = len(reconciled.upserted)

        logger.info(
            f"PodcastSyncService: Synced feed {feed_id} as podcast {podcast.id} "
            f"with {result.episode_delta} episode(s) touched"
        )
        return result

    def sync_by_guid(self, db: Session, guid: str, **options) -> Optional[PodcastSyncResult]:
        feed = self.client.feed_by_guid(guid)
        if feed is None:
            logger.info(f"PodcastSyncService: No feed for {resolve_feed_key(guid=guid)}")
            return None
        return self.sync_by_feed_id(db, int(feed["id"]), **options)

    def sync_by_feed_url(self, db: Session, url: str, **options) -> Optional[PodcastSyncResult]:
        feed = self.client.feed_by_url(url)
        if feed is None:
            logger.info(f"PodcastSyncService: No feed for {resolve_feed_key(url=url)}")
            return None
        return self.sync_by_feed_id(db, int(feed["id"]), **options)

    def sync_by_itunes_id(self, db: Session, itunes_id: int, **options) -> Optional[PodcastSyncResult]:
        feed = self.client.feed_by_itunes_id(itunes_id)
        if feed is None:
            logger.info(f"PodcastSyncService: No feed for {resolve_feed_key(itunes_id=itunes_id)}")
            return None
        return self.sync_by_feed_id(db, int(feed["id"]), **options)

    def add_by_feed_url(self, db: Session, url: str, **options) -> Optional[PodcastSyncResult]:
        """
        Registers a feed URL with PodcastIndex, then syncs the resulting feed id.
        Returns None when PodcastIndex refuses the URL.
        """
        feed_id = self.client.register_by_url(url)
        if feed_id is None:
            logger.info(f"PodcastSyncService: PodcastIndex did not register {url}")
            return None
        return self.sync_by_feed_id(db, feed_id, **options)

    def sync_using_identifiers(
        self,
        db: Session,
        feed_id: Optional[int] = None,
        guid: Optional[str] = None,
        feed_url: Optional[str] = None,
        itunes_id: Optional[int] = None,
        **options,
    ) -> Optional[PodcastSyncResult]:
        """Syncs using the strongest identifier given: feed id, GUID, URL, then iTunes id."""
        if feed_id:
            return self.sync_by_feed_id(db, feed_id, **options)
        if guid:
            return self.sync_by_guid(db, guid, **options)
        if feed_url:
            return self.sync_by_feed_url(db, feed_url, **options)
        if itunes_id:
            return self.sync_by_itunes_id(db, itunes_id, **options)
        raise ValueError("At least one of feed_id, guid, feed_url or itunes_id is required")

    def _upsert_podcast(self, db: Session, normalized: NormalizedFeed) -> Podcast:
        podcast = db.query(Podcast).filter(Podcast.podcast_index_id == normalized.feed_id).first()
        if podcast is None:
            podcast = Podcast(**normalized.fields)
            db.add(podcast)
            logger.debug(f"PodcastSyncService: Creating podcast for feed {normalized.feed_id}")
        else:
            for key, value in normalized.fields.items():
                setattr(podcast, key, value)
            # Touched even when nothing changed upstream; staleness checks read it.
            podcast.updated_at = utcnow()
        db.flush()

        # Categories and value destinations mirror the feed on every sync.
        wanted = {category_id for category_id, _ in normalized.categories}
        linked = db.query(PodcastCategory).filter(PodcastCategory.podcast_id == podcast.id).all()
        for link in linked:
            if link.category_id not in wanted:
                db.delete(link)
        linked_ids = {link.category_id for link in linked}
        for category_id, name in normalized.categories:
            category = db.get(Category, category_id)
            if category is None:
                db.add(Category(id=category_id, name=name))
            elif category.name != name:
                category.name = name
            if category_id not in linked_ids:
                db.add(PodcastCategory(podcast_id=podcast.id, category_id=category_id))

        db.query(PodcastValueDestination).filter(PodcastValueDestination.podcast_id == podcast.id).delete()
        for destination in normalized.value_destinations:
            db.add(PodcastValueDestination(podcast_id=podcast.id, **destination))
        db.flush()
        return podcast
