import logging
from typing import Optional

from sqlalchemy.orm import Session

from podcatalog.core.identity import RECENT_DATA_CURSOR_KEY, feed_cursor_key
from podcatalog.core.timestamps import utcnow
from podcatalog.models.sync import SyncCursor

# Configure logger for this module
logger = logging.getLogger(__name__)


class SyncCursorStore:
    """
    Persists the last-synced Unix timestamp per key.

    Cursors only move forward: `advance` ignores any value that is not strictly
    greater than the stored one, so concurrent or replayed syncs converge on the
    highest timestamp seen.
    """

    def get(self, db: Session, key: str) -> Optional[int]:
        record = db.get(SyncCursor, key)
        if record is None:
            return None
        try:
            return int(record.cursor)
        except (TypeError, ValueError):
            logger.warning(f"SyncCursorStore: Ignoring unparseable cursor {record.cursor!r} for key {key}")
            return None

    def advance(self, db: Session, key: str, value: Optional[int]) -> Optional[int]:
        """
        Moves the cursor for `key` to `value` if that is newer, and commits.

        Args:
            db: The SQLAlchemy database session.
            key: Cursor key, e.g. `feed:42`.
            value: Candidate timestamp in Unix seconds. None is a no-op.

        Returns:
            The cursor value stored after the call.
        """
        current = self.get(db, key)
        if value is None or (current is not None and value <= current):
            logger.debug(f"SyncCursorStore: Keeping cursor {key} at {current} (candidate {value})")
            return current

        record = db.get(SyncCursor, key)
        if record is None:
            record = SyncCursor(id=key, cursor=str(value))
            db.add(record)
        else:
            record.cursor = str(value)
            record.updated_at = utcnow()
        db.commit()
        logger.debug(f"SyncCursorStore: Advanced cursor {key} from {current} to {value}")
        return value

    def get_feed_cursor(self, db: Session, feed_id: int) -> Optional[int]:
        return self.get(db, feed_cursor_key(feed_id))

    def advance_feed_cursor(self, db: Session, feed_id: int, value: Optional[int]) -> Optional[int]:
        return self.advance(db, feed_cursor_key(feed_id), value)

    def get_recent_cursor(self, db: Session) -> Optional[int]:
        return self.get(db, RECENT_DATA_CURSOR_KEY)

    def advance_recent_cursor(self, db: Session, value: Optional[int]) -> Optional[int]:
        return self.advance(db, RECENT_DATA_CURSOR_KEY, value)


# Create a single instance of the service to be used as a dependency
cursor_store = SyncCursorStore()

def get_cursor_store():
    """
    Dependency function to provide the cursor store instance.
    """
    return cursor_store
