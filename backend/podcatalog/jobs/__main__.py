"""
Command line entry point for the sync worker and one-off syncs.

Usage:
    python -m podcatalog.jobs worker
    python -m podcatalog.jobs sync-recent --max 500
    python -m podcatalog.jobs sync-feed 920666

The worker needs REDIS_URL; the one-off commands run inline and only need the
database and the PodcastIndex credentials.
"""
import argparse
import logging
import sys
from typing import List, Optional

from podcatalog.core.config import settings
from podcatalog.core.podcast_index import PodcastIndexClient, PodcastIndexError
from podcatalog.db.session import Base, SessionLocal, engine
from podcatalog.jobs.queue import SyncJobQueue
from podcatalog.jobs.sync_recent import SyncRecentWorker
from podcatalog.services.podcast_sync_service import PodcastSyncService
from podcatalog.services.recent_sync_service import deadline_after
from podcatalog.services.sync_runner import SyncJobRunner
import podcatalog.models  # noqa: F401  registers every table on Base.metadata

logger = logging.getLogger("podcatalog.jobs")


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m podcatalog.jobs",
        description="Run the podcast sync worker or a single sync inline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m podcatalog.jobs worker                 # Consume queued sync jobs
  python -m podcatalog.jobs sync-recent            # One recent-data sweep
  python -m podcatalog.jobs sync-recent --max 200  # Smaller sweep
  python -m podcatalog.jobs sync-recent --deadline-seconds 600  # Stop starting feeds after 10 minutes
  python -m podcatalog.jobs sync-feed 920666       # Sync one feed and its episodes
        """,
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    worker = subparsers.add_parser("worker", help="Consume jobs from the Redis queue")
    worker.add_argument("--name", default="sync-recent-worker", help="Worker name recorded in sync_workers")
    worker.add_argument("--poll-timeout", type=int, default=5, help="Seconds to block waiting for a job")
    worker.add_argument(
        "--deadline-seconds",
        type=float,
        default=settings.RECENT_SYNC_DEADLINE_SECONDS,
        help="Time budget per recent-data sweep; no new feed is started once it is spent",
    )

    recent = subparsers.add_parser("sync-recent", help="Run one recent-data sweep inline")
    recent.add_argument("--max", type=int, default=None, help=f"Items to request (default: {settings.RECENT_SYNC_MAX})")
    recent.add_argument("--since", type=int, default=None, help="Unix seconds; defaults to the stored sweep cursor")
    recent.add_argument(
        "--deadline-seconds",
        type=float,
        default=settings.RECENT_SYNC_DEADLINE_SECONDS,
        help="Time budget for the sweep; feeds not started in time are left for the next run",
    )

    feed = subparsers.add_parser("sync-feed", help="Sync a single feed inline")
    feed.add_argument("feed_id", type=int, help="PodcastIndex feed id")
    feed.add_argument("--full-refresh", action="store_true", help="Ignore the stored episode cursor")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point. Returns the process exit code: 0 on success, 1 on error,
    130 when interrupted.
    """
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    Base.metadata.create_all(bind=engine)
    try:
        client = PodcastIndexClient.from_settings(settings)
    except PodcastIndexError as e:
        logger.error(f"Jobs: {e}")
        return 1

    runner = SyncJobRunner(PodcastSyncService(client))
    queue: Optional[SyncJobQueue] = None
    try:
        if args.command == "worker":
            queue = SyncJobQueue.from_settings(settings)
            if queue is None:
                logger.error("Jobs: REDIS_URL is not configured; the worker has nothing to consume")
                return 1
            worker = SyncRecentWorker(
                queue,
                runner,
                SessionLocal,
                name=args.name,
                poll_timeout=args.poll_timeout,
                deadline_seconds=args.deadline_seconds,
            )
            worker.run_forever()
            return 0

        db = SessionLocal()
        try:
            if args.command == "sync-recent":
                summary = runner.run_recent_sync(
                    db, max=args.max, since=args.since, deadline=deadline_after(args.deadline_seconds)
                )
                print(
                    f"[sync-recent-data] feeds={summary.feeds_processed} episodes={summary.episodes_processed} "
                    f"failed={len(summary.failures)} nextSince={summary.next_since or 'n/a'}"
                )
                return 1 if summary.all_failed else 0

            result = runner.run_feed_sync(db, args.feed_id, full_refresh=args.full_refresh)
            if result is None:
                print(f"[sync-feed] feed {args.feed_id} not found in PodcastIndex", file=sys.stderr)
                return 1
            print(f"[sync-feed] feed={args.feed_id} podcast={result.podcast.id} episodes={result.episode_delta}")
            return 0
        finally:
            db.close()
    except KeyboardInterrupt:
        logger.info("Jobs: Interrupted")
        return 130
    except Exception as e:
        logger.error(f"Jobs: {args.command} failed: {e}", exc_info=True)
        return 1
    finally:
        client.close()
        if queue is not None:
            queue.close()


if __name__ == "__main__":
    sys.exit(main())
