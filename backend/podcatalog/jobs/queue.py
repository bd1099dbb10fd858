import json
import logging
import uuid
from typing import Any, Dict, List, Optional

import redis

from podcatalog.core.config import Settings
from podcatalog.core.timestamps import utcnow

# Configure logger for this module
logger = logging.getLogger(__name__)

SYNC_RECENT_JOB = "sync-recent-data"
SYNC_FEED_JOB = "sync-feed"


class SyncJobQueue:
    """
    Minimal at-least-once job queue on top of Redis lists.

    Jobs are JSON documents pushed to `<name>:jobs` and popped with a blocking
    BLPOP. A failed job is pushed back with its attempt counter incremented
    until `max_attempts` is reached, after which it lands in `<name>:dead`.
    """

    def __init__(self, client: "redis.Redis", name: str = "podcast-sync", max_attempts: int = 3):
        self.client = client
        self.name = name
        self.max_attempts = max(1, max_attempts)

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["SyncJobQueue"]:
        """Builds a queue from REDIS_URL, or returns None when it is not configured."""
        if not settings.REDIS_URL:
            return None
        client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        return cls(client, name=settings.SYNC_QUEUE_NAME, max_attempts=settings.SYNC_JOB_MAX_ATTEMPTS)

    @property
    def jobs_key(self) -> str:
        return f"{self.name}:jobs"

    @property
    def dead_key(self) -> str:
        return f"{self.name}:dead"

    def enqueue(self, job_name: str, payload: Dict[str, Any], attempts: int = 0) -> Dict[str, Any]:
        job = {
            "id": uuid.uuid4().hex,
            "name": job_name,
            "payload": payload,
            "attempts": attempts,
            "enqueuedAt": utcnow().isoformat(),
        }
        self.client.rpush(self.jobs_key, json.dumps(job))
        logger.debug(f"SyncJobQueue: Enqueued {job_name} job {job['id']} on {self.jobs_key}")
        return {"id": job["id"]}

    def dequeue(self, timeout: int = 5) -> Optional[Dict[str, Any]]:
        """
        Blocks up to `timeout` seconds for the next job.

        Returns:
            The decoded job, or None if the queue stayed empty.
        """
        popped = self.client.blpop([self.jobs_key], timeout=timeout)
        if popped is None:
            return None
        _, raw = popped
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.error(f"SyncJobQueue: Dropping undecodable job on {self.jobs_key} into {self.dead_key}")
            self.client.rpush(self.dead_key, raw)
            return None

    def retry(self, job: Dict[str, Any], error: Optional[str] = None) -> bool:
        """
        Requeues a failed job, or dead-letters it once attempts are exhausted.

        Returns:
            True if the job was requeued, False if it was dead-lettered.
        """
        attempts = int(job.get("attempts", 0)) + 1
        retried = dict(job, attempts=attempts, lastError=error)
        if attempts >= self.max_attempts:
            self.client.rpush(self.dead_key, json.dumps(retried))
            logger.warning(
                f"SyncJobQueue: Job {job.get('id')} ({job.get('name')}) failed {attempts} time(s); moved to {self.dead_key}"
            )
            return False
        # The ledger row of the failed attempt is terminal; the retry gets its own.
        payload = dict(retried.get("payload") or {})
        payload.pop("logId", None)
        retried["payload"] = payload
        self.client.rpush(self.jobs_key, json.dumps(retried))
        logger.info(f"SyncJobQueue: Requeued job {job.get('id')} (attempt {attempts + 1} of {self.max_attempts})")
        return True

    def dead_letters(self, limit: int = 50) -> List[Dict[str, Any]]:
        return [json.loads(raw) for raw in self.client.lrange(self.dead_key, 0, limit - 1)]

    def pending_count(self) -> int:
        return int(self.client.llen(self.jobs_key))

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.warning(f"SyncJobQueue: Redis ping failed: {e}")
            return False

    def close(self):
        self.client.close()
