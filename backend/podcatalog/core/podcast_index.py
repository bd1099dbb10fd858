import hashlib
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from podcatalog.core.config import Settings

# Configure logger for this module
logger = logging.getLogger(__name__)

# Statuses worth retrying: rate limiting and transient upstream failures.
RETRY_STATUSES = (429, 500, 502, 503, 504)


class PodcastIndexError(Exception):
    """Base class for every failure talking to PodcastIndex."""


class ConfigurationError(PodcastIndexError):
    """Raised when API credentials are missing."""


class PodcastIndexRequestError(PodcastIndexError):
    """
    A request that failed after the adapter gave up retrying.

    `retryable` tells callers whether running the same job again later has a
    chance of succeeding (transport errors, 429, 5xx) or not (other 4xx).
    """

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class PodcastIndexAuthError(PodcastIndexRequestError):
    """401/403: the credentials were rejected."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code, retryable=False)


class PodcastIndexClient:
    """
    Thin synchronous wrapper over the PodcastIndex REST API.

    Every request is signed with the `X-Auth-Key`, `X-Auth-Date` and
    `Authorization` headers. Transport errors and 429/5xx responses are retried
    with exponential backoff by the mounted `HTTPAdapter`; anything left over
    surfaces as a `PodcastIndexRequestError`. Lookups of feeds that PodcastIndex
    does not know return None instead of raising.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        user_agent: str = "PodcastIndexManager/1.0",
        base_url: str = "https://api.podcastindex.org/api/1.0",
        timeout: int = 30,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ):
        if not api_key or not api_secret:
            raise ConfigurationError("PODCASTINDEX_API_KEY and PODCASTINDEX_API_SECRET must be set")
        self.api_key = api_key
        self.api_secret = api_secret
        self.user_agent = user_agent
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._clock = clock

        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(
                max_retries=Retry(
                    total=max_retries,
                    backoff_factor=backoff_factor,
                    status_forcelist=RETRY_STATUSES,
                    allowed_methods=frozenset(["GET"]),
                    raise_on_status=False,
                )
            )
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        self._session = session

    @classmethod
    def from_settings(cls, settings: Settings) -> "PodcastIndexClient":
        return cls(
            api_key=settings.PODCASTINDEX_API_KEY,
            api_secret=settings.PODCASTINDEX_API_SECRET,
            user_agent=settings.PODCASTINDEX_USER_AGENT,
            base_url=settings.PODCASTINDEX_BASE_URL,
            timeout=settings.PODCASTINDEX_TIMEOUT,
            max_retries=settings.PODCASTINDEX_MAX_RETRIES,
            backoff_factor=settings.PODCASTINDEX_BACKOFF_FACTOR,
        )

    def auth_headers(self) -> Dict[str, str]:
        auth_date = str(int(self._clock()))
        signature = hashlib.sha1(f"{self.api_key}{self.api_secret}{auth_date}".encode("utf-8")).hexdigest()
        return {
            "User-Agent": self.user_agent,
            "X-Auth-Date": auth_date,
            "X-Auth-Key": self.api_key,
            "Authorization": signature,
        }

    def _request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """
        Performs a signed GET and returns the decoded JSON body, or None on 404.

        Raises:
            PodcastIndexAuthError: On 401/403.
            PodcastIndexRequestError: On transport errors and any other non-2xx status.
        """
        url = f"{self.base_url}{path}"
        query = {key: value for key, value in (params or {}).items() if value is not None}
        logger.debug(f"PodcastIndexClient: GET {path} params={query}")
        try:
            response = self._session.get(url, params=query, headers=self.auth_headers(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"PodcastIndexClient: Transport error on {path}: {e}")
            raise PodcastIndexRequestError(f"Could not reach PodcastIndex: {e}", retryable=True) from e

        status_code = response.status_code
        if status_code == 404:
            logger.debug(f"PodcastIndexClient: {path} returned 404")
            return None
        if status_code in (401, 403):
            raise PodcastIndexAuthError(
                f"PodcastIndex rejected the credentials ({status_code})", status_code=status_code
            )
        if status_code >= 400:
            raise PodcastIndexRequestError(
                f"PodcastIndex request failed ({status_code}): {response.text[:200]}",
                status_code=status_code,
                retryable=status_code in RETRY_STATUSES,
            )
        try:
            return response.json()
        except ValueError as e:
            raise PodcastIndexRequestError(
                f"PodcastIndex returned an invalid JSON body for {path}", status_code=status_code
            ) from e

    def _feed(self, path: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        # Unknown feeds come back as 404, or as 200 with an empty `feed` list.
        data = self._request(path, params)
        if not data:
            return None
        feed = data.get("feed")
        if not isinstance(feed, dict) or not feed.get("id"):
            return None
        return feed

    def search_by_term(self, term: str, max: int = 25) -> List[Dict[str, Any]]:
        data = self._request("/search/byterm", {"q": term, "max": max})
        return (data or {}).get("feeds") or []

    def feed_by_id(self, feed_id: int) -> Optional[Dict[str, Any]]:
        return self._feed("/podcasts/byfeedid", {"id": feed_id})

    def feed_by_guid(self, guid: str) -> Optional[Dict[str, Any]]:
        return self._feed("/podcasts/byguid", {"guid": guid})

    def feed_by_url(self, url: str) -> Optional[Dict[str, Any]]:
        return self._feed("/podcasts/byfeedurl", {"url": url})

    def feed_by_itunes_id(self, itunes_id: int) -> Optional[Dict[str, Any]]:
        return self._feed("/podcasts/byitunesid", {"id": itunes_id})

    def register_by_url(self, url: str) -> Optional[int]:
        """
        Asks PodcastIndex to add a feed URL to its index.

        Returns:
            The feed id PodcastIndex assigned (or already had), None if it refused.
        """
        data = self._request("/add/byfeedurl", {"url": url})
        if not data:
            return None
        feed_id = data.get("feedId")
        if feed_id in (None, "", 0):
            logger.info(f"PodcastIndexClient: add/byfeedurl did not return a feed id for {url}: {data.get('description')}")
            return None
        return int(feed_id)

    def episodes_by_feed_id(
        self, feed_id: int, max: Optional[int] = None, since: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        data = self._request(
            "/episodes/byfeedid",
            {"id": feed_id, "max": max or None, "since": since or None},
        )
        return (data or {}).get("items") or []

    def recent_changes(self, max: Optional[int] = None, since: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Returns the change records of recent/data: the feed-level `feeds`
        entries followed by the episode-level `items`, newest changes first
        within each list. Every record names its `feedId`; episode items also
        carry `episodeId` and `episodeAdded`.
        """
        data = self._request("/recent/data", {"max": max or None, "since": since or None})
        if not data:
            return []
        payload = data.get("data") if isinstance(data.get("data"), dict) else data
        feeds = [
            dict(feed, feedId=feed.get("feedId", feed.get("id")))
            for feed in payload.get("feeds") or []
            if isinstance(feed, dict)
        ]
        return feeds + list(payload.get("items") or [])

    def close(self):
        self._session.close()
