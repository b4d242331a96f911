"""Service to load catalog, watch history and ratings from the content API"""
from typing import Any, Callable, Dict, List, Optional, TypeVar
import time
import logging
import requests

from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from madifa_recommendation_service.config import get_content_api_url, get_http_timeout
from madifa_recommendation_service.models import (
    ContentItem,
    RatingEntry,
    WatchHistoryEntry,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ENVELOPE_KEYS = ("items", "contents", "history", "ratings", "counts")


def unwrap_records(payload: Any) -> List[Dict]:
    """Return the record list of a response, bare or wrapped in an envelope."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in _ENVELOPE_KEYS:
            records = payload.get(key)
            if isinstance(records, list):
                return records
    return []


def parse_records(records: List[Dict], parser: Callable[[Dict], T], kind: str) -> List[T]:
    """
    Convert raw records with parser, skipping malformed ones.

    Args:
        records: Raw JSON records
        parser: from_dict of the target type
        kind: Record kind for log messages

    Returns:
        Parsed records in input order
    """
    parsed: List[T] = []
    for record in records:
        if not isinstance(record, dict):
            logger.warning(f"Skipping malformed {kind} record: {record!r}")
            continue
        try:
            parsed.append(parser(record))
        except ValueError as e:
            logger.warning(f"Skipping malformed {kind} record: {e}")
    return parsed


class ContentDataLoader:
    """Service to load recommendation inputs from the application's content API."""

    def __init__(
            self,
            content_api_url: Optional[str] = None,
            timeout: Optional[float] = None
    ):
        self.content_api_url = (content_api_url or get_content_api_url() or "").rstrip("/")
        self.timeout = timeout if timeout is not None else get_http_timeout()

        # Configure session with retries
        self.session = requests.Session()
        retry_strategy = Retry(
            total=3,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        # noinspection HttpUrlsUsage
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _get_json(self, path: str, params: Optional[Dict] = None) -> Any:
        url = f"{self.content_api_url}/{path}"
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    # ===== CATALOG ENDPOINTS =====

    def get_contents_page(self, offset: int = 0, limit: int = 100) -> Dict:
        """
        Fetch one page of the catalog.

        Returns:
            {
                "contents": [...],
                "total": 1234,
                "offset": 0,
                "limit": 100
            }
        """
        payload = self._get_json("contents", params={'offset': offset, 'limit': limit})
        if isinstance(payload, list):
            return {'contents': payload, 'total': len(payload), 'offset': offset, 'limit': limit}
        return payload

    def get_catalog(self, batch_size: int = 100, max_items: Optional[int] = None) -> List[ContentItem]:
        """
        Fetch the whole catalog using pagination.

        Args:
            batch_size: Number of items per request
            max_items: Optional limit on total items to fetch (for testing)

        Returns:
            List of ContentItem
        """
        raw_items: List[Dict] = []
        offset = 0

        logger.info(f"Fetching catalog (batch size: {batch_size})...")

        while True:
            if max_items and len(raw_items) >= max_items:
                logger.info(f"Reached max_items limit: {max_items}")
                break

            page = self.get_contents_page(offset=offset, limit=batch_size)
            records = unwrap_records(page)

            if not records:
                break

            raw_items.extend(records)

            # Fewer items than requested means we're at the end
            if len(records) < batch_size:
                break

            offset += batch_size
            time.sleep(0.1)  # Rate limiting

        if max_items:
            raw_items = raw_items[:max_items]

        catalog = parse_records(raw_items, ContentItem.from_dict, "content")
        logger.info(f"✓ Loaded {len(catalog)} catalog items")
        return catalog

    def get_content(self, content_id: int) -> ContentItem:
        """Fetch single content item by ID"""
        return ContentItem.from_dict(self._get_json(f"contents/{content_id}"))

    # ===== USER ENDPOINTS =====

    def get_watch_history(self, user_id: int) -> List[WatchHistoryEntry]:
        """Fetch a user's watch history"""
        records = unwrap_records(self._get_json(f"users/{user_id}/history"))
        return parse_records(records, WatchHistoryEntry.from_dict, "history")

    def get_ratings(self, user_id: int) -> List[RatingEntry]:
        """Fetch a user's ratings"""
        records = unwrap_records(self._get_json(f"users/{user_id}/ratings"))
        return parse_records(records, RatingEntry.from_dict, "rating")

    # ===== AGGREGATES =====

    def get_watch_counts(self) -> Dict[int, float]:
        """
        Fetch recent watch counts across all users.

        Accepts either a {"<content id>": count} object or a list of
        {"contentId": ..., "count": ...} records.
        """
        payload = self._get_json("history/counts")
        counts: Dict[int, float] = {}

        if isinstance(payload, dict) and not any(key in payload for key in _ENVELOPE_KEYS):
            pairs = list(payload.items())
        else:
            pairs = [
                (record.get("contentId", record.get("content_id")), record.get("count"))
                for record in unwrap_records(payload)
                if isinstance(record, dict)
            ]

        for content_id, count in pairs:
            try:
                counts[int(content_id)] = float(count)
            except (TypeError, ValueError):
                logger.warning(f"Skipping malformed watch count: {content_id!r}={count!r}")
        return counts
