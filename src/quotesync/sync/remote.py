"""
Remote quote source.

The remote is any HTTP endpoint that returns a JSON list of items on GET and
accepts one item per POST. Items are mapped to records as:
- id: the item's "id", as a string
- text: "text", else "title", else "body"
- category: "category", else the configured default category
"""

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field

import httpx

from ..errors import NetworkError, ValidationError
from ..models import Record, validate_fields

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_URL = "https://jsonplaceholder.typicode.com/posts"
DEFAULT_REMOTE_CATEGORY = "remote"
DEFAULT_TIMEOUT = 10.0

TEXT_FIELDS = ("text", "title", "body")


@dataclass
class PushResult:
    """Outcome of pushing a single record."""
    record_id: str
    success: bool
    error: str | None = None


@dataclass
class PushReport:
    """Outcome of pushing a batch of records."""
    results: list[PushResult] = field(default_factory=list)

    @property
    def pushed(self) -> list[PushResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[PushResult]:
        return [r for r in self.results if not r.success]

    @property
    def success(self) -> bool:
        return not self.failed


class RemoteSource(ABC):
    """Source of truth for the quote collection."""

    @abstractmethod
    async def fetch_snapshot(self) -> list[Record]:
        """
        Fetch the current remote collection.

        Raises:
            NetworkError: On transport failure or a bad response
        """

    @abstractmethod
    async def push(self, records: Sequence[Record]) -> PushReport:
        """Send local-only records to the remote. Never raises for a single record failing."""

    async def aclose(self):
        """Release any held resources."""


def item_to_record(item: dict, default_category: str = DEFAULT_REMOTE_CATEGORY) -> Record:
    """
    Translate a remote item to a record.

    Raises:
        ValidationError: If the item has no usable id or text
    """
    if not isinstance(item, dict):
        raise ValidationError(f"Remote item is not an object: {item!r}")

    item_id = item.get("id")
    if item_id is None or isinstance(item_id, bool) or not isinstance(item_id, (str, int)):
        raise ValidationError(f"Remote item has no usable id: {item_id!r}")

    text = next(
        (item[name] for name in TEXT_FIELDS if isinstance(item.get(name), str) and item[name].strip()),
        None,
    )
    category = item.get("category")
    if not isinstance(category, str) or not category.strip():
        category = default_category

    text, category = validate_fields(text, category)

    updated_at = item.get("updatedAt", 0)
    if (
        isinstance(updated_at, bool)
        or not isinstance(updated_at, (int, float))
        or (isinstance(updated_at, float) and not math.isfinite(updated_at))
    ):
        updated_at = 0

    return Record(id=str(item_id), text=text, category=category, updated_at=int(updated_at))


def record_to_item(record: Record) -> dict:
    """Body sent when pushing a record."""
    return {
        "id": record.id,
        "title": record.text,
        "body": record.text,
        "text": record.text,
        "category": record.category,
        "updatedAt": record.updated_at,
    }


class HttpRemoteSource(RemoteSource):
    """Remote source backed by a JSON-over-HTTP endpoint."""

    def __init__(
        self,
        url: str = DEFAULT_REMOTE_URL,
        *,
        default_category: str = DEFAULT_REMOTE_CATEGORY,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self.default_category = default_category
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json; charset=UTF-8"},
        )

    async def fetch_snapshot(self) -> list[Record]:
        try:
            resp = await self._client.get(self.url)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise NetworkError(
                f"Remote returned {e.response.status_code} for {self.url}"
            ) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Failed to reach {self.url}: {e}") from e
        except ValueError as e:
            raise NetworkError(f"Remote response is not JSON: {e}") from e

        if not isinstance(data, list):
            raise NetworkError(
                f"Remote response must be a JSON list, got {type(data).__name__}"
            )

        records: list[Record] = []
        for item in data:
            try:
                records.append(item_to_record(item, self.default_category))
            except ValidationError as e:
                logger.warning(f"Skipping unusable remote item: {e}")
        logger.info(f"Fetched {len(records)} remote quotes from {self.url}")
        return records

    async def push(self, records: Sequence[Record]) -> PushReport:
        report = PushReport()
        for record in records:
            try:
                resp = await self._client.post(self.url, json=record_to_item(record))
                resp.raise_for_status()
                report.results.append(PushResult(record_id=record.id, success=True))
            except httpx.HTTPStatusError as e:
                report.results.append(PushResult(
                    record_id=record.id,
                    success=False,
                    error=f"HTTP {e.response.status_code}",
                ))
            except httpx.HTTPError as e:
                report.results.append(PushResult(
                    record_id=record.id, success=False, error=str(e) or type(e).__name__,
                ))

        if report.failed:
            logger.warning(f"Pushed {len(report.pushed)}/{len(report.results)} quotes to {self.url}")
        else:
            logger.info(f"Pushed {len(report.pushed)} quotes to {self.url}")
        return report

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()
