import hashlib
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping
from urllib.parse import urlencode, urlparse

import httpx
from pydantic import BaseModel, ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheEntry(BaseModel):
    """A cached upstream response and the instant it stops being trustworthy."""

    data: Any = None
    expiry: datetime

    @classmethod
    def create(cls, data: Any, now: datetime, ttl: timedelta) -> "CacheEntry":
        return cls(data=data, expiry=now + ttl)

    def is_fresh(self, now: datetime) -> bool:
        return now < self.expiry

    def encode(self) -> str:
        return self.model_dump_json()

    @classmethod
    def decode(cls, raw: str | bytes) -> "CacheEntry":
        """Parse a stored entry. Raises ``ValueError`` on malformed input."""
        try:
            return cls.model_validate_json(raw)
        except ValidationError as exc:
            raise ValueError(f"Malformed cache entry: {exc}") from exc


def canonical_query(params: Mapping[str, Any] | None) -> str:
    # Encoded exactly as httpx puts it on the wire (True -> "true", None -> "")
    if not params:
        return ""
    return urlencode(sorted(httpx.QueryParams(params).multi_items()))


def build_cache_key(
    endpoint: str, params: Mapping[str, Any] | None = None, prefix: str = "cache/"
) -> str:
    """Derive the storage key for a GET on ``endpoint`` with ``params``.

    The key keeps the endpoint path readable so entries can be browsed by
    prefix, and appends a digest of the endpoint plus its sorted query string.
    """
    endpoint = endpoint.strip()
    path = urlparse(endpoint).path.strip("/") or "root"
    digest = hashlib.sha256(
        f"{endpoint}?{canonical_query(params)}".encode("utf-8")
    ).hexdigest()
    return f"{prefix}{path}/{digest}.json"
