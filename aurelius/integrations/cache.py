"""
In-memory resource caches for adapters.

Each adapter owns one ResourceCache with a fixed set of named stores
("tweets", "orders", ...). Stores live as long as the adapter instance,
have no size bound and no TTL, and are emptied only by clear()/clear_all()
or by a webhook for the matching resource.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

logger = logging.getLogger(__name__)


class ResourceCache:
    """
    Named key/value stores.

    Example:
        cache = ResourceCache("twitter", ["tweets", "users"])
        cache.set("tweets", tweet.id, tweet)
        cache.get("tweets", "123")
        cache.clear("tweets")

    Unknown store names raise KeyError.
    """

    def __init__(self, owner: str, resources: Iterable[str]):
        self.owner = owner
        self._stores: dict[str, dict[str, Any]] = {name: {} for name in resources}
        self._hits = 0
        self._misses = 0

    @property
    def resources(self) -> list[str]:
        return list(self._stores)

    def _store(self, resource: str) -> dict[str, Any]:
        try:
            return self._stores[resource]
        except KeyError:
            raise KeyError(f"[{self.owner}] Unknown cache resource: {resource}") from None

    def get(self, resource: str, key: str) -> Any | None:
        value = self._store(resource).get(key)
        if value is None:
            self._misses += 1
        else:
            self._hits += 1
        return value

    def has(self, resource: str, key: str) -> bool:
        return key in self._store(resource)

    def set(self, resource: str, key: str, value: Any) -> None:
        self._store(resource)[key] = value

    def set_many(self, resource: str, items: Iterable[Any], key: str = "id") -> int:
        """Store items keyed by an attribute (or dict key). Returns the count stored."""
        store = self._store(resource)
        count = 0
        for item in items:
            item_key = item.get(key) if isinstance(item, dict) else getattr(item, key, None)
            if item_key is None:
                continue
            store[str(item_key)] = item
            count += 1
        return count

    def delete(self, resource: str, key: str) -> None:
        self._store(resource).pop(key, None)

    def values(self, resource: str) -> list[Any]:
        return list(self._store(resource).values())

    def size(self, resource: str) -> int:
        return len(self._store(resource))

    def clear(self, resource: str) -> None:
        store = self._store(resource)
        if store:
            logger.debug(f"[{self.owner}] Cleared {len(store)} cached {resource}")
        store.clear()

    def clear_all(self) -> None:
        for store in self._stores.values():
            store.clear()
        logger.info(f"[{self.owner}] Cache cleared")

    def stats(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "hits": self._hits,
            "misses": self._misses,
            "sizes": {name: len(store) for name, store in self._stores.items()},
        }
