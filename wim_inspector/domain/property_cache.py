# /wim_inspector/domain/property_cache.py
from __future__ import annotations

import logging
from collections.abc import Callable, Hashable
from typing import Any, Final

LOG = logging.getLogger("domain.property_cache")


class _Absent:
    """Marker for a field that was resolved and found missing."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Final = _Absent()


class PropertyCache:
    """
    Resolved field values for one container session, keyed by (image_index, field_name).

    get() returns None for "never queried" and ABSENT for "queried, nothing found".
    The cache is bound to one container identity; binding a different identity
    drops every entry.
    """

    def __init__(self, container_id: str | None = None) -> None:
        self._container_id = container_id
        self._entries: dict[Hashable, Any] = {}
        self.hits = 0
        self.misses = 0

    @property
    def container_id(self) -> str | None:
        return self._container_id

    def __len__(self) -> int:
        return len(self._entries)

    def bind(self, container_id: str) -> None:
        if container_id != self._container_id:
            if self._entries:
                LOG.debug(
                    "cache.container_switched",
                    extra={"extra": {"old": self._container_id, "new": container_id}},
                )
            self.invalidate_all()
            self._container_id = container_id

    def get(self, key: Hashable) -> Any:
        return self._entries.get(key)

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = ABSENT if value is None else value

    def invalidate_all(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        if count:
            LOG.debug("cache.cleared", extra={"extra": {"removed": count}})

    def get_or_resolve(self, key: Hashable, resolve: Callable[[], Any]) -> Any:
        """Cached value for key, calling resolve() once on a miss. Returns None for ABSENT."""
        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            return None if cached is ABSENT else cached
        self.misses += 1
        value = resolve()
        self.set(key, value)
        return value
