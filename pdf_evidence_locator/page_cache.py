"""In-memory cache of built page indices for callers that reopen documents."""

from __future__ import annotations

from collections import OrderedDict
from typing import Callable

from pdf_evidence_locator.models import PageIndex

DEFAULT_MAX_ENTRIES = 256


class PageIndexCache:
    """Bounded least-recently-used store keyed by ``(document_id, page_index)``."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.max_entries = max_entries
        self._entries: OrderedDict[tuple[str, int], PageIndex] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, document_id: str, page_index: int) -> PageIndex | None:
        key = (document_id, page_index)
        index = self._entries.get(key)
        if index is not None:
            self._entries.move_to_end(key)
        return index

    def put(self, document_id: str, page_index: int, index: PageIndex) -> None:
        key = (document_id, page_index)
        self._entries[key] = index
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def get_or_build(
        self,
        document_id: str,
        page_index: int,
        factory: Callable[[], PageIndex],
    ) -> PageIndex:
        cached = self.get(document_id, page_index)
        if cached is not None:
            return cached
        index = factory()
        self.put(document_id, page_index, index)
        return index

    def evict_document(self, document_id: str) -> int:
        """Drop every page of *document_id*; returns how many were dropped."""
        keys = [key for key in self._entries if key[0] == document_id]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()
