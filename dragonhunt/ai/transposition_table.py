"""Transposition table for the outcome search, optionally LRU-bounded."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Hashable
from typing import Any


class TranspositionTable:
    """Position -> outcome-count table with hit/miss statistics.

    With ``max_entries=None`` the table only grows, which is what a full
    counting search wants. A bound trades recomputation for memory: evicted
    positions are simply counted again when they come back.
    """

    def __init__(
        self, max_entries: int | None = None, entry_size_estimate: int = 200
    ) -> None:
        """Initialize the transposition table.

        Args:
            max_entries: Maximum number of entries before eviction, or None
                for an unbounded table
            entry_size_estimate: Approximate bytes per entry for memory calc
                (key tuple plus its per-column row tuple and an int)
        """
        self._table: OrderedDict[Hashable, Any] = OrderedDict()
        self.max_entries = max_entries
        self.entry_size_estimate = entry_size_estimate
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    @classmethod
    def from_memory_limit(
        cls, memory_limit_bytes: int, entry_size_estimate: int = 200
    ) -> "TranspositionTable":
        """Create table with entries capped by memory limit.

        Args:
            memory_limit_bytes: Maximum memory to use in bytes
            entry_size_estimate: Approximate bytes per entry (default: 200)

        Returns:
            TranspositionTable configured for the memory limit
        """
        max_entries = max(1000, memory_limit_bytes // entry_size_estimate)
        return cls(
            max_entries=max_entries, entry_size_estimate=entry_size_estimate
        )

    def get(self, key: Hashable) -> Any | None:
        """Get value, moving to end if found and the table is bounded.

        Args:
            key: The key to look up

        Returns:
            The value if found, None otherwise
        """
        value = self._table.get(key)
        if value is None:
            self.misses += 1
            return None
        if self.max_entries is not None:
            self._table.move_to_end(key)
        self.hits += 1
        return value

    def put(self, key: Hashable, value: Any) -> None:
        """Add entry, evicting the oldest one if a bounded table is full.

        Args:
            key: The key to store
            value: The value to store
        """
        if self.max_entries is not None:
            if key in self._table:
                self._table.move_to_end(key)
            elif len(self._table) >= self.max_entries:
                self._table.popitem(last=False)
                self.evictions += 1
        self._table[key] = value

    def __contains__(self, key: Hashable) -> bool:
        """Check if key exists in table."""
        return key in self._table

    def __len__(self) -> int:
        """Return number of entries in table."""
        return len(self._table)

    def clear(self) -> None:
        """Clear all entries and reset stats."""
        self._table.clear()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def stats(self) -> dict:
        """Return usage statistics.

        Returns:
            Dictionary with entries, max_entries, hits, misses, evictions,
            hit_rate, and estimated_memory_mb.
        """
        total_lookups = self.hits + self.misses
        hit_rate = self.hits / total_lookups if total_lookups > 0 else 0.0
        estimated_memory_mb = (
            len(self._table) * self.entry_size_estimate / (1024**2)
        )
        return {
            "entries": len(self._table),
            "max_entries": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": hit_rate,
            "estimated_memory_mb": estimated_memory_mb,
        }
