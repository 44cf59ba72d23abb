"""Cache of packet-filter states, tracking byte and packet deltas per cycle."""

from __future__ import annotations

from dataclasses import dataclass

_U64 = 1 << 64


@dataclass(frozen=True)
class PfState:
    """A packet-filter state as reported by the firewall."""

    id: int
    creatorid: int
    bytes: tuple[int, int]
    packets: tuple[int, int]

    @property
    def key(self) -> tuple[int, int]:
        return (self.id, self.creatorid)


@dataclass
class CacheEntry:
    """Cached counters of one state and how much they moved last update."""

    id: int
    creatorid: int
    bytes: tuple[int, int]
    packets: tuple[int, int]
    bytes_delta: tuple[int, int] = (0, 0)
    packets_delta: tuple[int, int] = (0, 0)

    def update(self, state: PfState) -> None:
        """Take the new counters from state, recording the differences."""
        self.bytes_delta = tuple(
            (new - old) % _U64 for new, old in zip(state.bytes, self.bytes)
        )
        self.packets_delta = tuple(
            (new - old) % _U64 for new, old in zip(state.packets, self.packets)
        )
        self.bytes = tuple(state.bytes)
        self.packets = tuple(state.packets)


class StateCache:
    """A bounded cache of states; states not seen in a cycle are dropped.

    Call cache_state() once per state in an update cycle, then end_update().
    """

    def __init__(self, max_entries: int) -> None:
        if max_entries < 0:
            raise ValueError(f"cache size must not be negative: {max_entries}")
        self.max_entries = max_entries
        self._entries: dict[tuple[int, int], CacheEntry] = {}
        self._active: dict[tuple[int, int], None] = {}
        self._expiring: dict[tuple[int, int], None] = {}

    @property
    def free(self) -> int:
        """Number of unused slots."""
        return self.max_entries - len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def _add(self, state: PfState) -> None:
        if self.free == 0:
            return
        self._entries[state.key] = CacheEntry(
            id=state.id,
            creatorid=state.creatorid,
            bytes=tuple(state.bytes),
            packets=tuple(state.packets),
        )
        self._active[state.key] = None

    def cache_state(self, state: PfState) -> CacheEntry | None:
        """Record state; return its entry with deltas if it was already cached.

        Returns None for a newly seen state, when the cache is disabled, and
        when the byte counters went backwards.
        """
        if self.max_entries == 0:
            return None
        old = self._entries.get(state.key)
        if old is None:
            self._add(state)
            return None
        if any(new < prev for new, prev in zip(state.bytes, old.bytes)):
            return None
        old.update(state)
        self._expiring.pop(state.key, None)
        self._active[state.key] = None
        return old

    def end_update(self) -> None:
        """Drop the states that were not updated in this cycle."""
        for key in self._expiring:
            del self._entries[key]
        self._expiring = self._active
        self._active = {}