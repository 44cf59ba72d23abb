"""Round-robin database of traffic graphs: seconds, minutes, hours and days."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator

from trafstat import log
from trafstat.dbformat import FormatError, read_u8, read_u64, write_u8, write_u64

_U64 = 1 << 64


class Direction(enum.IntEnum):
    """Direction of traffic relative to the local network."""

    IN = 1
    OUT = 2


@dataclass
class Graph:
    """A ring of bars; the bar at pos is the one currently filling."""

    unit: str
    num_bars: int
    bar_secs: int
    offset: int = 0
    pos: int = 0
    bars_in: list[int] = field(default_factory=list)
    bars_out: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.bars_in:
            self.bars_in = [0] * self.num_bars
        if not self.bars_out:
            self.bars_out = [0] * self.num_bars

    @property
    def span(self) -> int:
        """Seconds covered by the whole graph."""
        return self.num_bars * self.bar_secs

    def zero(self) -> None:
        self.bars_in = [0] * self.num_bars
        self.bars_out = [0] * self.num_bars

    def advance(self, pos: int) -> None:
        """Move forward to pos, clearing every bar passed on the way."""
        while self.pos != pos:
            self.pos = (self.pos + 1) % self.num_bars
            self.bars_in[self.pos] = 0
            self.bars_out[self.pos] = 0

    def rotate_to(self, pos: int) -> None:
        """Shift all bars so the current bar ends up at pos."""
        if pos == self.pos:
            return
        shift = (pos - self.pos) % self.num_bars
        self.bars_in = self.bars_in[-shift:] + self.bars_in[:-shift]
        self.bars_out = self.bars_out[-shift:] + self.bars_out[:-shift]
        self.pos = pos

    def bars(self) -> Iterator[tuple[int, int, int]]:
        """Yield (label, in, out) from the oldest bar to the current one."""
        for step in range(1, self.num_bars + 1):
            j = (self.pos + step) % self.num_bars
            yield self.offset + j, self.bars_in[j], self.bars_out[j]


class _SystemClock:
    def real(self) -> int:
        return int(time.time())

    def mono(self) -> int:
        return int(time.monotonic())

    def localtime(self, when: int) -> time.struct_time:
        return time.localtime(when)


def _positions(tm: time.struct_time) -> tuple[int, int, int, int]:
    second = min(tm.tm_sec, 59)  # leap seconds are folded into :59
    return second, tm.tm_min, tm.tm_hour, tm.tm_mday - 1


class GraphDB:
    """The four graphs, kept in step with wall-clock time.

    The clock provides real() and mono() in whole seconds and
    localtime(seconds) returning a time.struct_time; None uses the system.
    """

    def __init__(self, clock=None) -> None:
        self._clock = clock if clock is not None else _SystemClock()
        self.seconds = Graph("seconds", 60, 1)
        self.minutes = Graph("minutes", 60, 60)
        self.hours = Graph("hours", 24, 3600)
        self.days = Graph("days", 31, 86400, offset=1)
        self.start_mono = 0
        self.start_real = 0
        self.last_real = 0
        self.reset()

    @property
    def graphs(self) -> tuple[Graph, Graph, Graph, Graph]:
        return (self.seconds, self.minutes, self.hours, self.days)

    def reset(self) -> None:
        """Clear every graph and restart the measuring period."""
        for graph in self.graphs:
            graph.zero()
        self.start_mono = self._clock.mono()
        self.start_real = self._clock.real()
        self.last_real = 0

    def account(self, amount: int, direction: Direction) -> None:
        """Add amount bytes to the current bar of every graph."""
        direction = Direction(direction)
        for graph in self.graphs:
            bars = graph.bars_in if direction is Direction.IN else graph.bars_out
            bars[graph.pos] = (bars[graph.pos] + amount) % _U64

    def _set_positions(self, tm: time.struct_time, move) -> None:
        for graph, pos in zip(self.graphs, _positions(tm)):
            move(graph, pos)

    def rotate(self) -> None:
        """Bring the graphs up to the current time."""
        now = self._clock.real()
        delta = now - self.last_real

        if self.last_real == 0:
            log.verbose("first rotate")
            self.last_real = now
            for graph, pos in zip(self.graphs, _positions(self._clock.localtime(now))):
                graph.pos = pos
            return

        if now == self.last_real:
            return

        if now < self.last_real:
            # Treat a backwards step as a display adjustment: keep the data,
            # move it so the current bar lines up with the new time.
            log.verbose(
                f"graph_db: realtime went backwards! "
                f"(from {self.last_real} to {now}, offset is {delta})"
            )
            self._set_positions(self._clock.localtime(now), Graph.rotate_to)
            self.last_real = now
            return

        self.last_real = now
        for graph in self.graphs:
            if delta >= graph.span:
                graph.zero()
        self._set_positions(self._clock.localtime(now), Graph.advance)

    def import_from(self, stream: BinaryIO) -> None:
        """Load graph data written by export_to (without the section tag)."""
        last = read_u64(stream)
        loaded = []
        for graph in self.graphs:
            num_bars = read_u8(stream)
            pos = read_u8(stream)
            log.verbose(f"importing graph with {num_bars} bars")
            if pos >= num_bars:
                raise FormatError(
                    f"pos is {pos}, should be < num_bars which is {num_bars}"
                )
            if num_bars != graph.num_bars:
                raise FormatError(
                    f"num_bars is {num_bars}, expecting {graph.num_bars}"
                )
            bars_in, bars_out = [], []
            for _ in range(num_bars):
                bars_in.append(read_u64(stream))
                bars_out.append(read_u64(stream))
            loaded.append((pos, bars_in, bars_out))
        self.last_real = last
        for graph, (pos, bars_in, bars_out) in zip(self.graphs, loaded):
            graph.pos = pos
            graph.bars_in = bars_in
            graph.bars_out = bars_out

    def export_to(self, stream: BinaryIO) -> None:
        """Write graph data; the caller writes the section tag first."""
        write_u64(stream, self.last_real % _U64)
        for graph in self.graphs:
            write_u8(stream, graph.num_bars)
            write_u8(stream, graph.pos)
            for value_in, value_out in zip(graph.bars_in, graph.bars_out):
                write_u64(stream, value_in)
                write_u64(stream, value_out)