"""Daily usage log: one line of in/out bytes and packets per local day."""

from __future__ import annotations

import os
import time

from trafstat import log
from trafstat.graphs import Direction

_U64 = 1 << 64
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"


class _SystemClock:
    def real(self) -> int:
        return int(time.time())


def _format_date(when: int) -> str:
    return time.strftime(_DATE_FORMAT, time.localtime(when))


def next_midnight(when: int) -> int:
    """Return the first second of the local day after the one holding when."""
    tm = time.localtime(when)
    after = int(
        time.mktime(
            (tm.tm_year, tm.tm_mon, tm.tm_mday + 1, 0, 0, 0, 0, 0, -1)
        )
    )
    if after <= when:
        raise ValueError(f"next midnight {after} is not after {when}")
    return after


class DayLog:
    """Accumulates traffic for the current day and appends it to a file.

    The clock provides real() in whole seconds; None uses the system clock.
    Problems writing the file are reported as warnings, never raised.
    """

    def __init__(self, filename, clock=None) -> None:
        self.filename = os.fspath(filename)
        self._clock = clock if clock is not None else _SystemClock()
        self.today = self._clock.real()
        self.tomorrow = next_midnight(self.today)
        log.verbose(f"today is {self.today}, tomorrow is {self.tomorrow}")
        self._zero()
        self._write(
            f"# logging started at {_format_date(self.today)} ({self.today})\n"
        )

    def _zero(self) -> None:
        self.bytes_in = 0
        self.bytes_out = 0
        self.packets_in = 0
        self.packets_out = 0

    def _write(self, text: str) -> None:
        flags = os.O_WRONLY | os.O_APPEND | os.O_CREAT | getattr(os, "O_NOFOLLOW", 0)
        try:
            fd = os.open(self.filename, flags, 0o600)
        except OSError as exc:
            log.warning(
                f"daylog_write: couldn't open '{self.filename}' for append: "
                f"{exc.strerror}"
            )
            return
        data = text.encode("ascii")
        try:
            written = os.write(fd, data)
        except OSError as exc:
            log.warning(
                f"daylog_write: couldn't write to '{self.filename}': {exc.strerror}"
            )
        else:
            if written != len(data):
                log.warning(
                    f"daylog_write: truncated write to '{self.filename}': "
                    f"wrote {written} of {len(data)} bytes"
                )
        finally:
            os.close(fd)

    def _emit(self) -> None:
        self._write(
            f"{_format_date(self.today)}|{self.today}|{self.bytes_in}|"
            f"{self.bytes_out}|{self.packets_in}|{self.packets_out}\n"
        )

    def account(self, amount: int, direction: Direction) -> None:
        """Count one packet of amount bytes, starting a new day when due."""
        direction = Direction(direction)
        now = self._clock.real()
        if now >= self.tomorrow:
            self._emit()
            self.today = now
            self.tomorrow = next_midnight(self.today)
            self._zero()
            log.verbose(f"updated daylog, tomorrow = {self.tomorrow}")

        if direction is Direction.IN:
            self.bytes_in = (self.bytes_in + amount) % _U64
            self.packets_in += 1
        else:
            self.bytes_out = (self.bytes_out + amount) % _U64
            self.packets_out += 1

    def close(self) -> None:
        """Write out what has accumulated so far and mark the log stopped."""
        self.today = self._clock.real()
        self._emit()
        self._write(
            f"# logging stopped at {_format_date(self.today)} ({self.today})\n"
        )

    def __enter__(self) -> DayLog:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()