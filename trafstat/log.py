"""Error, warning and verbose reporting to stderr or syslog."""

from __future__ import annotations

import os
import sys
import threading
from dataclasses import dataclass


class FatalError(Exception):
    """An unrecoverable error; the program should exit with ``code``."""

    def __init__(self, message: str, code: int = 1) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        return self.message


@dataclass
class _Settings:
    verbose: bool = False
    use_syslog: bool = False


_settings = _Settings()
_lock = threading.Lock()
_syslog_opened = False


def configure(verbose: bool, use_syslog: bool) -> None:
    """Choose whether verbose messages are shown and where output goes."""
    global _syslog_opened
    _settings.verbose = bool(verbose)
    _settings.use_syslog = bool(use_syslog)
    if _settings.use_syslog and not _syslog_opened:
        import syslog

        syslog.openlog("trafstat", syslog.LOG_NDELAY | syslog.LOG_PID,
                       syslog.LOG_DAEMON)
        _syslog_opened = True


def _to_syslog(prefix: str, message: str) -> None:
    import syslog

    syslog.syslog(syslog.LOG_DEBUG, f"{prefix}{message}"[:511])


def verbose(message: str) -> None:
    """Report a message only when verbose output is enabled."""
    if not _settings.verbose:
        return
    if _settings.use_syslog:
        _to_syslog("", message)
        return
    with _lock:
        sys.stderr.write(f"trafstat ({os.getpid():05d}): {message}\n")
        sys.stderr.flush()


def warning(message: str) -> None:
    """Report a non-fatal problem."""
    if _settings.use_syslog:
        _to_syslog("WARNING: ", message)
        return
    sys.stderr.write(f"{os.getpid():5d}: warning: {message}\n")
    sys.stderr.flush()