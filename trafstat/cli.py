"""Command line parsing and the program body."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Callable, Sequence

from trafstat import log
from trafstat.acct import Accountant, LocalNetwork, parse_localnet
from trafstat.capture import CaptureError, process_capfile
from trafstat.graphs import GraphDB
from trafstat.log import FatalError

PROGRAM = "trafstat"
VERSION = "3.0"
PACKAGE_STRING = f"{PROGRAM} {VERSION}"

_ULONG_MAX = (1 << 64) - 1
_UINT_MASK = (1 << 32) - 1


class UsageError(Exception):
    """Raised when the command line itself is malformed."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


@dataclass
class Options:
    """Everything the command line can set."""

    interfaces: list[str] = field(default_factory=list)
    filters: list[str] = field(default_factory=list)
    capfile: str | None = None
    port: int = 667
    bindaddrs: list[str] = field(default_factory=list)
    local_networks: list[LocalNetwork] = field(default_factory=list)
    base: str | None = None
    local_only: bool = False
    snaplen: int = -1
    pppoe: bool = False
    syslog: bool = False
    verbose: bool = False
    daemonize: bool = True
    promisc: bool = True
    dns: bool = True
    macs: bool = True
    lastseen: bool = True
    chroot_dir: str | None = None
    user: str | None = None
    daylog: str | None = None
    import_file: str | None = None
    export_file: str | None = None
    pidfile: str | None = None
    hosts_max: int = 1000
    hosts_keep: int = 500
    ports_max: int = 60
    ports_keep: int = 30
    highest_port: int = 65535
    wait_secs: int = -1
    hexdump: bool = False
    help_mode: str | None = None  # "help" or "version"


def parse_number(text: str, maximum: int = 0) -> int:
    """Parse a decimal unsigned number; maximum 0 means no upper limit."""
    body = text.lstrip(" \t\n\r\f\v")
    negative = False
    if body[:1] in ("+", "-"):
        negative = body[0] == "-"
        body = body[1:]
    digits = len(body) - len(body.lstrip("0123456789"))
    if body[digits:] != "" or (digits == 0 and text.strip() != ""):
        raise FatalError(f'"{text}" is not a valid number')
    value = int(body[:digits]) if digits else 0
    if value > _ULONG_MAX or (negative and value != 0):
        raise FatalError(f'"{text}" is out of range')
    if maximum != 0 and value > maximum:
        raise FatalError(f'"{text}" is out of range (max {maximum})')
    return value


def _to_int32(value: int) -> int:
    value &= _UINT_MASK
    return value - (1 << 32) if value >= (1 << 31) else value


def _set(name: str, value) -> Callable[[Options, str | None], None]:
    def handler(options: Options, arg: str | None) -> None:
        setattr(options, name, value)
    return handler


def _store(name: str) -> Callable[[Options, str | None], None]:
    def handler(options: Options, arg: str | None) -> None:
        setattr(options, name, arg)
    return handler


def _append(name: str) -> Callable[[Options, str | None], None]:
    def handler(options: Options, arg: str | None) -> None:
        getattr(options, name).append(arg)
    return handler


def _unsigned(name: str, maximum: int) -> Callable[[Options, str | None], None]:
    def handler(options: Options, arg: str | None) -> None:
        setattr(options, name, parse_number(arg, maximum) & _UINT_MASK)
    return handler


def _signed(name: str) -> Callable[[Options, str | None], None]:
    def handler(options: Options, arg: str | None) -> None:
        setattr(options, name, _to_int32(parse_number(arg, 0)))
    return handler


def _port(options: Options, arg: str | None) -> None:
    options.port = parse_number(arg, 65536) & 0xFFFF


def _local(options: Options, arg: str | None) -> None:
    options.local_networks.append(parse_localnet(arg))


@dataclass(frozen=True)
class _Arg:
    name: str
    arg_name: str | None  # None means the option takes no parameter
    handler: Callable[[Options, str | None], None]
    repeatable: bool = False


_ARGS: tuple[_Arg, ...] = (
    _Arg("-i", "interface", _append("interfaces"), True),
    _Arg("-f", "filter", _append("filters"), True),
    _Arg("-r", "capfile", _store("capfile")),
    _Arg("-p", "port", _port),
    _Arg("-b", "bindaddr", _append("bindaddrs"), True),
    _Arg("-l", "network/netmask", _local),
    _Arg("--base", "path", _store("base")),
    _Arg("--local-only", None, _set("local_only", True)),
    _Arg("--snaplen", "bytes", _signed("snaplen")),
    _Arg("--pppoe", None, _set("pppoe", True)),
    _Arg("--syslog", None, _set("syslog", True)),
    _Arg("--verbose", None, _set("verbose", True)),
    _Arg("--no-daemon", None, _set("daemonize", False)),
    _Arg("--no-promisc", None, _set("promisc", False)),
    _Arg("--no-dns", None, _set("dns", False)),
    _Arg("--no-macs", None, _set("macs", False)),
    _Arg("--no-lastseen", None, _set("lastseen", False)),
    _Arg("--chroot", "dir", _store("chroot_dir")),
    _Arg("--user", "username", _store("user")),
    _Arg("--daylog", "filename", _store("daylog")),
    _Arg("--import", "filename", _store("import_file")),
    _Arg("--export", "filename", _store("export_file")),
    _Arg("--pidfile", "filename", _store("pidfile")),
    _Arg("--hosts-max", "count", _unsigned("hosts_max", 0)),
    _Arg("--hosts-keep", "count", _unsigned("hosts_keep", 0)),
    _Arg("--ports-max", "count", _unsigned("ports_max", 65536)),
    _Arg("--ports-keep", "count", _unsigned("ports_keep", 65536)),
    _Arg("--highest-port", "port", _unsigned("highest_port", 65535)),
    _Arg("--wait", "secs", _signed("wait_secs")),
    _Arg("--hexdump", None, _set("hexdump", True)),
    _Arg("--version", None, _set("help_mode", "version")),
    _Arg("--help", None, _set("help_mode", "help")),
)

_BY_NAME = {arg.name: arg for arg in _ARGS}


def usage(version_only: bool = False) -> str:
    """Return the version line and, unless version_only, the option summary."""
    lines = [f"{PACKAGE_STRING}\n"]
    if version_only:
        return "".join(lines)
    intro = f"usage: {PROGRAM} "
    lines.append("\n" + intro)
    indent = ""
    for arg in _ARGS:
        param = f" {arg.arg_name}" if arg.arg_name is not None else ""
        lines.append(f"{indent}[ {arg.name}{param} ]\n")
        indent = " " * len(intro)
    lines.append(
        f"\nPlease refer to the {PROGRAM}(8) manual page for further\n"
        "documentation and usage examples.\n"
    )
    return "".join(lines)


def _parse_args(argv: Sequence[str], options: Options) -> None:
    seen: set[str] = set()
    remaining = list(argv)
    while remaining:
        name = remaining.pop(0)
        arg = _BY_NAME.get(name)
        if arg is None:
            raise UsageError(f'illegal argument: "{name}"')
        if arg.arg_name is not None and not remaining:
            raise UsageError(
                f'argument "{arg.name}" requires parameter "{arg.arg_name}"'
            )
        if name in seen:
            raise UsageError(f'already specified argument "{name}"')
        if not arg.repeatable:
            seen.add(name)
        value = remaining.pop(0) if arg.arg_name is not None else None
        arg.handler(options, value)


def parse_cmdline(argv: Sequence[str]) -> Options:
    """Parse the arguments (without the program name) into Options.

    Raises UsageError for a malformed command line and FatalError for
    invalid values or a combination that cannot run.
    """
    if not argv:
        raise UsageError("")
    options = Options()
    _parse_args(argv, options)
    if options.help_mode is not None:
        return options

    log.configure(options.verbose, options.syslog)

    if not options.interfaces and options.capfile is None:
        raise FatalError("must specify either interface (-i) or capture file (-r)")

    if options.hosts_max != 0 and options.hosts_keep >= options.hosts_max:
        options.hosts_keep = options.hosts_max // 2
        log.warning(
            f"reducing --hosts-keep to {options.hosts_keep}, "
            f"to be under --hosts-max ({options.hosts_max})"
        )
    log.verbose(
        f"max {options.hosts_max} hosts, cutting down to "
        f"{options.hosts_keep} when exceeded"
    )

    if options.ports_max != 0 and options.ports_keep >= options.ports_max:
        options.ports_keep = options.ports_max // 2
        log.warning(
            f"reducing --ports-keep to {options.ports_keep}, "
            f"to be under --ports-max ({options.ports_max})"
        )
    log.verbose(
        f"max {options.ports_max} ports per host, cutting down to "
        f"{options.ports_keep} when exceeded"
    )

    if options.hexdump and not options.verbose:
        options.verbose = True
        log.configure(options.verbose, options.syslog)
        log.verbose("--hexdump implies --verbose")

    if options.hexdump and options.daemonize:
        options.daemonize = False
        log.verbose("--hexdump implies --no-daemon")

    if options.local_only and not options.local_networks:
        log.verbose("WARNING: --local-only without -l only matches the local host")

    return options


def _run_from_capfile(options: Options) -> None:
    graphs = GraphDB()
    accountant = Accountant(graphs, None, options.local_networks)
    process_capfile(options.capfile, accountant, options.pppoe, options.hexdump)
    if options.export_file is not None:
        log.warning(
            f'not exporting to "{options.export_file}": '
            "the host database is not kept by this program"
        )
    log.verbose(
        f"Total packets: {accountant.total_packets}, "
        f"bytes: {accountant.total_bytes}"
    )


def _error(message: str) -> None:
    sys.stderr.write(f"{os.getpid():5d}: error: {message}\n")
    sys.stderr.flush()


def main(argv: Sequence[str] | None = None) -> int:
    """Run the program; returns the process exit status."""
    if argv is None:
        argv = sys.argv[1:]
    try:
        options = parse_cmdline(argv)
    except UsageError as exc:
        if exc.message:
            sys.stderr.write(f"error: {exc.message}\n")
        sys.stdout.write(usage())
        return 1
    except FatalError as exc:
        _error(exc.message)
        return exc.code

    if options.help_mode is not None:
        sys.stdout.write(usage(version_only=options.help_mode == "version"))
        return 0

    try:
        if options.capfile is None:
            raise FatalError(
                "live capture is not supported; use -r to read a capture file"
            )
        _run_from_capfile(options)
    except CaptureError as exc:
        _error(str(exc))
        return 1
    except FatalError as exc:
        _error(exc.message)
        return exc.code
    return 0


if __name__ == "__main__":
    sys.exit(main())