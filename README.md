# trafstat

trafstat reads packet capture files and measures traffic. It decodes frames
from common link types (Ethernet, BSD loopback and null, PPP, PPPoE, Linux
cooked capture, raw IP), counts total packets and bytes, and sorts traffic
that crosses the boundary of a local network into "in" and "out" for
round-robin graphs covering the last 60 seconds, 60 minutes, 24 hours and
31 days. The library also provides a daily usage log and readers and
writers for a compact big-endian database format.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Command line

Process a capture file in pcap format and report the totals:

```
trafstat -r capture.pcap --verbose
```

Treat a network as local, so that traffic to and from it is counted as
"in" and "out" on the graphs:

```
trafstat -r capture.pcap -l 192.168.0.0/24 --verbose
```

The network may be given with a prefix length (`/24`) or with a netmask
(`/255.255.255.0`); IPv6 networks work the same way. A malformed network,
an unknown option, or a missing parameter ends the command with an error.

Options that change how a capture file is processed:

- `-l network/netmask` – the local network
- `--pppoe` – decode PPPoE frames on Ethernet instead of plain IP
- `--hexdump` – print each packet in hex (implies `--verbose`)
- `--verbose` – report progress and the final packet and byte totals
- `--syslog` – send messages to syslog instead of stderr

The remaining options (`-i`, `-f`, `-p`, `-b`, `--hosts-max`,
`--ports-max`, `--daylog`, `--import`, `--export` and others) are parsed and
checked, with `--hosts-keep` and `--ports-keep` reduced to half of their
maximum when they are not below it, but they do not change what the command
does.

Show every option, or just the version:

```
trafstat --help
trafstat --version
```

## Library use

```python
from trafstat.addr import Address
from trafstat.conv import qs_get, split

host = Address.parse("192.168.1.2")
net = Address.parse("192.168.0.0")
mask = Address.parse("255.255.0.0")
assert host.inside(net, mask)

assert split(".", "..one...two....") == ["one", "two"]
assert qs_get("sort=in&start=20", "sort") == "in"
```

Modules:

- `trafstat.addr` – `Address`, `Family` and `AddressError`.
- `trafstat.decode` – `get_link_header()`, `snaplen_for()` and
  `LinkHeader.decode()`, which turns a raw frame into a `PacketSummary`.
- `trafstat.acct` – `parse_localnet()`, `LocalNetwork` and `Accountant`,
  which keeps totals and feeds a `GraphDB` and a `DayLog`.
- `trafstat.graphs` – `GraphDB`, the round-robin graph store, with
  `import_from()` and `export_to()` for its binary section.
- `trafstat.daylog` – `DayLog`, which appends one line per local day with
  bytes and packets in and out.
- `trafstat.dbformat` – big-endian integer and address readers and writers,
  raising `FormatError` on short or malformed data.
- `trafstat.cache` – `StateCache`, a bounded cache of packet-filter states
  that reports byte and packet deltas between update cycles.
- `trafstat.capture` – `read_pcap()`, `hexdump()` and `process_capfile()`.
- `trafstat.log` – `configure()`, `verbose()`, `warning()` and `FatalError`.

## What it does not do

- There is no live capture from network interfaces; only capture files are
  read, and the command exits with an error without `-r`.
- There is no per-host, per-protocol or per-port table, and no web interface
  to view the graphs.
- The command does not write a database file: `--export` only prints a
  warning and `--import` is not read. `GraphDB.export_to()` and
  `GraphDB.import_from()` can be used from Python for the graph data.
- The command does not write a daily log; use `DayLog` from Python.
- Names are not resolved for addresses.