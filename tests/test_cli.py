import struct

import pytest

from trafstat import log
from trafstat.addr import Address
from trafstat.cli import (
    Options,
    UsageError,
    main,
    parse_cmdline,
    parse_number,
    usage,
)
from trafstat.log import FatalError


@pytest.fixture(autouse=True)
def _quiet_log():
    log.configure(False, False)
    yield
    log.configure(False, False)


def _write_pcap(path, frames):
    header = struct.pack("<IHHiIII", 0xA1B2C3D4, 2, 4, 0, 0, 65535, 1)
    records = b"".join(
        struct.pack("<IIII", 0, 0, len(frame), len(frame)) + frame
        for frame in frames
    )
    path.write_bytes(header + records)


def _udp_frame():
    ether = bytes.fromhex("020000000001") + bytes.fromhex("020000000002") + b"\x08\x00"
    ip = struct.pack(
        "!BBHHHBBH4s4s", 0x45, 0, 28, 0, 0, 64, 17, 0,
        bytes([10, 0, 0, 1]), bytes([10, 0, 0, 2]),
    )
    udp = struct.pack("!HHHH", 1234, 53, 8, 0)
    return ether + ip + udp


def test_parse_number_plain():
    assert parse_number("123", 0) == 123


def test_parse_number_rejects_garbage():
    with pytest.raises(FatalError, match='"12a" is not a valid number'):
        parse_number("12a", 0)


def test_parse_number_maximum():
    with pytest.raises(FatalError, match=r"out of range \(max 65535\)"):
        parse_number("70000", 65535)
    assert parse_number("65535", 65535) == 65535


def test_parse_number_overflow():
    with pytest.raises(FatalError, match="out of range"):
        parse_number("99999999999999999999999", 0)


def test_empty_command_line_is_usage_error():
    with pytest.raises(UsageError):
        parse_cmdline([])


def test_capfile_option():
    options = parse_cmdline(["-r", "x.pcap"])
    assert options.capfile == "x.pcap"
    assert options.port == Options().port


def test_repeatable_options_accumulate():
    options = parse_cmdline(["-i", "eth0", "-i", "eth1", "-f", "port 80"])
    assert options.interfaces == ["eth0", "eth1"]
    assert options.filters == ["port 80"]


def test_repeated_single_option_rejected():
    with pytest.raises(UsageError, match='already specified argument "-r"'):
        parse_cmdline(["-r", "a", "-r", "b"])


def test_missing_parameter():
    with pytest.raises(UsageError, match='requires parameter "capfile"'):
        parse_cmdline(["-r"])


def test_illegal_argument():
    with pytest.raises(UsageError, match='illegal argument: "--bogus"'):
        parse_cmdline(["--bogus"])


def test_needs_interface_or_capfile():
    with pytest.raises(FatalError, match="must specify either interface"):
        parse_cmdline(["--no-dns"])


def test_hosts_keep_reduced():
    options = parse_cmdline(["-r", "f", "--hosts-max", "10", "--hosts-keep", "20"])
    assert options.hosts_keep < options.hosts_max
    assert options.hosts_keep == 5


def test_ports_keep_reduced_below_max():
    options = parse_cmdline(["-r", "f", "--ports-max", "8", "--ports-keep", "8"])
    assert options.ports_keep < options.ports_max


def test_hexdump_implies_verbose_and_no_daemon():
    options = parse_cmdline(["-r", "f", "--hexdump"])
    assert options.verbose is True
    assert options.daemonize is False


def test_help_skips_validation():
    options = parse_cmdline(["--help"])
    assert options.help_mode == "help"


def test_local_network_option():
    options = parse_cmdline(["-r", "f", "-l", "192.168.0.0/16"])
    assert options.local_networks[0].net == Address.parse("192.168.0.0")
    assert options.local_networks[0].mask == Address.parse("255.255.0.0")


def test_bad_local_network():
    with pytest.raises(FatalError):
        parse_cmdline(["-r", "f", "-l", "bogus"])


def test_port_limits():
    assert parse_cmdline(["-r", "f", "-p", "65536"]).port == 0
    with pytest.raises(FatalError):
        parse_cmdline(["-r", "f", "-p", "65537"])


def test_usage_version_only():
    text = usage(version_only=True)
    assert text.startswith("trafstat")
    assert text.count("\n") == 1


def test_usage_lists_options():
    text = usage()
    assert "usage: trafstat [ -i interface ]\n" in text
    assert "\n" + " " * len("usage: trafstat ") + "[ --help ]\n" in text


def test_main_without_arguments(capsys):
    assert main([]) == 1
    assert "usage:" in capsys.readouterr().out


def test_main_help(capsys):
    assert main(["--help"]) == 0
    assert "[ -r capfile ]" in capsys.readouterr().out


def test_main_missing_capfile(tmp_path, capsys):
    assert main(["-r", str(tmp_path / "missing.pcap")]) == 1
    assert "error:" in capsys.readouterr().err


def test_main_reads_capfile(tmp_path, capsys):
    path = tmp_path / "one.pcap"
    _write_pcap(path, [_udp_frame()])
    assert main(["-r", str(path), "--verbose"]) == 0
    assert "Total packets: 1, bytes: 28" in capsys.readouterr().err


def test_main_live_capture_refused(capsys):
    assert main(["-i", "eth0"]) == 1
    assert "live capture" in capsys.readouterr().err