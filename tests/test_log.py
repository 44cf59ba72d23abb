import os
from unittest import mock

import pytest

from trafstat import log


@pytest.fixture(autouse=True)
def quiet():
    log.configure(verbose=False, use_syslog=False)
    yield
    log.configure(verbose=False, use_syslog=False)


def test_verbose_disabled_prints_nothing(capsys):
    log.verbose("starting up")
    assert capsys.readouterr().err == ""


def test_verbose_enabled_prints_message_and_pid(capsys):
    log.configure(verbose=True, use_syslog=False)
    log.verbose("starting up")
    err = capsys.readouterr().err
    assert err.endswith("starting up\n")
    assert f"{os.getpid():05d}" in err


def test_warning_always_printed(capsys):
    log.warning("import failed")
    err = capsys.readouterr().err
    assert "warning: import failed" in err
    assert err.startswith(f"{os.getpid():5d}")


def test_warning_one_line_per_call(capsys):
    log.warning("first")
    log.warning("second")
    lines = capsys.readouterr().err.splitlines()
    assert len(lines) == 2
    assert lines[0].endswith("first") and lines[1].endswith("second")


def test_fatal_error_carries_code_and_message():
    error = log.FatalError("no interfaces specified", 2)
    assert error.code == 2
    assert str(error) == "no interfaces specified"


def test_fatal_error_default_code():
    assert log.FatalError("export failed").code == 1


def test_warning_to_syslog(capsys):
    with mock.patch("syslog.openlog"), mock.patch("syslog.syslog") as fake:
        log.configure(verbose=False, use_syslog=True)
        log.warning("import failed")
    assert capsys.readouterr().err == ""
    args = fake.call_args[0]
    assert args[1] == "WARNING: import failed"