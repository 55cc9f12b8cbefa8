"""
CLI tests: argv in, exit code and stdout/stderr out. A real AudioManager is
used with the fake runner, so only PowerShell is faked.
"""
import json
from unittest.mock import patch

import pytest

from conftest import device, listing, ok
from audioswitch import cli
from audioswitch.errors import (
    CommandFailed,
    DeviceNotFound,
    ExternalApiError,
    ParseError,
    PermissionDenied,
    UnknownAudioError,
)

LIST = "device enumeration"


@pytest.fixture(autouse=True)
def as_admin():
    with patch("audioswitch.cli.is_admin", return_value=True) as m:
        yield m


@pytest.fixture
def catalog(runner):
    runner.on(LIST, listing(
        device("P1", "Speakers", default=True, comm=True),
        device("P2", "Headphones"),
        device("R1", "USB Mic", "Recording", default=True),
    ))
    return runner


def test_list_json(manager, catalog, capsys):
    rc = cli.main(["list", "--json"], manager=manager)

    assert rc == 0
    data = json.loads(capsys.readouterr().out)
    assert [d["id"] for d in data["devices"]] == ["P1", "P2", "R1"]
    assert data["devices"][2]["device_type"] == "Recording"


def test_list_json_filtered_by_type(manager, catalog, capsys):
    rc = cli.main(["list", "--type", "Recording", "--json"], manager=manager)

    assert rc == 0
    assert [d["id"] for d in json.loads(capsys.readouterr().out)["devices"]] == ["R1"]


def test_list_text_sorted_with_indices(manager, catalog, capsys):
    rc = cli.main(["list"], manager=manager)

    out = capsys.readouterr().out
    assert rc == 0
    assert "--- Playback ---" in out and "--- Recording ---" in out
    assert out.index("[0] Headphones") < out.index("[1] Speakers")
    assert "defaults=default,communications" in out


def test_set_default_success(manager, catalog, capsys):
    catalog.on("set default device", ok())

    rc = cli.main(["set-default", "--id", "P2"], manager=manager)

    assert rc == 0
    assert json.loads(capsys.readouterr().out)["set"]["id"] == "P2"


def test_set_default_unknown_id(manager, catalog, capsys):
    rc = cli.main(["set-default", "--id", "nope"], manager=manager)

    assert rc == 3
    assert "ERROR: Device not found: nope" in capsys.readouterr().err
    assert catalog.count("set default device") == 0


def test_non_admin_warning(manager, catalog, capsys, as_admin):
    as_admin.return_value = False
    catalog.on("set default device", ok())

    cli.main(["set-default", "--id", "P2"], manager=manager)

    assert "might require Administrator privileges" in capsys.readouterr().err


def test_change_output_from_non_default(manager, catalog, capsys):
    rc = cli.main(["change-output", "--from", "P2", "--to", "P1"], manager=manager)

    assert rc == 1
    assert "not currently the default" in capsys.readouterr().err


def test_quick_switch(manager, catalog, capsys):
    catalog.on("set default device", ok())

    rc = cli.main(["quick-switch", "head"], manager=manager)

    assert rc == 0
    assert catalog.count("set default device") == 1


def test_validate(manager, catalog, capsys):
    assert cli.main(["validate", "--id", "R1"], manager=manager) == 0
    assert json.loads(capsys.readouterr().out) == {"valid": True, "id": "R1"}


def test_permission_denied_exit_code(manager, runner, capsys):
    runner.on(LIST, PermissionDenied("Access is denied"))

    rc = cli.main(["list"], manager=manager)

    assert rc == 5
    assert "ERROR: Permission denied: Access is denied" in capsys.readouterr().err


def test_module_status_missing_prints_install_hint(manager, runner, capsys):
    runner.on("module availability check", '{"available":false}')

    rc = cli.main(["module-status"], manager=manager)

    captured = capsys.readouterr()
    assert rc == 1
    assert json.loads(captured.out) == {"available": False}
    assert "install-module" in captured.err


def test_install_module(manager, runner, capsys):
    runner.on("module installation", ok(version="3.1.0.2", scope="CurrentUser"))

    assert cli.main(["install-module"], manager=manager) == 0


def test_set_volume_argument_combinations(manager, runner, capsys):
    assert cli.main(["set-volume", "--level", "10", "--mute"], manager=manager) == 1
    assert cli.main(["set-volume"], manager=manager) == 1
    assert runner.calls == []


def test_set_volume_out_of_range_is_parse_error(manager, runner, capsys):
    rc = cli.main(["set-volume", "--level", "150"], manager=manager)

    assert rc == 2
    assert "Invalid volume level: 150" in capsys.readouterr().err


def test_unmute(manager, runner, capsys):
    runner.on("set mute", ok(muted=False))

    rc = cli.main(["set-volume", "--type", "Recording", "--unmute"], manager=manager)

    assert rc == 0
    assert json.loads(capsys.readouterr().out)["muteSet"] == {"type": "Recording", "muted": False}


def test_wait_finds_device(manager, catalog, capsys):
    rc = cli.main(["wait", "--name", "mic", "--timeout", "0"], manager=manager)

    assert rc == 0
    assert json.loads(capsys.readouterr().out)["found"]["id"] == "R1"


def test_wait_times_out(manager, catalog, capsys):
    rc = cli.main(["wait", "--id", "missing", "--timeout", "0"], manager=manager)

    assert rc == 3
    assert "timeout waiting for device" in capsys.readouterr().err


def test_unexpected_error_is_generic_failure(manager, runner, capsys):
    runner.on(LIST, RuntimeError("kaboom"))

    assert cli.main(["list"], manager=manager) == 1
    assert "unexpected failure: kaboom" in capsys.readouterr().err


@pytest.mark.parametrize("err, code", [
    (DeviceNotFound("x"), 3),
    (PermissionDenied("x"), 5),
    (CommandFailed("x"), 1),
    (ParseError("x"), 2),
    (ExternalApiError("x"), 1),
    (UnknownAudioError("x"), 1),
])
def test_exit_code_mapping(err, code):
    assert cli.exit_code_for(err) == code


def test_wait_with_invalid_regex_is_parse_error(manager, catalog, capsys):
    rc = cli.main(["wait", "--name", "(unclosed", "--regex", "--timeout", "0"], manager=manager)

    assert rc == 2
    assert "Invalid regex" in capsys.readouterr().err
