"""
Tests for the sifisctl command-line interface
"""
import pytest

from sifisctl.main import format_hazards, main, parse_value
from sifisd.hazards import Hazard


def run_cli(socket_path, *argv):
    return main(["-s", str(socket_path), *argv])


class TestHelpers:
    """Tests for argument and output helpers"""

    @pytest.mark.parametrize("text, expected", [
        ("50", 50),
        ("-3", -3),
        ("true", True),
        ("lamp", "lamp"),
        ("door 1", "door 1"),
    ])
    def test_parse_value(self, text, expected):
        assert parse_value(text) == expected

    def test_format_hazards(self):
        hazards = {Hazard.WATER_FLOODING, Hazard.FIRE_HAZARD}
        assert format_hazards(hazards) == "FireHazard, WaterFlooding"
        assert format_hazards(()) == "none"


class TestOffline:
    """Commands that do not need a runtime"""

    def test_ops(self, capsys, socket_path):
        assert run_cli(socket_path, "ops", "lamp") == 0
        out = capsys.readouterr().out
        assert "Lamp operations" in out
        assert "set_brightness" in out
        assert "FireHazard" in out
        assert "set_flow" not in out

    def test_ops_unknown_class(self, capsys, socket_path):
        assert run_cli(socket_path, "ops", "toaster") == 1
        assert "Error:" in capsys.readouterr().err

    def test_no_command(self, capsys):
        assert main([]) == 1

    def test_runtime_not_running(self, capsys, socket_path):
        assert run_cli(socket_path, "lamps") == 1
        assert "Failed to connect to sifisd" in capsys.readouterr().err


class TestWithRuntime:
    """Commands against a running runtime"""

    def test_call(self, capsys, threaded_server):
        assert run_cli(threaded_server.socket_path, "call", "lamp1", "turn_on") == 0
        captured = capsys.readouterr()
        assert captured.out.strip() == "true"
        assert "FireHazard" in captured.err

    def test_call_with_argument(self, capsys, threaded_server):
        assert run_cli(threaded_server.socket_path, "call", "sink 1", "set_flow", "250") == 0
        captured = capsys.readouterr()
        assert captured.out.strip() == "100"
        assert "WaterFlooding" in captured.err

    def test_call_unknown_device(self, capsys, threaded_server):
        assert run_cli(threaded_server.socket_path, "call", "toaster", "turn_on") == 1
        assert "Error: unknown_device" in capsys.readouterr().err

    def test_devices(self, capsys, threaded_server):
        assert run_cli(threaded_server.socket_path, "devices") == 0
        out = capsys.readouterr().out
        for device_id in ("lamp1", "lamp2", "sink 1", "door 1", "fridge 1"):
            assert device_id in out

    def test_lamps(self, capsys, threaded_server):
        run_cli(threaded_server.socket_path, "call", "lamp2", "set_brightness", "100")
        run_cli(threaded_server.socket_path, "call", "lamp2", "turn_on")
        capsys.readouterr()

        assert run_cli(threaded_server.socket_path, "lamps") == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[1].split() == ["lamp1", "Off", "0", "0", "W"]
        assert lines[2].split() == ["lamp2", "On", "100", "60", "W"]

    def test_status_tables(self, capsys, threaded_server):
        for command in ("sinks", "doors", "fridges"):
            assert run_cli(threaded_server.socket_path, command) == 0
        out = capsys.readouterr().out
        assert "sink 1" in out
        assert "unlocked" in out
        assert "fridge 1" in out
