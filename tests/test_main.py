"""
Tests for the sifisd daemon entry point
"""
import asyncio
import signal

import pytest

from sifisd.client import SifisClient
from sifisd.config import Config
from sifisd.devices import ClampPolicy
from sifisd.contract import DeviceClass
from sifisd.main import SifisDaemon, main


async def wait_until_running(daemon, timeout=5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not daemon.server.is_running:
        if asyncio.get_running_loop().time() > deadline:
            raise TimeoutError("daemon did not start")
        await asyncio.sleep(0.01)


class TestDaemon:
    """Tests for SifisDaemon"""

    def test_default_devices(self, socket_path):
        daemon = SifisDaemon(Config(), socket_path)
        assert daemon.runtime.device_ids == ["door 1", "fridge 1", "lamp1", "lamp2", "sink 1"]
        assert daemon.server.socket_path == socket_path

    def test_configured_devices(self, socket_path):
        config = Config(devices={"lamp9": {"kind": "lamp", "name": "Porch"}})
        config.runtime.clamp_policy = {"lamp": "reject"}
        daemon = SifisDaemon(config, socket_path)
        assert daemon.runtime.device_ids == ["lamp9"]
        assert daemon.runtime.clamp_policy(DeviceClass.LAMP) is ClampPolicy.REJECT

    @pytest.mark.asyncio
    async def test_run_and_stop(self, socket_path):
        daemon = SifisDaemon(Config(), socket_path)
        task = asyncio.ensure_future(daemon.run())
        await wait_until_running(daemon)

        async with await SifisClient.connect(socket_path) as client:
            assert (await client.call("lamp1", "turn_on")).value is True

        await daemon.stop()
        await asyncio.wait_for(task, timeout=5)
        assert not socket_path.exists()
        assert daemon.runtime.stats()["succeeded"] == 1

    @pytest.mark.asyncio
    async def test_signal_stops_daemon(self, socket_path):
        daemon = SifisDaemon(Config(), socket_path)
        task = asyncio.ensure_future(daemon.run())
        await wait_until_running(daemon)

        daemon._handle_signal(signal.SIGTERM)
        stop_task = daemon._stop_task
        assert stop_task is not None
        # A second signal while stopping reuses the pending stop
        daemon._handle_signal(signal.SIGINT)
        assert daemon._stop_task is stop_task

        await asyncio.wait_for(task, timeout=5)
        assert stop_task.done()
        assert not socket_path.exists()


class TestMain:
    """Tests for the command line"""

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert "sifisd" in capsys.readouterr().out

    def test_bad_config_exits(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text('log_level = "LOUD"\n')
        with pytest.raises(SystemExit) as exc:
            main(["-c", str(path)])
        assert exc.value.code == 1

    @pytest.mark.parametrize("text", [
        "devices = 5\n",
        'runtime = "x"\n',
        '[devices."lamp1"]\nkind = "lamp"\nbrightness = 500\n',
    ])
    def test_invalid_tables_exit(self, tmp_path, caplog, text):
        path = tmp_path / "bad.toml"
        path.write_text(text)
        with pytest.raises(SystemExit) as exc:
            main(["-c", str(path)])
        assert exc.value.code == 1
        assert "Configuration error" in caplog.text

    def test_malformed_config_exits(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("[runtime\n")
        with pytest.raises(SystemExit) as exc:
            main(["-c", str(path)])
        assert exc.value.code == 1
