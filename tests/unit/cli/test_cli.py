"""Tests for the command line entry point."""

import asyncio
import json

import pytest

from mosaic_stream.cli import main as cli_main
from mosaic_stream.receiver.record_types import RecordKind


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    monkeypatch.setattr(cli_main, "setup_logging", lambda config, args: None)


@pytest.fixture
def capture_file(tmp_path, pos_cov_geodetic_block, pvt_geodetic_block, gga_sentence):
    path = tmp_path / "capture.sbf"
    path.write_bytes(b"\x00junk" + pos_cov_geodetic_block() + pvt_geodetic_block() + gga_sentence)
    return path


class TestBuildParser:
    """Test argument parsing."""

    def test_decode_arguments(self, tmp_path):
        args = cli_main.build_parser().parse_args(
            ["decode", str(tmp_path / "c.sbf"), "--kind", "gpgga", "--kind", "NavSatFix", "--wall-clock"]
        )
        assert args.command == "decode"
        assert args.kinds == [RecordKind.GPGGA, RecordKind.NAVSATFIX]
        assert args.use_gnss_time is False
        assert args.frame_id is None

    def test_serial_arguments(self):
        args = cli_main.build_parser().parse_args(
            ["serial", "/dev/ttyUSB0", "--baud-rate", "460800", "--duration", "2.5", "--pose"]
        )
        assert args.serial_port == "/dev/ttyUSB0"
        assert args.baud_rate == 460800
        assert args.duration == 2.5
        assert args.publish_pose is True

    def test_unknown_kind_rejected(self, tmp_path):
        with pytest.raises(SystemExit):
            cli_main.build_parser().parse_args(["decode", str(tmp_path), "--kind", "GPRMC"])

    def test_non_positive_baud_rate_rejected(self):
        with pytest.raises(SystemExit):
            cli_main.build_parser().parse_args(["serial", "/dev/ttyUSB0", "--baud-rate", "0"])


class TestDecodeCommand:
    """Test offline decoding of capture files."""

    def test_prints_records(self, capture_file, capsys):
        assert cli_main.main(["decode", str(capture_file), "--frame-id", "rover"]) == 0

        captured = capsys.readouterr()
        lines = [json.loads(line) for line in captured.out.splitlines()]
        assert [line["kind"] for line in lines] == ["PosCovGeodetic", "PVTGeodetic", "NavSatFix", "GPGGA"]
        assert [line["sequence"] for line in lines] == [0, 0, 0, 0]
        assert all(line["frame_id"] == "rover" for line in lines)
        assert lines[3]["fields"]["num_satellites"] == 8

        summary = json.loads(captured.err.strip().splitlines()[-1])
        assert summary["statuses"]["decoded"] == 4
        assert summary["bytes_received"] == capture_file.stat().st_size

    def test_kind_filter(self, capture_file, capsys):
        assert cli_main.main(["decode", str(capture_file), "--kind", "GPGGA"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["kind"] == "GPGGA"

    def test_no_navsatfix(self, capture_file, capsys):
        assert cli_main.main(["decode", str(capture_file), "--no-navsatfix"]) == 0
        kinds = [json.loads(line)["kind"] for line in capsys.readouterr().out.splitlines()]
        assert "NavSatFix" not in kinds

    def test_record_to_csv(self, capture_file, tmp_path, capsys):
        out_dir = tmp_path / "out"
        assert cli_main.main(["decode", str(capture_file), "--record", "--output-dir", str(out_dir)]) == 0
        csv_files = list(out_dir.glob("*.csv"))
        assert len(csv_files) == 1
        assert len(csv_files[0].read_text().splitlines()) == 5

    def test_missing_capture(self, tmp_path, capsys):
        assert cli_main.main(["decode", str(tmp_path / "missing.sbf")]) == 1

    def test_config_file(self, capture_file, tmp_path, capsys):
        config = tmp_path / "mosaic.conf"
        config.write_text("frame_id = from_file\npublish_navsatfix = false\n")
        assert cli_main.main(["decode", str(capture_file), "--config", str(config)]) == 0
        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert {line["frame_id"] for line in lines} == {"from_file"}
        assert len(lines) == 3


class FakeSerialTransport:
    """Stands in for the serial port: replays chunks and records writes."""

    instances = []

    def __init__(self, port, baudrate, read_size=4096):
        self.port = port
        self.baudrate = baudrate
        self.chunks = []
        self.writes = []
        self.is_connected = False
        self.exhausted = False
        self.last_error = None
        FakeSerialTransport.instances.append(self)

    async def connect(self):
        self.is_connected = True
        return True

    async def disconnect(self):
        self.is_connected = False

    async def read_chunk(self, timeout=1.0):
        await asyncio.sleep(0.01)
        return self.chunks.pop(0) if self.chunks else None

    async def write(self, data):
        self.writes.append(data)
        return True


class TestSerialCommand:
    """Test live decoding with the serial port replaced."""

    def test_sends_commands_and_prints(self, monkeypatch, gga_sentence, capsys):
        FakeSerialTransport.instances.clear()
        monkeypatch.setattr(cli_main, "SerialTransport", FakeSerialTransport)
        original_init = FakeSerialTransport.__init__

        def init_with_data(self, *args, **kwargs):
            original_init(self, *args, **kwargs)
            self.chunks = [gga_sentence]

        monkeypatch.setattr(FakeSerialTransport, "__init__", init_with_data)

        code = cli_main.main(
            ["serial", "/dev/ttyUSB0", "--baud-rate", "460800", "--send", "grc", "--duration", "0.3"]
        )

        assert code == 0
        transport = FakeSerialTransport.instances[0]
        assert transport.baudrate == 460800
        assert transport.writes == [b"grc\r\n"]
        assert transport.is_connected is False
        lines = capsys.readouterr().out.splitlines()
        assert [json.loads(line)["kind"] for line in lines] == ["GPGGA"]
