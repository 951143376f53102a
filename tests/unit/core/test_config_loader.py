"""Unit tests for the key = value config loader."""

from pathlib import Path

from mosaic_stream.core.config_loader import ConfigLoader


class TestConfigLoader:
    """Test config file parsing."""

    def test_missing_file(self, tmp_path):
        assert ConfigLoader.load(tmp_path / "none.txt", {"a": 1}) == {"a": 1}

    def test_untyped_values(self, tmp_path):
        path = tmp_path / "config.txt"
        path.write_text("flag = yes\ncount = 3\nratio = 0.5\nname = rover\n\n# comment\nbroken line\n")
        config = ConfigLoader.load(path)
        assert config == {"flag": True, "count": 3, "ratio": 0.5, "name": "rover"}

    def test_typed_by_defaults(self, tmp_path):
        path = tmp_path / "config.txt"
        path.write_text("port = 1234\nmask = 0x1FFF\nenabled = off\nout = data\nbad = abc\n")
        defaults = {"port": "", "mask": 0, "enabled": True, "out": Path("x"), "bad": 7}
        config = ConfigLoader.load(path, defaults)
        assert config["port"] == "1234"
        assert config["mask"] == 0x1FFF
        assert config["enabled"] is False
        assert config["out"] == Path("data")
        assert config["bad"] == 7

    def test_strict_ignores_unknown_keys(self, tmp_path):
        path = tmp_path / "config.txt"
        path.write_text("known = 2\nextra = 3\n")
        config = ConfigLoader.load(path, {"known": 1}, strict=True)
        assert config == {"known": 2}

    def test_format_value(self):
        assert ConfigLoader.format_value(True) == "true"
        assert ConfigLoader.format_value(3) == "3"
