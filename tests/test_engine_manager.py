"""Tests for fairstart.engine_manager module."""

import pytest
from fairstart.config import Settings
from fairstart.engine_manager import (
    find_stockfish_binary,
    get_engines_dir,
    init_stockfish,
    resolve_engine_command,
    stockfish_asset_name,
)
from fairstart.errors import EngineUnavailable


@pytest.fixture
def engines_dir(tmp_path, monkeypatch):
    """Empty engines directory selected through ENGINES_DIR."""
    monkeypatch.setenv("ENGINES_DIR", str(tmp_path))
    return tmp_path


def install_fake_stockfish(engine_dir, name="stockfish"):
    stockfish_dir = engine_dir / "stockfish"
    stockfish_dir.mkdir(exist_ok=True)
    binary = stockfish_dir / name
    binary.write_text("#!/bin/sh\n")
    return binary


class TestStockfishAssetName:
    """Tests for stockfish_asset_name function."""

    def test_linux(self):
        assert stockfish_asset_name("Linux", "x86_64") == "stockfish-ubuntu-x86-64-avx2.tar"

    def test_windows(self):
        assert stockfish_asset_name("Windows", "AMD64") == "stockfish-windows-x86-64-avx2.zip"

    def test_apple_silicon(self):
        assert stockfish_asset_name("Darwin", "arm64") == "stockfish-macos-m1-apple-silicon.tar"

    def test_intel_mac(self):
        assert stockfish_asset_name("Darwin", "x86_64") == "stockfish-macos-x86-64-avx2.tar"


class TestFindStockfishBinary:
    """Tests for find_stockfish_binary function."""

    def test_missing_directory(self, tmp_path):
        assert find_stockfish_binary(tmp_path) is None

    def test_release_binary_name(self, tmp_path):
        binary = install_fake_stockfish(tmp_path, "stockfish-ubuntu-x86-64-avx2")
        assert find_stockfish_binary(tmp_path) == binary

    def test_lookup_order(self, tmp_path):
        """Platform-specific names are preferred over the plain name."""
        install_fake_stockfish(tmp_path, "stockfish")
        specific = install_fake_stockfish(tmp_path, "stockfish-linux-x86_64")
        assert find_stockfish_binary(tmp_path) == specific


class TestResolveEngineCommand:
    """Tests for resolve_engine_command function."""

    def test_engines_dir_override(self, engines_dir):
        assert get_engines_dir() == engines_dir

    def test_explicit_path(self, tmp_path):
        binary = tmp_path / "my-engine"
        binary.write_text("")
        assert resolve_engine_command(Settings(engine_path=str(binary))) == [str(binary)]

    def test_explicit_path_missing(self, tmp_path):
        with pytest.raises(EngineUnavailable, match="not found"):
            resolve_engine_command(Settings(engine_path=str(tmp_path / "nope")))

    def test_installed_binary(self, engines_dir):
        binary = install_fake_stockfish(engines_dir)
        assert resolve_engine_command(Settings()) == [str(binary)]

    def test_falls_back_to_path(self, engines_dir, monkeypatch):
        monkeypatch.setattr("fairstart.engine_manager.shutil.which", lambda name: "/usr/games/stockfish")
        assert resolve_engine_command(Settings()) == ["/usr/games/stockfish"]

    def test_nothing_found(self, engines_dir, monkeypatch):
        monkeypatch.setattr("fairstart.engine_manager.shutil.which", lambda name: None)
        with pytest.raises(EngineUnavailable, match="STOCKFISH_PATH"):
            resolve_engine_command(Settings())


class TestInitStockfish:
    """Tests for init_stockfish function."""

    def test_existing_install_is_reused(self, tmp_path, monkeypatch):
        binary = install_fake_stockfish(tmp_path)

        def no_download(*args):
            raise AssertionError("should not download")

        monkeypatch.setattr("fairstart.engine_manager.urllib.request.urlretrieve", no_download)
        assert init_stockfish(tmp_path) == binary

    def test_download_failure(self, tmp_path, monkeypatch):
        def offline(url, path):
            raise OSError("network unreachable")

        monkeypatch.setattr("fairstart.engine_manager.urllib.request.urlretrieve", offline)
        with pytest.raises(EngineUnavailable, match="download"):
            init_stockfish(tmp_path)
