"""
Stockfish discovery and installation.
"""

import os
import platform
import shutil
import stat
import tarfile
import urllib.error
import urllib.request
import zipfile
from pathlib import Path

from loguru import logger

from fairstart.config import Settings
from fairstart.errors import EngineUnavailable

STOCKFISH_RELEASE_URL = "https://github.com/official-stockfish/Stockfish/releases/download/sf_17"

# Binary names found in Stockfish release archives, in lookup order
STOCKFISH_BINARY_NAMES = [
    "stockfish-windows-x86-64-avx2.exe",
    "stockfish-windows-x86-64.exe",
    "stockfish.exe",
    "stockfish-macos-m1-apple-silicon",
    "stockfish-macos-x86-64-avx2",
    "stockfish-linux-x86_64",
    "stockfish-ubuntu-x86-64-avx2",
    "stockfish",
]


def get_engines_dir() -> Path:
    """Get the path to the engines directory."""
    # Allow override via environment variable
    if os.environ.get("ENGINES_DIR"):
        return Path(os.environ["ENGINES_DIR"])
    # Default to engines/ directory next to the fairstart package
    return Path(__file__).parent.parent / "engines"


def find_stockfish_binary(engine_dir: Path) -> Path | None:
    """Find Stockfish binary, checking multiple possible names."""
    stockfish_dir = engine_dir / "stockfish"
    if not stockfish_dir.exists():
        return None

    for name in STOCKFISH_BINARY_NAMES:
        binary = stockfish_dir / name
        if binary.exists():
            return binary

    return None


def stockfish_asset_name(system: str, machine: str) -> str:
    """Release asset for the given platform.system() / platform.machine() values."""
    system = system.lower()
    machine = machine.lower()
    if system == "windows":
        return "stockfish-windows-x86-64-avx2.zip"
    if system == "darwin":
        if machine in ("arm64", "aarch64"):
            return "stockfish-macos-m1-apple-silicon.tar"
        return "stockfish-macos-x86-64-avx2.tar"
    return "stockfish-ubuntu-x86-64-avx2.tar"


def _make_executable(path: Path) -> None:
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def _extract_stockfish(archive_path: Path, stockfish_dir: Path) -> None:
    """Pull the engine binary out of a release archive into stockfish_dir."""
    if archive_path.suffix == ".zip":
        with zipfile.ZipFile(archive_path, "r") as zf:
            for name in zf.namelist():
                if name.endswith(".exe") and "stockfish" in name.lower():
                    extracted = Path(zf.extract(name, stockfish_dir))
                    if extracted.parent != stockfish_dir:
                        extracted.rename(stockfish_dir / extracted.name)
    else:
        with tarfile.open(archive_path, "r") as tf:
            for member in tf.getmembers():
                if "stockfish" in member.name.lower() and member.isfile():
                    tf.extract(member, stockfish_dir)
                    extracted = stockfish_dir / member.name
                    final_path = stockfish_dir / extracted.name
                    if extracted.parent != stockfish_dir:
                        extracted.rename(final_path)
                    _make_executable(final_path)


def init_stockfish(engine_dir: Path | None = None) -> Path:
    """
    Download and unpack Stockfish from GitHub releases.

    Returns:
        Path to the installed binary.

    Raises:
        EngineUnavailable: download or extraction failed.
    """
    engine_dir = engine_dir or get_engines_dir()
    existing = find_stockfish_binary(engine_dir)
    if existing:
        logger.info(f"Stockfish already installed: {existing}")
        return existing

    stockfish_dir = engine_dir / "stockfish"
    stockfish_dir.mkdir(parents=True, exist_ok=True)

    asset_name = stockfish_asset_name(platform.system(), platform.machine())
    download_url = f"{STOCKFISH_RELEASE_URL}/{asset_name}"
    archive_path = stockfish_dir / asset_name

    logger.info(f"Downloading Stockfish from {download_url}...")
    try:
        urllib.request.urlretrieve(download_url, archive_path)
    except (urllib.error.URLError, OSError) as e:
        raise EngineUnavailable(f"Failed to download Stockfish: {e}") from e

    try:
        _extract_stockfish(archive_path, stockfish_dir)
    except (tarfile.TarError, zipfile.BadZipFile, OSError) as e:
        raise EngineUnavailable(f"Failed to extract Stockfish: {e}") from e
    finally:
        archive_path.unlink(missing_ok=True)

    binary = find_stockfish_binary(engine_dir)
    if binary is None:
        raise EngineUnavailable("Stockfish binary not found after extraction")
    logger.info(f"Stockfish installed: {binary}")
    return binary


def resolve_engine_command(settings: Settings) -> list[str]:
    """
    Work out how to launch the analysis engine.

    Order: explicit engine_path (STOCKFISH_PATH), engines directory, then
    "stockfish" on PATH.
    """
    if settings.engine_path:
        path = Path(settings.engine_path)
        if not path.exists():
            raise EngineUnavailable(f"Engine binary not found: {path}")
        return [str(path)]

    binary = find_stockfish_binary(get_engines_dir())
    if binary is not None:
        return [str(binary)]

    on_path = shutil.which("stockfish")
    if on_path:
        return [on_path]

    raise EngineUnavailable(
        "No Stockfish binary found. Set STOCKFISH_PATH or run: python -m fairstart --init-stockfish"
    )
