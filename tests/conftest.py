from __future__ import annotations

from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from gamecatalog.system import KnownFolders, MemoryRegistry, SystemAccess  # noqa: E402


@pytest.fixture
def registry():
    return MemoryRegistry()


@pytest.fixture
def folders(tmp_path):
    """Windows known folders laid out under tmp_path."""
    layout = {
        "program_files": tmp_path / "Program Files",
        "program_files_x86": tmp_path / "Program Files (x86)",
        "program_data": tmp_path / "ProgramData",
        "local_app_data": tmp_path / "AppData" / "Local",
        "app_data": tmp_path / "AppData" / "Roaming",
        "windows_dir": tmp_path / "Windows",
    }
    for path in layout.values():
        path.mkdir(parents=True)
    return KnownFolders(**{k: str(v) for k, v in layout.items()})


@pytest.fixture
def system(registry, folders):
    return SystemAccess(registry, folders, drives=[])


@pytest.fixture
def make_exe():
    """Creates a fake executable (any file will do) and returns its path."""
    def _make(folder, name, size=16):
        folder = Path(folder)
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / name
        path.write_bytes(b"MZ" + b"\0" * max(size - 2, 0))
        return str(path)
    return _make
