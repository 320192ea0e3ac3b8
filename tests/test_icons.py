from __future__ import annotations

import os
from pathlib import Path

from gamecatalog.icons import FolderIconCache
from gamecatalog.models import LauncherType


def test_copies_largest_icon_from_install_folder(tmp_path) -> None:
    game = tmp_path / "Game"
    game.mkdir()
    (game / "small.ico").write_bytes(b"1")
    (game / "large.ico").write_bytes(b"1234")
    cache = FolderIconCache(str(tmp_path / "icons"))

    icon = cache.icon_from_folder(str(game), LauncherType.GOG, "1207664643")

    assert icon == os.path.join(str(tmp_path / "icons"), "gog_1207664643.ico")
    assert Path(icon).read_bytes() == b"1234"


def test_looks_one_level_down_and_reuses_cache(tmp_path) -> None:
    game = tmp_path / "Game"
    (game / "res").mkdir(parents=True)
    (game / "res" / "app.ico").write_bytes(b"ico")
    cache = FolderIconCache(str(tmp_path / "icons"))

    first = cache.icon_from_folder(str(game), LauncherType.EPIC, "Fortnite:Live")
    (game / "res" / "app.ico").unlink()
    second = cache.icon_from_folder(str(game), LauncherType.EPIC, "Fortnite:Live")

    assert first == second
    assert os.path.basename(first) == "epic_Fortnite_Live.ico"


def test_no_icon(tmp_path) -> None:
    cache = FolderIconCache(str(tmp_path / "icons"))
    (tmp_path / "Game").mkdir()
    assert cache.icon_from_folder(str(tmp_path / "Game"), LauncherType.STEAM, "1") is None
    assert cache.icon_from_folder(str(tmp_path / "missing"), LauncherType.STEAM, "1") is None
    assert cache.icon_from_executable(None, LauncherType.STEAM, "1") is None


def test_launcher_icon_next_to_executable(tmp_path) -> None:
    launcher = tmp_path / "Steam"
    launcher.mkdir()
    (launcher / "steam.exe").write_bytes(b"MZ")
    (launcher / "steam.ico").write_bytes(b"ico")
    cache = FolderIconCache(str(tmp_path / "icons"))

    icon = cache.launcher_icon(str(launcher / "steam.exe"), LauncherType.STEAM)
    assert os.path.basename(icon) == "steam_launcher.ico"
