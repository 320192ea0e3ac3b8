from __future__ import annotations

import os

from gamecatalog import drive_detector


def test_is_system_folder() -> None:
    assert drive_detector.is_system_folder("Windows")
    assert drive_detector.is_system_folder("$Recycle.Bin")
    assert drive_detector.is_system_folder("$SysReset")
    assert not drive_detector.is_system_folder("Games")


def _is_game(path: str) -> bool:
    return os.path.isfile(os.path.join(path, "marker"))


def _game(root, *parts):
    folder = root.joinpath(*parts)
    folder.mkdir(parents=True)
    (folder / "marker").write_text("")
    return str(folder)


def test_scan_finds_matches_within_depth(tmp_path) -> None:
    shallow = _game(tmp_path, "The Sims 4")
    nested = _game(tmp_path, "Games", "EA", "Battlefield 1")
    too_deep = _game(tmp_path, "a", "b", "c", "Deep Game")

    found = drive_detector.scan_drives_for_folders([str(tmp_path)], _is_game, max_depth=3)
    assert shallow in found
    assert nested in found
    assert too_deep not in found


def test_scan_skips_system_folders(tmp_path) -> None:
    hidden = _game(tmp_path, "Program Files", "Game")
    found = drive_detector.scan_drives_for_folders([str(tmp_path)], _is_game)
    assert hidden not in found


def test_scan_does_not_descend_into_matches(tmp_path) -> None:
    outer = _game(tmp_path, "Outer")
    inner = _game(tmp_path, "Outer", "Inner")
    found = drive_detector.scan_drives_for_folders([str(tmp_path)], _is_game)
    assert found == [outer]
    assert inner not in found


def test_scan_stops_at_timeout(tmp_path) -> None:
    _game(tmp_path, "Game")
    assert drive_detector.scan_drives_for_folders([str(tmp_path)], _is_game, timeout=-1) == []


def test_no_drives_off_windows(monkeypatch) -> None:
    monkeypatch.setattr(drive_detector.os, "name", "posix")
    assert drive_detector.get_all_drives() == []
