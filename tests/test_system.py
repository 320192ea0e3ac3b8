from __future__ import annotations

import os

from gamecatalog.system import Hive, KnownFolders, MemoryRegistry, RegistryView, SystemAccess


def test_memory_registry_is_case_insensitive() -> None:
    reg = MemoryRegistry()
    reg.set_value(Hive.LOCAL_MACHINE, r"SOFTWARE\Valve\Steam", "InstallPath", r"C:\Steam")
    assert reg.read_value(Hive.LOCAL_MACHINE, r"software\valve\STEAM", "installpath") == r"C:\Steam"
    assert reg.read_value(Hive.CURRENT_USER, r"SOFTWARE\Valve\Steam", "InstallPath") is None


def test_memory_registry_32bit_view_reads_wow6432node() -> None:
    reg = MemoryRegistry()
    reg.set_value(Hive.LOCAL_MACHINE, r"SOFTWARE\WOW6432Node\Ubisoft\Launcher", "InstallDir", "x86")
    assert reg.read_value(Hive.LOCAL_MACHINE, r"SOFTWARE\Ubisoft\Launcher", "InstallDir", RegistryView.X86) == "x86"
    assert reg.read_value(Hive.LOCAL_MACHINE, r"SOFTWARE\Ubisoft\Launcher", "InstallDir", RegistryView.X64) is None


def test_memory_registry_subkeys_include_intermediate_keys() -> None:
    reg = MemoryRegistry()
    reg.set_value(Hive.LOCAL_MACHINE, r"SOFTWARE\GOG.com\Games\1207658924", "gameName", "Witcher")
    reg.set_value(Hive.LOCAL_MACHINE, r"SOFTWARE\GOG.com\Games\1495134320\Sub", "x", "y")
    assert sorted(reg.subkeys(Hive.LOCAL_MACHINE, r"SOFTWARE\GOG.com\Games")) == ["1207658924", "1495134320"]
    assert reg.subkeys(Hive.LOCAL_MACHINE, r"SOFTWARE\Nothing") == []


def test_blank_registry_values_read_as_missing(registry, folders) -> None:
    registry.set_value(Hive.LOCAL_MACHINE, r"SOFTWARE\Test", "Empty", "   ")
    system = SystemAccess(registry, folders, drives=[])
    assert system.read_registry_value(r"SOFTWARE\Test", "Empty") is None


def test_find_files_matches_case_insensitively(system, tmp_path) -> None:
    (tmp_path / "APPMANIFEST_10.ACF").write_text("x")
    (tmp_path / "appmanifest_20.acf").write_text("x")
    (tmp_path / "appmanifest_dir.acf").mkdir()
    (tmp_path / "other.txt").write_text("x")
    found = system.find_files(str(tmp_path), "appmanifest_*.acf")
    assert [os.path.basename(p).lower() for p in found] == ["appmanifest_10.acf", "appmanifest_20.acf"]


def test_unreadable_paths_degrade_quietly(system, tmp_path) -> None:
    missing = str(tmp_path / "missing")
    assert system.read_text(missing) is None
    assert system.read_bytes(missing) is None
    assert system.list_dir(missing) == []
    assert system.file_size(missing) == 0


def test_fixed_drives_override(registry, folders) -> None:
    system = SystemAccess(registry, folders, drives=["D:\\"])
    assert system.fixed_drives() == ["D:\\"]


def test_known_folders_from_environ() -> None:
    env = {
        "ProgramW6432": r"D:\PF",
        "ProgramFiles(x86)": r"D:\PF86",
        "ProgramData": r"D:\PD",
        "LOCALAPPDATA": r"D:\Local",
        "APPDATA": r"D:\Roaming",
        "SystemRoot": r"D:\Win",
    }
    folders = KnownFolders.from_environ(env)
    assert folders.program_files == r"D:\PF"
    assert folders.program_files_x86 == r"D:\PF86"
    assert folders.program_data == r"D:\PD"
    assert folders.local_app_data == r"D:\Local"
    assert folders.windows_dir == r"D:\Win"
