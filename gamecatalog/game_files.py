"""
Validity rules applied by every probe before it accepts a game folder.
"""
import os
import re
from typing import Iterable, List, Optional, Sequence

from .system import SystemAccess

# Substrings of executables that are never the game itself
UTILITY_EXE_PATTERNS = (
    "unins", "crash", "report", "update", "patch",
    "redist", "vcredist", "dxsetup", "dotnet",
    "installer", "setup", "launcher", "helper",
    "eaanticheat", "easyanticheat",
)

# Folders (relative to the install root) where engines keep their binaries
COMMON_EXE_SUBDIRS = ("bin", "Bin", "x64", "Win64", "Binaries", "Game", "_retail_")
NESTED_EXE_SUBDIRS = (
    ("bin", "x64"),
    ("Game", "Bin"),
    ("Game", "Bin", "x64"),
    ("Game", "Bin", "Win64"),
    ("Binaries", "Win64"),
    ("Binaries", "Win32"),
    ("_retail_", "x64"),
    ("x64", "release"),
)

SKIPPABLE_FOLDER_PATTERNS = (
    "directx", "redist", "vcredist", "_commonredist",
    "support", "tools", "sdk", "__installer",
)

_GLYPHS = re.compile("[™®]")
_SPACES = re.compile(r"\s{2,}")


def is_utility_exe(filename: str, extra_patterns: Iterable[str] = ()) -> bool:
    lower = os.path.basename(filename).lower()
    return any(p in lower for p in UTILITY_EXE_PATTERNS) or any(p in lower for p in extra_patterns)


def is_skippable_folder(name: str) -> bool:
    lower = name.lower()
    return any(p in lower for p in SKIPPABLE_FOLDER_PATTERNS)


def clean_game_title(title: str) -> str:
    """Strips trademark glyphs and doubled whitespace from a display name."""
    return _SPACES.sub(" ", _GLYPHS.sub("", title)).strip()


def normalize_name(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


def game_exe_dirs(install_path: str) -> List[str]:
    """Root first, then the common subfolders, then the nested ones."""
    dirs = [install_path]
    dirs.extend(os.path.join(install_path, sub) for sub in COMMON_EXE_SUBDIRS)
    dirs.extend(os.path.join(install_path, *nested) for nested in NESTED_EXE_SUBDIRS)
    return dirs


def list_game_exes(system: SystemAccess, folder: str,
                   extra_patterns: Iterable[str] = ()) -> List[str]:
    extra_patterns = tuple(extra_patterns)
    return [exe for exe in system.find_files(folder, "*.exe")
            if not is_utility_exe(exe, extra_patterns)]


def is_valid_game_install(system: SystemAccess, install_path: Optional[str],
                          extra_patterns: Iterable[str] = ()) -> bool:
    """True when the folder exists and holds at least one non-utility executable."""
    if not system.is_dir(install_path):
        return False
    extra_patterns = tuple(extra_patterns)
    return any(list_game_exes(system, folder, extra_patterns)
               for folder in game_exe_dirs(install_path) if system.is_dir(folder))


def _name_score(exe: str, hint: str) -> int:
    stem = normalize_name(os.path.splitext(os.path.basename(exe))[0])
    if not stem or not hint:
        return 0
    if stem == hint:
        return 3
    if stem in hint or hint in stem:
        return 2
    if stem[:4] == hint[:4]:
        return 1
    return 0


def pick_best_executable(system: SystemAccess, exes: Sequence[str],
                         name_hint: Optional[str] = None) -> Optional[str]:
    """Closest name to the hint wins, then the largest file."""
    if not exes:
        return None
    hint = normalize_name(name_hint or "")
    return max(exes, key=lambda exe: (_name_score(exe, hint), system.file_size(exe)))


def find_main_executable(system: SystemAccess, install_path: Optional[str],
                         name_hint: Optional[str] = None,
                         known_exes: Iterable[str] = (),
                         extra_patterns: Iterable[str] = ()) -> Optional[str]:
    """
    Picks the game binary inside an install folder.

    Known executable names are tried first (root, then the engine subfolders).
    Otherwise the first folder holding non-utility executables is used and
    the tie-break of :func:`pick_best_executable` applies.
    """
    if not system.is_dir(install_path):
        return None

    folders = [d for d in game_exe_dirs(install_path) if system.is_dir(d)]

    for exe_name in known_exes:
        for folder in folders:
            candidate = os.path.join(folder, exe_name)
            if system.is_file(candidate):
                return candidate

    if name_hint is None:
        name_hint = os.path.basename(os.path.normpath(install_path))

    extra_patterns = tuple(extra_patterns)
    for folder in folders:
        exes = list_game_exes(system, folder, extra_patterns)
        if exes:
            return pick_best_executable(system, exes, name_hint)

    return None
