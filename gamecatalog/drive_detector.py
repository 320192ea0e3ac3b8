"""
Fixed-drive enumeration and the bounded drive-root walk used by the
heuristic probes (folders installed straight onto a drive, e.g. D:\\The Sims 4).
"""
import ctypes
import logging
import os
import string
import time
from typing import Callable, Iterable, List, Optional

logger = logging.getLogger(__name__)

DRIVE_FIXED = 3

# Folders at a drive root that never hold games
SYSTEM_FOLDERS = {
    "$recycle.bin", "$winreagent", "config.msi", "documents and settings",
    "perflogs", "program files", "program files (x86)", "programdata",
    "recovery", "system volume information", "users", "windows",
    "msdownld.tmp", "boot", "esd",
}


def get_all_drives() -> List[str]:
    """
    Lists the drive roots known to Windows.

    Returns:
        Drive roots (ex: ['C:\\', 'D:\\']), or an empty list off Windows
    """
    if os.name != 'nt':
        return []

    drives = []
    try:
        bitmask = ctypes.windll.kernel32.GetLogicalDrives()
        for letter in string.ascii_uppercase:
            if bitmask & 1:
                drives.append(f"{letter}:\\")
            bitmask >>= 1
    except (AttributeError, OSError) as e:
        logger.warning(f"[DRIVES] Drive enumeration failed: {e}")
        drives = ['C:\\']

    return [d for d in drives if os.path.exists(d)]


def get_drive_type(drive: str) -> int:
    try:
        return ctypes.windll.kernel32.GetDriveTypeW(ctypes.c_wchar_p(drive))
    except (AttributeError, OSError):
        return 0


def get_fixed_drives() -> List[str]:
    """Fixed local drives, system drive first."""
    fixed = [d for d in get_all_drives() if get_drive_type(d) == DRIVE_FIXED]
    system_drive = os.environ.get('SystemDrive', 'C:').rstrip('\\') + '\\'
    if system_drive in fixed:
        fixed.remove(system_drive)
        fixed.insert(0, system_drive)
    return fixed


def is_system_folder(name: str) -> bool:
    return name.lower() in SYSTEM_FOLDERS or name.startswith('$')


def _depth(root: str, top: str) -> int:
    rel = os.path.relpath(root, top)
    if rel == os.curdir:
        return 0
    return rel.count(os.sep) + 1


def scan_drives_for_folders(drives: Iterable[str], is_match: Callable[[str], bool],
                            max_depth: int = 3, timeout: Optional[float] = None) -> List[str]:
    """
    Walks each drive root looking for folders accepted by ``is_match``.

    Folders are checked down to ``max_depth`` levels below the root. A matching
    folder is collected and not descended into. System folders are skipped.
    The walk stops early, returning what it has found so far, once ``timeout``
    seconds have elapsed.

    Args:
        drives: Drive roots to walk
        is_match: Predicate receiving a full folder path
        max_depth: Deepest folder level checked (1 = direct children of the root)
        timeout: Wall-clock budget in seconds (None = unbounded)

    Returns:
        Matching folder paths in walk order
    """
    found = []
    deadline = time.monotonic() + timeout if timeout is not None else None

    for drive in drives:
        for root, dirs, _ in os.walk(drive):
            if deadline is not None and time.monotonic() > deadline:
                logger.warning(f"[DRIVES] Drive scan interrupted after {timeout}s, "
                               f"returning {len(found)} partial results")
                return found

            depth = _depth(root, drive)
            if depth >= max_depth:
                dirs[:] = []
                continue

            descend = []
            for name in sorted(dirs):
                if is_system_folder(name):
                    continue
                path = os.path.join(root, name)
                try:
                    matched = is_match(path)
                except OSError as e:
                    logger.debug(f"[DRIVES] Skipping {path}: {e}")
                    continue
                if matched:
                    found.append(path)
                else:
                    descend.append(name)

            dirs[:] = descend if depth + 1 < max_depth else []

    return found
