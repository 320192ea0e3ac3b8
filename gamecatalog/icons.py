"""
Icon collaborator. Scans hand it install folders and executables; failures
never reach the scan.
"""
import logging
import os
import re
import shutil
from typing import Optional

from .models import LauncherType

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


class IconService:
    """Does nothing. Subclasses cache icons somewhere."""

    def icon_from_folder(self, install_path: str, launcher: LauncherType, external_id: str) -> Optional[str]:
        return None

    def icon_from_executable(self, executable_path: str, launcher: LauncherType, external_id: str) -> Optional[str]:
        return None

    def launcher_icon(self, executable_path: str, launcher: LauncherType) -> Optional[str]:
        return None


class FolderIconCache(IconService):
    """Copies developer-shipped ``.ico`` files into a cache folder."""

    def __init__(self, icons_dir: str):
        self.icons_dir = icons_dir

    def _cache_path(self, launcher: LauncherType, key: str) -> str:
        return os.path.join(self.icons_dir, f"{launcher.value}_{_UNSAFE.sub('_', key)}.ico")

    @staticmethod
    def _find_ico(folder: str) -> Optional[str]:
        """Largest .ico in the folder, else in its direct sub-folders."""
        for depth in (0, 1):
            candidates = []
            try:
                entries = sorted(os.listdir(folder))
            except OSError:
                return None
            if depth == 0:
                candidates = [os.path.join(folder, e) for e in entries if e.lower().endswith(".ico")]
            else:
                for sub in entries:
                    sub_path = os.path.join(folder, sub)
                    if os.path.isdir(sub_path):
                        try:
                            candidates.extend(os.path.join(sub_path, e) for e in sorted(os.listdir(sub_path))
                                              if e.lower().endswith(".ico"))
                        except OSError:
                            continue
            candidates = [c for c in candidates if os.path.isfile(c)]
            if candidates:
                return max(candidates, key=os.path.getsize)
        return None

    def _copy(self, source: str, target: str) -> str:
        os.makedirs(self.icons_dir, exist_ok=True)
        shutil.copyfile(source, target)
        return target

    def icon_from_folder(self, install_path, launcher, external_id):
        if not install_path or not os.path.isdir(install_path):
            return None
        target = self._cache_path(launcher, external_id)
        if os.path.exists(target):
            return target
        ico = self._find_ico(install_path)
        if not ico:
            return None
        logger.debug(f"[Icons] {launcher.value}:{external_id} <- {ico}")
        return self._copy(ico, target)

    def icon_from_executable(self, executable_path, launcher, external_id):
        # Extraction from PE resources needs the Windows shell, use a sibling .ico
        if not executable_path:
            return None
        return self.icon_from_folder(os.path.dirname(executable_path), launcher, external_id)

    def launcher_icon(self, executable_path, launcher):
        if not executable_path:
            return None
        target = self._cache_path(launcher, "launcher")
        if os.path.exists(target):
            return target
        ico = self._find_ico(os.path.dirname(executable_path))
        return self._copy(ico, target) if ico else None
