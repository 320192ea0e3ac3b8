"""
Capability interface shared by every launcher probe.
"""
import logging
import os
from abc import ABC, abstractmethod
from typing import Iterable, Optional, Sequence, Tuple

from ..models import DetectionResult, LauncherType
from ..system import Hive, RegistryView, SystemAccess

logger = logging.getLogger(__name__)

UNINSTALL_KEY = r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall"
UNINSTALL_KEY_32 = r"SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall"

# Where launcher clients keep their own executable, relative to the install path
LAUNCHER_EXE_SUBDIRS = (
    (),
    ("Portal",),
    ("Portal", "Binaries", "Win64"),
    ("Portal", "Binaries", "Win32"),
    ("Engine", "Binaries", "Win64"),
    ("Launcher", "Portal", "Binaries", "Win64"),
    ("Launcher", "Portal", "Binaries", "Win32"),
    ("Launcher", "Engine", "Binaries", "Win64"),
)


class LauncherDetector(ABC):
    """
    One probe per launcher: locates the client and enumerates its games.

    Subclasses implement :meth:`resolve_install_path` and :meth:`detect_games`.
    Both read the machine only through ``self.system``.
    """

    launcher_type: LauncherType
    launcher_name: str
    # Client executable, used for the launcher icon
    launcher_exe: Optional[str] = None

    def __init__(self, system: SystemAccess, settings=None):
        self.system = system
        self.settings = settings

    @abstractmethod
    def resolve_install_path(self) -> Optional[str]:
        """Install folder of the launcher (or a shell identifier), None if absent."""

    @abstractmethod
    def detect_games(self) -> DetectionResult:
        """Enumerates the games installed through this launcher."""

    def probe_installed(self) -> bool:
        return self.resolve_install_path() is not None

    def safe_detect(self) -> DetectionResult:
        """Runs :meth:`detect_games`, turning any failure into a negative result."""
        try:
            return self.detect_games()
        except Exception as e:
            logger.exception(f"[DETECTOR] {self.launcher_name} probe failed")
            return DetectionResult.not_installed(f"{self.launcher_name} detection failed: {e}")

    def not_found(self) -> DetectionResult:
        return DetectionResult.not_installed(f"{self.launcher_name} installation not found")

    # ---- shared lookups ----
    def read_value(self, key: str, name: str, hive: Hive = Hive.LOCAL_MACHINE,
                   view: RegistryView = RegistryView.DEFAULT) -> Optional[str]:
        return self.system.read_registry_value(key, name, hive, view)

    def registry_candidates(self, keys: Sequence[str], names: Sequence[str],
                            user: bool = True,
                            views: Sequence[RegistryView] = (RegistryView.X64, RegistryView.X86)
                            ) -> Iterable[Tuple[str, str]]:
        """
        Yields ``(value, source)`` for each registry value found, in lookup order:
        HKLM in each requested view, then HKCU.
        """
        for view in views:
            for key in keys:
                for name in names:
                    value = self.read_value(key, name, Hive.LOCAL_MACHINE, view)
                    if value:
                        yield value, f"HKLM({view.value})\\{key}\\{name}"
        if user:
            for key in keys:
                for name in names:
                    value = self.read_value(key, name, Hive.CURRENT_USER)
                    if value:
                        yield value, f"HKCU\\{key}\\{name}"

    def first_registry_dir(self, keys: Sequence[str], names: Sequence[str],
                           user: bool = True, file_value: bool = False,
                           views: Sequence[RegistryView] = (RegistryView.X64, RegistryView.X86)
                           ) -> Optional[str]:
        """
        First registry value naming an existing folder.

        With ``file_value`` the value names a file and its folder is returned.
        """
        for value, source in self.registry_candidates(keys, names, user, views):
            path = value.strip().strip('"')
            if file_value:
                path = os.path.dirname(path)
            if self.system.is_dir(path):
                logger.debug(f"[DETECTOR] {self.launcher_name} found via {source}")
                return path
        return None

    def first_existing_dir(self, candidates: Iterable[Optional[str]]) -> Optional[str]:
        for path in candidates:
            if self.system.is_dir(path):
                return path
        return None

    def program_files_dirs(self, *parts: str):
        folders = self.system.folders
        return [os.path.join(folders.program_files_x86, *parts),
                os.path.join(folders.program_files, *parts)]

    def uninstall_value(self, entry: str, name: str,
                        hives: Sequence[Tuple[Hive, RegistryView]] = (
                            (Hive.LOCAL_MACHINE, RegistryView.X64),
                            (Hive.LOCAL_MACHINE, RegistryView.X86),
                            (Hive.CURRENT_USER, RegistryView.DEFAULT))
                        ) -> Optional[str]:
        """Reads a value from an Add/Remove Programs entry."""
        for hive, view in hives:
            value = self.read_value(f"{UNINSTALL_KEY}\\{entry}", name, hive, view)
            if value:
                return value
        return None

    def launcher_executable(self, install_path: Optional[str] = None) -> Optional[str]:
        """Locates the client executable under the launcher install folder."""
        if not self.launcher_exe:
            return None
        install_path = install_path or self.resolve_install_path()
        if not self.system.is_dir(install_path):
            return None
        for parts in LAUNCHER_EXE_SUBDIRS:
            candidate = os.path.join(install_path, *parts, self.launcher_exe)
            if self.system.is_file(candidate):
                return candidate
        return None

    def launch_target(self) -> Optional[str]:
        """What to start to open the launcher itself."""
        return self.launcher_executable()

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.launcher_type.value}>"
