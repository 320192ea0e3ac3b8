"""
Registry and filesystem access used by every probe.

Probes never call ``winreg`` or ``os`` directly: they receive a
:class:`SystemAccess`, which production code binds to the real machine and
tests bind to a :class:`MemoryRegistry` and a temporary folder tree.
"""
import fnmatch
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from . import drive_detector

try:
    import winreg
except ImportError:  # not on Windows
    winreg = None

logger = logging.getLogger(__name__)

WOW64_NODE = 'WOW6432Node'


class Hive(str, Enum):
    LOCAL_MACHINE = 'HKLM'
    CURRENT_USER = 'HKCU'


class RegistryView(str, Enum):
    """Which side of the 32/64-bit registry split to read."""
    DEFAULT = 'default'
    X64 = '64'
    X86 = '32'


class WinRegistry:
    """Read-only access to the Windows registry."""

    def _root(self, hive: Hive):
        if hive == Hive.CURRENT_USER:
            return winreg.HKEY_CURRENT_USER
        return winreg.HKEY_LOCAL_MACHINE

    def _access(self, view: RegistryView) -> int:
        access = winreg.KEY_READ
        if view == RegistryView.X64:
            access |= winreg.KEY_WOW64_64KEY
        elif view == RegistryView.X86:
            access |= winreg.KEY_WOW64_32KEY
        return access

    def read_value(self, hive: Hive, key: str, name: str,
                   view: RegistryView = RegistryView.DEFAULT) -> Optional[str]:
        if winreg is None:
            return None
        try:
            with winreg.OpenKey(self._root(hive), key, 0, self._access(view)) as handle:
                value, _ = winreg.QueryValueEx(handle, name)
        except OSError:
            return None
        if value is None:
            return None
        return str(value)

    def subkeys(self, hive: Hive, key: str,
                view: RegistryView = RegistryView.DEFAULT) -> List[str]:
        if winreg is None:
            return []
        names = []
        try:
            with winreg.OpenKey(self._root(hive), key, 0, self._access(view)) as handle:
                for i in range(winreg.QueryInfoKey(handle)[0]):
                    try:
                        names.append(winreg.EnumKey(handle, i))
                    except OSError:
                        continue
        except OSError:
            return []
        return names


class MemoryRegistry:
    """
    In-memory registry with the same read interface as :class:`WinRegistry`.

    Reading HKLM through the 32-bit view redirects ``SOFTWARE\\X`` to
    ``SOFTWARE\\WOW6432Node\\X`` the way Windows does for 32-bit processes.
    """

    def __init__(self):
        # (hive, lowered path) -> (path, {lowered value name: value})
        self._keys: Dict[Tuple[Hive, str], Tuple[str, Dict[str, object]]] = {}

    @staticmethod
    def _normalize(key: str) -> str:
        return '\\'.join(part for part in key.replace('/', '\\').split('\\') if part)

    def _redirect(self, hive: Hive, key: str, view: RegistryView) -> str:
        key = self._normalize(key)
        if hive != Hive.LOCAL_MACHINE or view != RegistryView.X86:
            return key
        parts = key.split('\\')
        if len(parts) > 1 and parts[0].lower() == 'software' and parts[1].lower() != WOW64_NODE.lower():
            return '\\'.join([parts[0], WOW64_NODE] + parts[1:])
        return key

    def add_key(self, hive: Hive, key: str):
        key = self._normalize(key)
        self._keys.setdefault((hive, key.lower()), (key, {}))

    def set_value(self, hive: Hive, key: str, name: str, value):
        key = self._normalize(key)
        self.add_key(hive, key)
        self._keys[(hive, key.lower())][1][name.lower()] = value

    def read_value(self, hive: Hive, key: str, name: str,
                   view: RegistryView = RegistryView.DEFAULT) -> Optional[str]:
        entry = self._keys.get((hive, self._redirect(hive, key, view).lower()))
        if entry is None:
            return None
        value = entry[1].get(name.lower())
        return None if value is None else str(value)

    def subkeys(self, hive: Hive, key: str,
                view: RegistryView = RegistryView.DEFAULT) -> List[str]:
        prefix = self._redirect(hive, key, view).lower() + '\\'
        names = []
        seen = set()
        for (key_hive, lowered), (path, _) in self._keys.items():
            if key_hive != hive or not lowered.startswith(prefix):
                continue
            child = path[len(prefix):].split('\\')[0]
            if child.lower() not in seen:
                seen.add(child.lower())
                names.append(child)
        return names


@dataclass(frozen=True)
class KnownFolders:
    """Well-known Windows folders the probes look under."""
    program_files: str = r'C:\Program Files'
    program_files_x86: str = r'C:\Program Files (x86)'
    program_data: str = r'C:\ProgramData'
    local_app_data: str = ''
    app_data: str = ''
    windows_dir: str = r'C:\Windows'

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> 'KnownFolders':
        env = os.environ if environ is None else environ
        home = os.path.expanduser('~')
        program_files = env.get('ProgramW6432') or env.get('ProgramFiles') or cls.program_files
        return cls(
            program_files=program_files,
            program_files_x86=env.get('ProgramFiles(x86)') or program_files,
            program_data=env.get('ProgramData') or cls.program_data,
            local_app_data=env.get('LOCALAPPDATA') or os.path.join(home, 'AppData', 'Local'),
            app_data=env.get('APPDATA') or os.path.join(home, 'AppData', 'Roaming'),
            windows_dir=env.get('SystemRoot') or env.get('windir') or cls.windows_dir,
        )


class SystemAccess:
    """Everything a probe may read from the machine."""

    def __init__(self, registry=None, folders: Optional[KnownFolders] = None,
                 drives: Optional[List[str]] = None):
        self.registry = registry if registry is not None else WinRegistry()
        self.folders = folders if folders is not None else KnownFolders.from_environ()
        self._drives = drives

    # ---- registry ----
    def read_registry_value(self, key: str, name: str, hive: Hive = Hive.LOCAL_MACHINE,
                            view: RegistryView = RegistryView.DEFAULT) -> Optional[str]:
        value = self.registry.read_value(hive, key, name, view)
        if value is not None and not value.strip():
            return None
        return value

    def registry_subkeys(self, key: str, hive: Hive = Hive.LOCAL_MACHINE,
                         view: RegistryView = RegistryView.DEFAULT) -> List[str]:
        return self.registry.subkeys(hive, key, view)

    # ---- filesystem ----
    def is_dir(self, path: Optional[str]) -> bool:
        return bool(path) and os.path.isdir(path)

    def is_file(self, path: Optional[str]) -> bool:
        return bool(path) and os.path.isfile(path)

    def read_text(self, path: str, encoding: str = 'utf-8') -> Optional[str]:
        try:
            with open(path, encoding=encoding, errors='replace') as f:
                return f.read()
        except OSError as e:
            logger.debug(f"[System] Cannot read {path}: {e}")
            return None

    def read_bytes(self, path: str) -> Optional[bytes]:
        try:
            with open(path, 'rb') as f:
                return f.read()
        except OSError as e:
            logger.debug(f"[System] Cannot read {path}: {e}")
            return None

    def list_dir(self, path: str) -> List[str]:
        try:
            return sorted(os.listdir(path))
        except OSError:
            return []

    def subdirectories(self, path: str) -> List[str]:
        return [os.path.join(path, name) for name in self.list_dir(path)
                if os.path.isdir(os.path.join(path, name))]

    def find_files(self, path: str, pattern: str) -> List[str]:
        """Files directly under ``path`` whose name matches ``pattern`` (case-insensitive)."""
        pattern = pattern.lower()
        return [os.path.join(path, name) for name in self.list_dir(path)
                if fnmatch.fnmatch(name.lower(), pattern)
                and os.path.isfile(os.path.join(path, name))]

    def file_size(self, path: str) -> int:
        try:
            return os.path.getsize(path)
        except OSError:
            return 0

    def modified_time(self, path: str) -> float:
        try:
            return os.path.getmtime(path)
        except OSError:
            return 0.0

    def fixed_drives(self) -> List[str]:
        if self._drives is not None:
            return list(self._drives)
        return drive_detector.get_fixed_drives()


def default_system() -> SystemAccess:
    return SystemAccess()
