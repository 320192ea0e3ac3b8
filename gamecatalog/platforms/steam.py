"""
Steam: library folders from libraryfolders.vdf, games from appmanifest_*.acf.
"""
import logging
import os
from typing import List, Optional

import vdf

from ..game_files import clean_game_title, find_main_executable, is_valid_game_install
from ..models import DetectedGame, DetectionResult, LauncherType
from ..system import Hive
from .base import LauncherDetector

logger = logging.getLogger(__name__)

STEAM_KEY = r"SOFTWARE\Valve\Steam"
STEAM_USER_KEY = r"Software\Valve\Steam"

# Steamworks Common Redistributables
REDIST_APP_ID = "228980"

# Tools Steam installs alongside games
TOOL_NAME_PATTERNS = ("steamworks", "redistributable", "proton", "steam linux runtime", "steamvr")


def _get_ci(data, key: str, default=None):
    """Case-insensitive dict lookup, VDF keys are not consistently cased."""
    if not isinstance(data, dict):
        return default
    if key in data:
        return data[key]
    lowered = key.lower()
    for k, v in data.items():
        if k.lower() == lowered:
            return v
    return default


class SteamDetector(LauncherDetector):
    launcher_type = LauncherType.STEAM
    launcher_name = "Steam"
    launcher_exe = "steam.exe"

    def resolve_install_path(self) -> Optional[str]:
        path = self.first_registry_dir([STEAM_KEY], ["InstallPath"], user=False)
        if path:
            return path

        user_path = self.read_value(STEAM_USER_KEY, "SteamPath", Hive.CURRENT_USER)
        if user_path and self.system.is_dir(os.path.normpath(user_path)):
            return os.path.normpath(user_path)

        return self.first_existing_dir(self.program_files_dirs("Steam"))

    def detect_games(self) -> DetectionResult:
        steam_path = self.resolve_install_path()
        if not steam_path:
            return self.not_found()

        result = DetectionResult(is_installed=True, install_path=steam_path)

        for library in self.library_folders(steam_path):
            steamapps = os.path.join(library, "steamapps")
            for manifest in self.system.find_files(steamapps, "appmanifest_*.acf"):
                result.add_game(self.parse_manifest(steamapps, manifest))

        logger.info(f"[Steam] {len(result.games)} games found")
        return result

    def library_folders(self, steam_path: str) -> List[str]:
        """Steam's own folder followed by every library listed in libraryfolders.vdf."""
        libraries = [steam_path]
        libvdf = os.path.join(steam_path, "steamapps", "libraryfolders.vdf")
        text = self.system.read_text(libvdf)
        if text is None:
            return libraries

        try:
            data = vdf.loads(text)
        except (SyntaxError, ValueError, TypeError) as e:
            logger.debug(f"[Steam] Unreadable {libvdf}: {e}")
            return libraries

        folders = _get_ci(data, "libraryfolders", {})
        if not isinstance(folders, dict):
            return libraries
        for key, entry in folders.items():
            if not key.isdigit():
                continue
            # Modern format nests a "path" value, the legacy one maps index -> path
            path = _get_ci(entry, "path") if isinstance(entry, dict) else entry
            if not isinstance(path, str) or not path:
                continue
            path = os.path.normpath(path)
            if all(os.path.normcase(path) != os.path.normcase(lib) for lib in libraries):
                libraries.append(path)

        return libraries

    def parse_manifest(self, steamapps: str, manifest: str) -> Optional[DetectedGame]:
        text = self.system.read_text(manifest)
        if text is None:
            return None
        try:
            state = _get_ci(vdf.loads(text), "AppState")
            appid = _get_ci(state, "appid", "")
            name = _get_ci(state, "name", "")
            installdir = _get_ci(state, "installdir", "")
        except (SyntaxError, ValueError, TypeError, AttributeError) as e:
            logger.debug(f"[Steam] Skipping malformed manifest {manifest}: {e}")
            return None

        if not all(isinstance(v, str) and v.strip() for v in (appid, name, installdir)):
            logger.debug(f"[Steam] Skipping incomplete manifest {manifest}")
            return None
        appid = appid.strip()
        if appid == REDIST_APP_ID:
            return None
        if any(p in name.lower() for p in TOOL_NAME_PATTERNS):
            return None

        install_path = os.path.join(steamapps, "common", installdir)
        if not is_valid_game_install(self.system, install_path):
            return None

        return DetectedGame(
            name=clean_game_title(name),
            external_id=appid,
            install_path=install_path,
            executable_path=find_main_executable(self.system, install_path, name),
            launch_command=f"steam://rungameid/{appid}",
        )
