"""
Roblox Player. Experiences are picked inside Roblox, so no games are listed.
"""
import os
from typing import Optional

from ..models import DetectionResult, LauncherType
from ..system import Hive
from .base import LauncherDetector

PACKAGE_FAMILY = "ROBLOXCORPORATION.ROBLOX_55nm5eh3cm0pr"
STORE_APP_ID = f"{PACKAGE_FAMILY}!App"
PLAYER_EXE = "RobloxPlayerBeta.exe"
PLAYER_KEY = r"SOFTWARE\ROBLOX Corporation\Environments\roblox-player"


class RobloxDetector(LauncherDetector):
    launcher_type = LauncherType.ROBLOX
    launcher_name = "Roblox"
    launcher_exe = PLAYER_EXE

    def launch_target(self) -> Optional[str]:
        local_app_data = self.system.folders.local_app_data
        if not local_app_data:
            return None
        if self.system.is_dir(os.path.join(local_app_data, "Packages", PACKAGE_FAMILY)):
            return f"shell:AppsFolder\\{STORE_APP_ID}"

        versions = os.path.join(local_app_data, "Roblox", "Versions")
        version_dirs = [d for d in self.system.subdirectories(versions)
                        if os.path.basename(d).lower().startswith("version-")]
        # newest first
        version_dirs.sort(key=self.system.modified_time, reverse=True)
        for version_dir in version_dirs:
            exe = os.path.join(version_dir, PLAYER_EXE)
            if self.system.is_file(exe):
                return exe

        version = self.read_value(PLAYER_KEY, "version", Hive.CURRENT_USER)
        if version:
            exe = os.path.join(versions, version, PLAYER_EXE)
            if self.system.is_file(exe):
                return exe
        return None

    def resolve_install_path(self) -> Optional[str]:
        target = self.launch_target()
        if target and not target.startswith("shell:"):
            return os.path.dirname(target)
        return target

    def detect_games(self) -> DetectionResult:
        install_path = self.resolve_install_path()
        if not install_path:
            return DetectionResult.not_installed("Roblox not found")
        return DetectionResult(is_installed=True, install_path=install_path)
