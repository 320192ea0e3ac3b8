"""
Minecraft Launcher. The launcher picks the edition itself, so no games are listed.
"""
import os
from typing import Optional

from ..models import DetectionResult, LauncherType
from ..system import Hive, RegistryView
from .base import LauncherDetector

PACKAGE_FAMILY = "Microsoft.4297127D64EC6_8wekyb3d8bbwe"
STORE_APP_ID = f"{PACKAGE_FAMILY}!Minecraft"
UNINSTALL_ENTRY = "{1C16BBA4-21A3-4E2F-B5C3-4E219B752843}_is1"
LAUNCHER_EXE = "MinecraftLauncher.exe"


class MinecraftDetector(LauncherDetector):
    launcher_type = LauncherType.MINECRAFT
    launcher_name = "Minecraft"
    launcher_exe = LAUNCHER_EXE

    def launch_target(self) -> Optional[str]:
        """Store shell identifier, or the standalone launcher executable."""
        local_app_data = self.system.folders.local_app_data
        if local_app_data and self.system.is_dir(os.path.join(local_app_data, "Packages", PACKAGE_FAMILY)):
            return f"shell:AppsFolder\\{STORE_APP_ID}"

        location = self.uninstall_value(UNINSTALL_ENTRY, "InstallLocation", hives=(
            (Hive.CURRENT_USER, RegistryView.DEFAULT),
            (Hive.LOCAL_MACHINE, RegistryView.X64),
            (Hive.LOCAL_MACHINE, RegistryView.X86),
        ))
        if location:
            exe = os.path.join(location, LAUNCHER_EXE)
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
            return DetectionResult.not_installed("Minecraft Launcher not found")
        return DetectionResult(is_installed=True, install_path=install_path)
