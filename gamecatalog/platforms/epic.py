"""
Epic Games Store: one JSON ``.item`` manifest per installed title.
"""
import json
import logging
import os
from typing import Optional

from ..game_files import clean_game_title, find_main_executable, is_utility_exe, is_valid_game_install
from ..models import DetectedGame, DetectionResult, LauncherType
from .base import LauncherDetector

logger = logging.getLogger(__name__)

EPIC_KEY = r"SOFTWARE\Epic Games\EpicGamesLauncher"


def is_dlc_or_addon(manifest: dict) -> bool:
    if manifest.get("bIsDLC") is True:
        return True
    main_namespace = manifest.get("MainGameCatalogNamespace")
    namespace = manifest.get("CatalogNamespace")
    return bool(main_namespace and namespace and main_namespace != namespace)


class EpicDetector(LauncherDetector):
    launcher_type = LauncherType.EPIC
    launcher_name = "Epic Games"
    launcher_exe = "EpicGamesLauncher.exe"

    def manifests_path(self) -> Optional[str]:
        app_data = self.first_registry_dir([EPIC_KEY], ["AppDataPath"])
        candidates = []
        if app_data:
            candidates.append(os.path.join(app_data, "Manifests"))
        candidates.append(os.path.join(self.system.folders.program_data,
                                       "Epic", "EpicGamesLauncher", "Data", "Manifests"))
        return self.first_existing_dir(candidates)

    def resolve_install_path(self) -> Optional[str]:
        # The launcher itself lives in <Program Files>\Epic Games\Launcher
        return self.first_existing_dir(self.program_files_dirs("Epic Games"))

    def probe_installed(self) -> bool:
        return self.manifests_path() is not None or self.resolve_install_path() is not None

    def detect_games(self) -> DetectionResult:
        manifests = self.manifests_path()
        if not manifests:
            return DetectionResult.not_installed("Epic Games manifests folder not found")

        result = DetectionResult(is_installed=True,
                                 install_path=self.resolve_install_path() or manifests)

        for item in self.system.find_files(manifests, "*.item"):
            result.add_game(self.parse_manifest(item))

        logger.info(f"[Epic] {len(result.games)} games found")
        return result

    def parse_manifest(self, item: str) -> Optional[DetectedGame]:
        text = self.system.read_text(item)
        if not text:
            return None
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.debug(f"[Epic] Skipping malformed manifest {item}: {e}")
            return None
        if not isinstance(data, dict):
            return None

        name = data.get("DisplayName")
        app_name = data.get("AppName")
        install_location = data.get("InstallLocation")
        launch_exe = data.get("LaunchExecutable")

        if not isinstance(name, str) or not isinstance(app_name, str) or not name or not app_name:
            return None
        # Unreal Engine builds are listed like games
        if app_name.upper().startswith("UE_"):
            return None
        if is_dlc_or_addon(data):
            return None
        if not isinstance(install_location, str) or not is_valid_game_install(self.system, install_location):
            return None

        executable = None
        if isinstance(launch_exe, str) and launch_exe:
            executable = os.path.join(install_location, launch_exe)
            # the manifest may name a binary deep inside the engine tree
            if not self.system.is_file(executable) or is_utility_exe(executable):
                executable = None
        if executable is None:
            executable = find_main_executable(self.system, install_location, name)

        return DetectedGame(
            name=clean_game_title(name),
            external_id=app_name,
            install_path=install_location,
            executable_path=executable,
            launch_command=f"com.epicgames.launcher://apps/{app_name}?action=launch&silent=true",
        )
