"""
GOG Galaxy: games register under ``GOG.com\\Games\\<id>``.
"""
import logging
import os
from typing import Optional

from ..game_files import clean_game_title, find_main_executable, is_valid_game_install
from ..models import DetectedGame, DetectionResult, LauncherType
from ..system import Hive
from .base import LauncherDetector

logger = logging.getLogger(__name__)

GALAXY_PATHS_KEY = r"SOFTWARE\GOG.com\GalaxyClient\paths"
GAMES_KEYS = (r"SOFTWARE\WOW6432Node\GOG.com\Games", r"SOFTWARE\GOG.com\Games")

GOG_UTILITY_EXES = ("gog", "galaxy")


class GOGDetector(LauncherDetector):
    launcher_type = LauncherType.GOG
    launcher_name = "GOG Galaxy"
    launcher_exe = "GalaxyClient.exe"

    def resolve_install_path(self) -> Optional[str]:
        path = self.first_registry_dir([GALAXY_PATHS_KEY], ["client"])
        if path:
            return path
        return self.first_existing_dir(self.program_files_dirs("GOG Galaxy"))

    def detect_games(self) -> DetectionResult:
        gog_path = self.resolve_install_path()
        if not gog_path:
            return self.not_found()

        result = DetectionResult(is_installed=True, install_path=gog_path)
        for hive in (Hive.LOCAL_MACHINE, Hive.CURRENT_USER):
            for games_key in GAMES_KEYS:
                for game_id in self.system.registry_subkeys(games_key, hive):
                    result.add_game(self.parse_game(f"{games_key}\\{game_id}", game_id, hive))

        logger.info(f"[GOG] {len(result.games)} games found")
        return result

    def parse_game(self, key: str, game_id: str, hive: Hive) -> Optional[DetectedGame]:
        name = self.read_value(key, "gameName", hive)
        install_dir = self.read_value(key, "path", hive)
        exe = self.read_value(key, "exe", hive)

        if not name or not install_dir:
            return None
        if not is_valid_game_install(self.system, install_dir, GOG_UTILITY_EXES):
            return None

        if exe and not os.path.isabs(exe):
            exe = os.path.join(install_dir, exe)
        if not self.system.is_file(exe):
            exe = find_main_executable(self.system, install_dir, name, extra_patterns=GOG_UTILITY_EXES)

        return DetectedGame(
            name=clean_game_title(name),
            external_id=game_id,
            install_path=install_dir,
            executable_path=exe,
            launch_command=f"goggalaxy://runGame/{game_id}",
        )
