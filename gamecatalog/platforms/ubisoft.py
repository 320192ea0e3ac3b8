"""
Ubisoft Connect: one ``Launcher\\Installs\\<id>`` registry key per game.
"""
import logging
import os
from typing import Optional

from ..game_files import clean_game_title, find_main_executable, is_valid_game_install
from ..models import DetectedGame, DetectionResult, LauncherType
from ..system import Hive
from .base import LauncherDetector

logger = logging.getLogger(__name__)

UBISOFT_KEY = r"SOFTWARE\Ubisoft\Launcher"
INSTALLS_KEYS = (r"SOFTWARE\WOW6432Node\Ubisoft\Launcher\Installs", r"SOFTWARE\Ubisoft\Launcher\Installs")

KNOWN_GAMES = {
    "635": "Tom Clancy's Rainbow Six Siege",
    "720": "Far Cry 5",
    "1842": "Assassin's Creed Valhalla",
    "5855": "Assassin's Creed Mirage",
    "4923": "Far Cry 6",
    "3539": "Assassin's Creed Odyssey",
    "5266": "Watch Dogs: Legion",
    "410": "Far Cry 4",
    "568": "Far Cry Primal",
    "2738": "The Division 2",
    "2739": "The Crew 2",
    "4312": "Ghost Recon Breakpoint",
    "1843": "Immortals Fenyx Rising",
    "5436": "Riders Republic",
    "5265": "Hyper Scape",
    "3787": "Anno 1800",
}

EXTRA_PATTERNS = ("dlc", "season pass", "expansion", "soundtrack", "art book", "artbook", "bonus", "pack")
UBISOFT_UTILITY_EXES = ("upc", "uplay")


def is_generic_folder_name(name: str) -> bool:
    lower = name.lower()
    return lower in ("game", "games") or lower.isdigit()


class UbisoftDetector(LauncherDetector):
    launcher_type = LauncherType.UBISOFT
    launcher_name = "Ubisoft Connect"
    launcher_exe = "upc.exe"

    def resolve_install_path(self) -> Optional[str]:
        path = self.first_registry_dir([UBISOFT_KEY], ["InstallDir"])
        if path:
            return path
        return self.first_existing_dir(self.program_files_dirs("Ubisoft", "Ubisoft Game Launcher"))

    def detect_games(self) -> DetectionResult:
        ubisoft_path = self.resolve_install_path()
        if not ubisoft_path:
            return self.not_found()

        result = DetectionResult(is_installed=True, install_path=ubisoft_path)
        for hive in (Hive.LOCAL_MACHINE, Hive.CURRENT_USER):
            for installs_key in INSTALLS_KEYS:
                for game_id in self.system.registry_subkeys(installs_key, hive):
                    game = self.parse_install(installs_key, game_id, hive)
                    result.add_game(game, ("external_id", "name"))

        logger.info(f"[Ubisoft] {len(result.games)} games found")
        return result

    def game_name(self, install_dir: str, game_id: str) -> str:
        display_name = self.uninstall_value(f"Uplay Install {game_id}", "DisplayName")
        if display_name:
            return display_name
        folder_name = os.path.basename(install_dir)
        if folder_name and not is_generic_folder_name(folder_name):
            return folder_name
        return KNOWN_GAMES.get(game_id, folder_name)

    def parse_install(self, installs_key: str, game_id: str, hive: Hive) -> Optional[DetectedGame]:
        install_dir = self.read_value(f"{installs_key}\\{game_id}", "InstallDir", hive)
        if not install_dir:
            return None
        install_dir = os.path.normpath(install_dir.strip().strip('"'))
        if not is_valid_game_install(self.system, install_dir, UBISOFT_UTILITY_EXES):
            return None

        name = self.game_name(install_dir, game_id)
        if not name or any(p in name.lower() for p in EXTRA_PATTERNS):
            return None

        return DetectedGame(
            name=clean_game_title(name),
            external_id=game_id,
            install_path=install_dir,
            executable_path=find_main_executable(self.system, install_dir, name,
                                                 extra_patterns=UBISOFT_UTILITY_EXES),
            launch_command=f"uplay://launch/{game_id}/0",
        )
