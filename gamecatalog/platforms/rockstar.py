"""
Rockstar Games Launcher.

Games are found through per-title registry keys, uninstall entries
published by Rockstar, and title hits in the launcher's settings_user.dat.
"""
import logging
import os
import re
from typing import List, Optional

from ..game_files import clean_game_title, find_main_executable, is_valid_game_install
from ..models import DetectedGame, DetectionResult, LauncherType
from ..system import Hive, RegistryView
from .base import UNINSTALL_KEY, UNINSTALL_KEY_32, LauncherDetector

logger = logging.getLogger(__name__)

LAUNCHER_KEY = r"SOFTWARE\Rockstar Games\Launcher"

KNOWN_GAMES = {
    "gta5": "Grand Theft Auto V",
    "gta5e": "Grand Theft Auto V Enhanced",
    "rdr2": "Red Dead Redemption 2",
    "lanoire": "L.A. Noire",
    "gta4": "Grand Theft Auto IV",
    "gta4e": "Grand Theft Auto IV: Episodes from Liberty City",
    "mp3": "Max Payne 3",
    "bully": "Bully: Scholarship Edition",
}

KNOWN_EXES = (
    "GTA5.exe", "PlayGTAV.exe",
    "RDR2.exe",
    "LANoire.exe",
    "GTAIV.exe", "LaunchGTAIV.exe",
    "MaxPayne3.exe",
    "Bully.exe",
)


def normalize_game_id(display_name: str) -> str:
    return re.sub(r"[ :\-']", "", display_name.lower())


class RockstarDetector(LauncherDetector):
    launcher_type = LauncherType.ROCKSTAR
    launcher_name = "Rockstar Games"
    launcher_exe = "Launcher.exe"

    def resolve_install_path(self) -> Optional[str]:
        path = self.first_registry_dir([LAUNCHER_KEY], ["InstallFolder"])
        if path:
            return path
        location = self.uninstall_value("Rockstar Games Launcher", "InstallLocation")
        if location and self.system.is_dir(location):
            return location
        return self.first_existing_dir(self.program_files_dirs("Rockstar Games", "Launcher"))

    def detect_games(self) -> DetectionResult:
        launcher_path = self.resolve_install_path()
        if not launcher_path:
            return self.not_found()

        result = DetectionResult(is_installed=True, install_path=launcher_path)
        # a title can surface through several sources under different ids
        for game in self.registry_games() + self.settings_games():
            result.add_game(game, ("external_id", "install_path"))

        logger.info(f"[Rockstar] {len(result.games)} games found")
        return result

    def title_install_path(self, title: str) -> Optional[str]:
        """Install folder from the per-title Rockstar key or its uninstall entry."""
        for view in (RegistryView.X64, RegistryView.X86):
            for value_name in ("InstallFolder", "InstallPath"):
                path = self.read_value(f"SOFTWARE\\Rockstar Games\\{title}", value_name,
                                       Hive.LOCAL_MACHINE, view)
                if path and self.system.is_dir(path):
                    return path
        location = self.uninstall_value(title, "InstallLocation")
        if location and self.system.is_dir(location):
            return location
        return None

    def registry_games(self) -> List[DetectedGame]:
        games = []
        for game_id, title in KNOWN_GAMES.items():
            path = self.title_install_path(title)
            if path:
                game = self.build_game(game_id, title, path)
                if game:
                    games.append(game)

        for uninstall_key in (UNINSTALL_KEY_32, UNINSTALL_KEY):
            for entry in self.system.registry_subkeys(uninstall_key):
                key = f"{uninstall_key}\\{entry}"
                publisher = self.read_value(key, "Publisher") or ""
                if "rockstar" not in publisher.lower():
                    continue
                display_name = self.read_value(key, "DisplayName")
                location = self.read_value(key, "InstallLocation")
                if not display_name or not location or "launcher" in display_name.lower():
                    continue
                if not self.system.is_dir(location):
                    continue
                game = self.build_game(normalize_game_id(display_name), display_name, location)
                if game:
                    games.append(game)
        return games

    def settings_games(self) -> List[DetectedGame]:
        settings_path = os.path.join(self.system.folders.program_data,
                                     "Rockstar Games", "Launcher", "settings_user.dat")
        content = self.system.read_bytes(settings_path)
        if content is None:
            return []
        text = content.decode("utf-8", errors="ignore").lower()

        games = []
        for game_id, title in KNOWN_GAMES.items():
            if game_id not in text and title.lower() not in text:
                continue
            path = self.title_install_path(title)
            if path:
                game = self.build_game(game_id, title, path)
                if game:
                    games.append(game)
        return games

    def build_game(self, game_id: str, name: str, install_path: str) -> Optional[DetectedGame]:
        if not is_valid_game_install(self.system, install_path):
            return None
        executable = find_main_executable(self.system, install_path, name, known_exes=KNOWN_EXES)
        return DetectedGame(
            name=clean_game_title(name),
            external_id=game_id,
            install_path=install_path,
            executable_path=executable,
            launch_command=executable or f"rockstar://launch/{game_id}",
        )
