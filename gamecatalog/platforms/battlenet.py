"""
Battle.net: product codes come from the agent's product.db (a binary
protobuf file, searched as text) and from a table of known codes. Each code
is then located through the Blizzard and uninstall registry keys.
"""
import logging
import os
from typing import List, Optional

from ..game_files import clean_game_title, find_main_executable, is_valid_game_install
from ..models import DetectedGame, DetectionResult, LauncherType
from .base import UNINSTALL_KEY_32, LauncherDetector

logger = logging.getLogger(__name__)

BATTLENET_KEY = r"SOFTWARE\Blizzard Entertainment\Battle.net"

KNOWN_GAMES = {
    "wow": "World of Warcraft",
    "wow_classic": "World of Warcraft Classic",
    "d3": "Diablo III",
    "fen": "Diablo IV",
    "pro": "Overwatch 2",
    "hs": "Hearthstone",
    "hero": "Heroes of the Storm",
    "s2": "StarCraft II",
    "s1": "StarCraft Remastered",
    "w3": "Warcraft III: Reforged",
    "viper": "Call of Duty",
    "odin": "Call of Duty: Modern Warfare",
    "lazr": "Call of Duty: MW2",
    "fore": "Call of Duty: Black Ops 6",
    "zeus": "Call of Duty: Warzone",
    "anbs": "Diablo II: Resurrected",
    "rtro": "Blizzard Arcade Collection",
    "wlby": "Crash Bandicoot 4",
}

KNOWN_EXES = {
    "wow": ("Wow.exe", "WowClassic.exe"),
    "wow_classic": ("WowClassic.exe", "Wow.exe"),
    "d3": ("Diablo III.exe", "Diablo III64.exe"),
    "fen": ("Diablo IV.exe",),
    "pro": ("Overwatch.exe",),
    "hs": ("Hearthstone.exe",),
    "hero": ("HeroesOfTheStorm.exe", "HeroesOfTheStorm_x64.exe"),
    "s2": ("SC2.exe", "SC2_x64.exe", "StarCraft II.exe"),
    "s1": ("StarCraft.exe",),
    "w3": ("Warcraft III.exe", "war3.exe"),
}

BLIZZARD_UTILITY_EXES = ("agent", "browser", "cef")


class BattleNetDetector(LauncherDetector):
    launcher_type = LauncherType.BATTLENET
    launcher_name = "Battle.net"
    launcher_exe = "Battle.net.exe"

    def resolve_install_path(self) -> Optional[str]:
        path = self.first_registry_dir([BATTLENET_KEY], ["InstallPath"])
        if path:
            return path
        return self.first_existing_dir(self.program_files_dirs("Battle.net"))

    def detect_games(self) -> DetectionResult:
        battlenet_path = self.resolve_install_path()
        if not battlenet_path:
            return self.not_found()

        result = DetectionResult(is_installed=True, install_path=battlenet_path)

        # product.db hits first, then every other known code
        codes = self.product_db_codes()
        codes += [code for code in KNOWN_GAMES if code not in codes]
        for code in codes:
            install_path = self.game_install_path(code)
            if install_path:
                result.add_game(self.build_game(code, install_path))

        logger.info(f"[Battle.net] {len(result.games)} games found")
        return result

    def product_db_codes(self) -> List[str]:
        program_data = self.system.folders.program_data
        for candidate in (os.path.join(program_data, "Battle.net", "Agent", "product.db"),
                          os.path.join(program_data, "Blizzard Entertainment", "Battle.net", "Agent", "product.db")):
            content = self.system.read_bytes(candidate)
            if content is None:
                continue
            text = content.decode("utf-8", errors="ignore").lower()
            return [code for code in KNOWN_GAMES if code in text]
        return []

    def game_install_path(self, code: str) -> Optional[str]:
        name = KNOWN_GAMES[code]
        keys = (
            f"SOFTWARE\\WOW6432Node\\Blizzard Entertainment\\{code}",
            f"SOFTWARE\\Blizzard Entertainment\\{code}",
            f"{UNINSTALL_KEY_32}\\{code}",
            f"{UNINSTALL_KEY_32}\\{name}",
        )
        for key in keys:
            for value_name in ("InstallPath", "InstallLocation"):
                path = self.read_value(key, value_name)
                if path and self.system.is_dir(path.strip().strip('"')):
                    return path.strip().strip('"')
        return None

    def build_game(self, code: str, install_path: str) -> Optional[DetectedGame]:
        if not is_valid_game_install(self.system, install_path, BLIZZARD_UTILITY_EXES):
            return None
        name = KNOWN_GAMES[code]
        return DetectedGame(
            name=clean_game_title(name),
            external_id=code,
            install_path=install_path,
            executable_path=find_main_executable(self.system, install_path, name,
                                                 known_exes=KNOWN_EXES.get(code, ()),
                                                 extra_patterns=BLIZZARD_UTILITY_EXES),
            launch_command=f"battlenet://{code}",
        )
