"""
Riot Games: the Riot Client and its three titles, all registered in HKCU.
"""
import json
import logging
import os
from typing import Optional

from ..models import DetectedGame, DetectionResult, LauncherType
from ..system import Hive
from .base import UNINSTALL_KEY, LauncherDetector

logger = logging.getLogger(__name__)

RIOT_CLIENT_ENTRY = "Riot Game Riot_Client."
RIOT_CLIENT_EXE = "RiotClientServices.exe"

# (uninstall product, external id, display name, executable candidates)
RIOT_GAMES = (
    ("league_of_legends", "league_of_legends", "League of Legends", (("LeagueClient.exe",),)),
    ("valorant", "valorant", "Valorant", (("live", "VALORANT.exe"), ("VALORANT.exe",))),
    ("bacon", "legends_of_runeterra", "Legends of Runeterra", (("LoR.exe",), ("Legends of Runeterra.exe",))),
)


class RiotDetector(LauncherDetector):
    launcher_type = LauncherType.RIOT
    launcher_name = "Riot Games"
    launcher_exe = RIOT_CLIENT_EXE

    def _user_install_location(self, entry: str) -> Optional[str]:
        path = self.read_value(f"{UNINSTALL_KEY}\\{entry}", "InstallLocation", Hive.CURRENT_USER)
        if not path:
            return None
        # Riot writes forward slashes
        path = os.path.normpath(path)
        return path if self.system.is_dir(path) else None

    def resolve_install_path(self) -> Optional[str]:
        path = self._user_install_location(RIOT_CLIENT_ENTRY)
        if path:
            return path

        installs = os.path.join(self.system.folders.program_data, "Riot Games", "RiotClientInstalls.json")
        text = self.system.read_text(installs)
        if not text:
            return None
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.debug(f"[Riot] Unreadable {installs}: {e}")
            return None
        if not isinstance(data, dict):
            return None
        for channel in ("rc_live", "rc_beta"):
            client_exe = data.get(channel)
            if isinstance(client_exe, str) and client_exe:
                client_dir = os.path.dirname(os.path.normpath(client_exe))
                if self.system.is_dir(client_dir):
                    return client_dir
        return None

    def detect_games(self) -> DetectionResult:
        client_path = self.resolve_install_path()
        if not client_path:
            return DetectionResult.not_installed("Riot Client not found")

        result = DetectionResult(is_installed=True, install_path=client_path)
        client_exe = os.path.join(client_path, RIOT_CLIENT_EXE)
        if not self.system.is_file(client_exe):
            client_exe = None

        for product, external_id, name, exe_candidates in RIOT_GAMES:
            install_path = self._user_install_location(f"Riot Game {product}.live")
            if not install_path:
                continue
            executable = next((os.path.join(install_path, *parts) for parts in exe_candidates
                               if self.system.is_file(os.path.join(install_path, *parts))), None)
            if not executable:
                continue

            if client_exe:
                launch_command = f'"{client_exe}" --launch-product={product} --launch-patchline=live'
            else:
                launch_command = executable

            result.add_game(DetectedGame(
                name=name,
                external_id=external_id,
                install_path=install_path,
                executable_path=executable,
                launch_command=launch_command,
            ))

        logger.info(f"[Riot] {len(result.games)} games found")
        return result
