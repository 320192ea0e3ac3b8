"""
EA App (formerly Origin).

EA keeps no readable per-game manifest, so games are gathered from several
sources, merged by title in this order: the ``EA Games`` registry tree, the
usual game folders (plus folders named by Origin ``.mfst`` files), and a
bounded walk of the drive roots for folders carrying EA installer data.
"""
import logging
import os
import re
from typing import Iterable, List, Optional
from urllib.parse import unquote

from .. import drive_detector
from ..game_files import (clean_game_title, find_main_executable, is_skippable_folder,
                          is_valid_game_install)
from ..models import DetectedGame, DetectionResult, LauncherType
from ..system import Hive
from .base import LauncherDetector

logger = logging.getLogger(__name__)

EA_DESKTOP_KEY = r"SOFTWARE\Electronic Arts\EA Desktop"
EA_GAMES_KEYS = (r"SOFTWARE\WOW6432Node\EA Games", r"SOFTWARE\EA Games")

GAME_ROOT_NAMES = ("EA Games", "Origin Games", "Electronic Arts")
DRIVE_GAME_ROOTS = (
    ("EA Games",),
    ("Origin Games",),
    ("Games", "EA Games"),
    ("Games", "Origin Games"),
    ("Games", "Electronic Arts"),
)

INSTALLER_DATA = os.path.join("__Installer", "installerdata.xml")
INSTALLER_MARKERS = ("<DiPManifest", "<contentIDs>")

_DIP_INSTALL_PATH = re.compile(r"dipinstallpath=([^&\r\n]+)")


class EADetector(LauncherDetector):
    launcher_type = LauncherType.EA
    launcher_name = "EA App"
    launcher_exe = "EADesktop.exe"

    def resolve_install_path(self) -> Optional[str]:
        path = self.first_registry_dir([EA_DESKTOP_KEY], ["DesktopAppPath"], file_value=True)
        if path:
            return path
        path = self.first_registry_dir([EA_DESKTOP_KEY], ["InstallLocation"])
        if path:
            return path

        folders = self.system.folders
        return self.first_existing_dir([
            os.path.join(folders.program_files, "Electronic Arts", "EA Desktop", "EA Desktop"),
            os.path.join(folders.program_files_x86, "Electronic Arts", "EA Desktop", "EA Desktop"),
            os.path.join(folders.program_files_x86, "Origin"),
        ])

    def detect_games(self) -> DetectionResult:
        ea_path = self.resolve_install_path()
        if not ea_path:
            return self.not_found()

        result = DetectionResult(is_installed=True, install_path=ea_path)
        keys = ("name", "external_id")

        for game in self.registry_games():
            result.add_game(game, keys)

        for root in self.game_roots():
            for folder in self.system.subdirectories(root):
                result.add_game(self.parse_game_folder(folder), keys)

        if getattr(self.settings, "drive_scan_enabled", True):
            for folder in self.drive_root_folders():
                result.add_game(self.parse_game_folder(folder), keys)

        logger.info(f"[EA] {len(result.games)} games found")
        return result

    # ---- registry ----
    def registry_games(self) -> List[DetectedGame]:
        games = []
        for base_key in EA_GAMES_KEYS:
            for hive in (Hive.LOCAL_MACHINE, Hive.CURRENT_USER):
                for game_key in self.system.registry_subkeys(base_key, hive):
                    install_dir = self.read_value(f"{base_key}\\{game_key}", "Install Dir", hive)
                    if not install_dir or is_skippable_folder(game_key):
                        continue
                    game = self.build_game(game_key, install_dir.strip().strip('"'))
                    if game and all(g.name != game.name for g in games):
                        games.append(game)
        return games

    # ---- folders ----
    def game_roots(self) -> List[str]:
        folders = self.system.folders
        roots = []
        for name in GAME_ROOT_NAMES:
            roots.append(os.path.join(folders.program_files, name))
            roots.append(os.path.join(folders.program_files_x86, name))

        roots.extend(self.origin_manifest_paths(os.path.join(folders.program_data, "Origin", "LocalContent")))
        if folders.local_app_data:
            roots.extend(self.origin_manifest_paths(os.path.join(folders.local_app_data, "Origin", "LocalContent")))

        for drive in self.system.fixed_drives():
            roots.extend(os.path.join(drive, *parts) for parts in DRIVE_GAME_ROOTS)

        unique = []
        seen = set()
        for root in roots:
            key = os.path.normcase(os.path.normpath(root))
            if key not in seen and self.system.is_dir(root):
                seen.add(key)
                unique.append(root)
        return unique

    def origin_manifest_paths(self, local_content: str) -> List[str]:
        """Game folders (and their parents) named by Origin ``.mfst`` files."""
        paths = []
        manifests = self.system.find_files(local_content, "*.mfst")
        for sub in self.system.subdirectories(local_content):
            manifests.extend(self.system.find_files(sub, "*.mfst"))

        for mfst in manifests:
            content = self.system.read_text(mfst) or ""
            match = _DIP_INSTALL_PATH.search(content)
            if not match:
                continue
            install_path = os.path.normpath(unquote(match.group(1)))
            if self.system.is_dir(install_path):
                # the parent usually holds the other games too
                paths.append(os.path.dirname(install_path))
        return paths

    def drive_root_folders(self) -> Iterable[str]:
        return drive_detector.scan_drives_for_folders(
            self.system.fixed_drives(),
            self.is_installer_folder,
            max_depth=getattr(self.settings, "drive_scan_depth", 3),
            timeout=getattr(self.settings, "drive_scan_timeout", None),
        )

    def is_installer_folder(self, folder: str) -> bool:
        """Folder holds EA installer metadata and a playable executable."""
        marker = os.path.join(folder, INSTALLER_DATA)
        if not self.system.is_file(marker):
            return False
        content = self.system.read_text(marker) or ""
        if not any(m in content for m in INSTALLER_MARKERS):
            return False
        return self.parse_game_folder(folder) is not None

    def parse_game_folder(self, folder: str) -> Optional[DetectedGame]:
        name = os.path.basename(os.path.normpath(folder))
        if name.lower() == "ea desktop" or is_skippable_folder(name):
            return None
        return self.build_game(name, folder)

    # ---- shared ----
    def content_id(self, game_name: str) -> Optional[str]:
        """EA content id, the first sub-folder of InstallData/<game> minus ``base-``."""
        install_data = os.path.join(self.system.folders.program_data, "EA Desktop", "InstallData", game_name)
        subfolders = self.system.subdirectories(install_data)
        if not subfolders:
            return None
        content_id = os.path.basename(subfolders[0])
        if content_id.lower().startswith("base-"):
            content_id = content_id[len("base-"):]
        return content_id or None

    def build_game(self, name: str, install_path: str) -> Optional[DetectedGame]:
        if not is_valid_game_install(self.system, install_path):
            return None

        executable = find_main_executable(self.system, install_path, name)
        content_id = self.content_id(name)
        if content_id:
            launch_command = f"origin://launchgame/{content_id}"
        else:
            launch_command = executable

        return DetectedGame(
            name=clean_game_title(name),
            external_id=content_id or name,
            install_path=install_path,
            executable_path=executable,
            launch_command=launch_command,
        )
