"""
GameLibrary: the entry points offered to a UI or the command line.

Callers never read the registry or the filesystem themselves; every
query and action goes through this facade.
"""
import logging
from typing import Dict, List, Optional

from .config import CatalogSettings
from .icons import FolderIconCache, IconService
from .launch import LaunchResolver, ProcessStarter
from .models import GameRecord, LaunchResult, LauncherState, LauncherType, utcnow
from .platform_detector import PlatformRegistry
from .repository import GameNotFoundError, JsonRepository, LibraryRepository
from .system import SystemAccess, default_system
from .unified_scanner import LauncherScanStats, ScanReport, UnifiedGameScanner

logger = logging.getLogger(__name__)


class GameLibrary:
    def __init__(self, repository: LibraryRepository, registry: PlatformRegistry,
                 scanner: UnifiedGameScanner, resolver: LaunchResolver):
        self.repository = repository
        self.registry = registry
        self.scanner = scanner
        self.resolver = resolver

    # ---- scanning ----
    def scan_all(self) -> ScanReport:
        return self.scanner.scan_all()

    def scan_launcher(self, launcher: LauncherType) -> LauncherScanStats:
        return self.scanner.scan_launcher(launcher)

    def detect_installed_launchers(self) -> Dict[LauncherType, bool]:
        """Checks which launchers are installed and records the answer."""
        installed = self.registry.detect_installed_platforms()
        for launcher, is_installed in installed.items():
            state = self.repository.get_launcher_state(launcher)
            state.is_installed = is_installed
            if is_installed:
                try:
                    state.install_path = self.registry.get(launcher).resolve_install_path()
                except Exception as e:
                    logger.debug(f"[DETECTOR] {launcher.display_name} path lookup failed: {e}")
            self.repository.save_launcher_state(state)
        return installed

    # ---- launching ----
    def try_launch(self, game_id: int) -> LaunchResult:
        return self.resolver.try_launch(game_id)

    def launch_launcher(self, launcher: LauncherType) -> LaunchResult:
        return self.resolver.launch_launcher(launcher)

    # ---- queries ----
    def search(self, text: str) -> List[GameRecord]:
        if not text or not text.strip():
            return self.list_all()
        return self.repository.search(text.strip())

    def list_all(self) -> List[GameRecord]:
        return self.repository.list_games()

    def list_recent(self, count: int = 10) -> List[GameRecord]:
        return self.repository.recent(count)

    def get_game(self, game_id: int) -> Optional[GameRecord]:
        return self.repository.get_game(game_id)

    def list_by_launcher(self, launcher: LauncherType) -> List[GameRecord]:
        return self.repository.games_by_launcher(launcher)

    def list_launchers(self) -> List[LauncherState]:
        return self.repository.list_launcher_states()

    # ---- manual library management ----
    def add_manual_game(self, name: str, executable_path: Optional[str] = None,
                        launch_command: Optional[str] = None, install_path: Optional[str] = None,
                        icon_path: Optional[str] = None) -> GameRecord:
        """Adds a user-entered game. Manual games are never removed by a scan."""
        if not name or not name.strip():
            raise ValueError("A game needs a name")
        record = GameRecord(
            launcher=LauncherType.MANUAL,
            name=name.strip(),
            install_path=install_path,
            executable_path=executable_path,
            launch_command=launch_command,
            icon_path=icon_path,
            date_added=utcnow(),
        )
        record = self.repository.insert_game(record)
        logger.info(f"[Library] Added manual game {record.name} (#{record.id})")
        return record

    def update_game(self, game: GameRecord) -> None:
        if self.repository.get_game(game.id) is None:
            raise GameNotFoundError(f"Game {game.id} not found")
        self.repository.update_game(game)

    def delete_game(self, game_id: int) -> bool:
        deleted = self.repository.delete_game(game_id)
        if deleted:
            logger.info(f"[Library] Removed game #{game_id}")
        return deleted


def create_library(settings: CatalogSettings, system: Optional[SystemAccess] = None,
                   repository: Optional[LibraryRepository] = None,
                   icons: Optional[IconService] = None,
                   starter: Optional[ProcessStarter] = None,
                   progress_callback=None) -> GameLibrary:
    """Wires the default collaborators from settings."""
    system = system or default_system()
    repository = repository if repository is not None else JsonRepository(settings.library_path)
    registry = PlatformRegistry.create_default(system, settings)
    scanner = UnifiedGameScanner(
        registry,
        repository,
        icons=icons if icons is not None else FolderIconCache(settings.icons_path),
        progress_callback=progress_callback,
        dedup_priority=settings.dedup_priority,
        max_workers=settings.scan_workers,
    )
    resolver = LaunchResolver(repository, system, starter, registry)
    return GameLibrary(repository, registry, scanner, resolver)
