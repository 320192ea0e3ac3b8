"""
Unified scanner: runs the launcher probes and reconciles what they report
with the stored library.

For each launcher the merge inserts new games, updates known ones in place
and removes games that a successful scan no longer reports. Once every
launcher is merged, games installed through two storefronts (same
executable) are collapsed to one record.
"""
import concurrent.futures
import json
import logging
import sys
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .icons import IconService
from .models import (PLATFORMS, DetectedGame, DetectionResult, GameRecord, LauncherState,
                     LauncherType, utcnow)
from .platform_detector import PlatformRegistry
from .platforms import LauncherDetector
from .repository import DuplicateGameError, LibraryRepository, normalize_path

logger = logging.getLogger(__name__)

SCANNER_VERSION = "2.0.0"

DEFAULT_DEDUP_PRIORITY = (LauncherType.STEAM,)


@dataclass
class LauncherScanStats:
    launcher: LauncherType
    is_installed: bool = False
    games_found: int = 0
    inserted: int = 0
    updated: int = 0
    removed: int = 0
    skipped: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'launcher': self.launcher.value,
            'is_installed': self.is_installed,
            'games_found': self.games_found,
            'inserted': self.inserted,
            'updated': self.updated,
            'removed': self.removed,
            'skipped': self.skipped,
            'error': self.error,
        }


@dataclass
class ScanReport:
    launchers: Dict[LauncherType, LauncherScanStats] = field(default_factory=dict)
    duplicates_removed: int = 0
    scan_time: float = 0.0

    @property
    def platforms_found(self) -> int:
        return sum(1 for s in self.launchers.values() if s.is_installed)

    @property
    def errors(self) -> Dict[LauncherType, str]:
        return {k: s.error for k, s in self.launchers.items() if s.error}

    def to_dict(self) -> Dict:
        return {
            'launchers': [s.to_dict() for s in self.launchers.values()],
            'duplicates_removed': self.duplicates_removed,
            'platforms_found': self.platforms_found,
            'scan_time': self.scan_time,
        }


ProgressCallback = Callable[[str, int, int, List], None]


class UnifiedGameScanner:
    """Scans every registered launcher into the library."""

    def __init__(self, registry: PlatformRegistry, repository: LibraryRepository,
                 icons: Optional[IconService] = None,
                 progress_callback: Optional[ProgressCallback] = None,
                 dedup_priority: Optional[Iterable] = None,
                 max_workers: int = 1,
                 clock: Callable = utcnow):
        self.registry = registry
        self.repository = repository
        self.icons = icons or IconService()
        self.progress_callback = progress_callback
        self.dedup_priority: Sequence[LauncherType] = tuple(
            LauncherType(p) for p in (dedup_priority if dedup_priority is not None else DEFAULT_DEDUP_PRIORITY))
        self.max_workers = max(1, int(max_workers))
        self.clock = clock

    def send_progress(self, platform: str, percentage: int, games_found: int = 0, platform_games: List = None):
        """Reports scan progress to the callback, or as a PROGRESS line on stdout."""
        if self.progress_callback:
            self.progress_callback(platform, percentage, games_found, platform_games or [])
        else:
            progress_data = {
                "type": "progress",
                "platform": platform,
                "percentage": percentage,
                "games_found": games_found,
                "games": platform_games or []
            }
            print("PROGRESS:" + json.dumps(progress_data, ensure_ascii=False))
            sys.stdout.flush()

    # ==================== PER-LAUNCHER MERGE ====================
    def scan_launcher(self, launcher: LauncherType) -> LauncherScanStats:
        """Scans one launcher and merges its games into the library."""
        assert launcher != LauncherType.MANUAL, "Manual games are not scanned"
        detector = self.registry.get(launcher)
        assert detector is not None, f"No probe registered for {launcher!r}"
        return self._apply_result(detector, detector.safe_detect())

    def _apply_result(self, detector: LauncherDetector, result: DetectionResult) -> LauncherScanStats:
        launcher = detector.launcher_type
        stats = LauncherScanStats(launcher, is_installed=result.is_installed, games_found=len(result.games))

        try:
            self._save_launcher_state(launcher, result)
        except Exception as e:
            logger.error(f"[UNIFIED] Could not record {detector.launcher_name} state: {e}")
            stats.error = str(e)

        if not result.is_installed:
            logger.info(f"[UNIFIED] {detector.launcher_name}: {result.error_message or 'not installed'}")
            return stats

        self._extract_launcher_icon(detector, result.install_path)
        icons = self._game_icons(launcher, result.games)

        try:
            with self.repository.transaction():
                self._merge(launcher, result.games, icons, stats)
        except Exception as e:
            logger.error(f"[UNIFIED] Merge failed for {detector.launcher_name}, changes rolled back: {e}")
            stats.inserted = stats.updated = stats.removed = 0
            stats.error = str(e)
            return stats

        logger.info(f"[UNIFIED] {detector.launcher_name}: {stats.games_found} found, "
                    f"{stats.inserted} new, {stats.updated} updated, {stats.removed} removed")
        return stats

    def _save_launcher_state(self, launcher: LauncherType, result: DetectionResult):
        self.repository.save_launcher_state(LauncherState(
            launcher=launcher,
            is_installed=result.is_installed,
            install_path=result.install_path,
            last_scanned=self.clock(),
        ))

    def _merge(self, launcher: LauncherType, games: List[DetectedGame],
               icons: Dict[str, Optional[str]], stats: LauncherScanStats):
        seen = set()
        for detected in games:
            external_id = (detected.external_id or "").strip()
            if not external_id:
                # cannot be matched again on the next scan
                logger.debug(f"[UNIFIED] Skipping '{detected.name}': no external id")
                stats.skipped += 1
                continue
            if external_id in seen:
                continue
            seen.add(external_id)

            icon = icons.get(external_id)
            existing = self.repository.find_by_external_id(launcher, external_id)
            if existing is None:
                try:
                    self.repository.insert_game(GameRecord(
                        launcher=launcher,
                        name=detected.name,
                        install_path=detected.install_path,
                        executable_path=detected.executable_path,
                        launch_command=detected.launch_command,
                        icon_path=icon,
                        date_added=self.clock(),
                        external_id=external_id,
                    ))
                    stats.inserted += 1
                    continue
                except DuplicateGameError as e:
                    logger.warning(f"[UNIFIED] {e}, updating instead")
                    existing = self.repository.get_game(e.existing_id)
                    if existing is None:
                        raise

            if self._refresh(existing, detected, icon):
                self.repository.update_game(existing)
                stats.updated += 1

        for game in self.repository.games_by_launcher(launcher):
            if launcher == LauncherType.MANUAL or not game.external_id:
                continue
            if game.external_id not in seen:
                logger.info(f"[UNIFIED] Removing uninstalled game: {game.name} ({launcher.display_name})")
                self.repository.delete_game(game.id)
                stats.removed += 1

    @staticmethod
    def _refresh(record: GameRecord, detected: DetectedGame, icon: Optional[str]) -> bool:
        """Copies scanned attributes onto the record, True if anything changed."""
        changed = False
        for attr in ("name", "install_path", "executable_path", "launch_command"):
            value = getattr(detected, attr)
            if getattr(record, attr) != value:
                setattr(record, attr, value)
                changed = True
        if icon and record.icon_path != icon:
            record.icon_path = icon
            changed = True
        return changed

    # ==================== ICONS ====================
    def _extract_launcher_icon(self, detector: LauncherDetector, install_path: Optional[str]):
        try:
            exe = detector.launcher_executable(install_path)
            if exe:
                self.icons.launcher_icon(exe, detector.launcher_type)
        except Exception as e:
            logger.debug(f"[UNIFIED] Launcher icon for {detector.launcher_name} failed: {e}")

    def _game_icons(self, launcher: LauncherType, games: List[DetectedGame]) -> Dict[str, Optional[str]]:
        icons = {}
        for game in games:
            external_id = (game.external_id or "").strip()
            if not external_id or external_id in icons:
                continue
            icon = game.icon_path
            try:
                if not icon and game.install_path:
                    icon = self.icons.icon_from_folder(game.install_path, launcher, external_id)
                if not icon and game.executable_path:
                    icon = self.icons.icon_from_executable(game.executable_path, launcher, external_id)
            except Exception as e:
                logger.debug(f"[UNIFIED] Icon for {game.name} failed: {e}")
                icon = None
            icons[external_id] = icon
        return icons

    # ==================== CROSS-LAUNCHER DEDUPLICATION ====================
    def _pick_canonical(self, games: List[GameRecord]) -> GameRecord:
        for launcher in self.dedup_priority:
            preferred = [g for g in games if g.launcher == launcher]
            if preferred:
                return max(preferred, key=lambda g: (g.date_added, g.id))
        return max(games, key=lambda g: (g.date_added, g.id))

    def deduplicate_games(self) -> int:
        """Keeps one record per executable path. Returns the number removed."""
        groups: Dict[str, List[GameRecord]] = defaultdict(list)
        for game in self.repository.list_games():
            key = normalize_path(game.executable_path)
            if key:
                groups[key].append(game)

        duplicates = []
        for games in groups.values():
            if len(games) < 2:
                continue
            keep = self._pick_canonical(games)
            logger.info(f"[Dedupe] {len(games)} entries for '{keep.name}', keeping {keep.launcher_name} version")
            for game in games:
                if game.id != keep.id:
                    logger.info(f"[Dedupe] - Removing {game.launcher_name} version")
                    duplicates.append(game)

        if not duplicates:
            logger.debug("[Dedupe] No duplicate games found")
            return 0

        with self.repository.transaction():
            for game in duplicates:
                self.repository.delete_game(game.id)
        logger.info(f"[Dedupe] Removed {len(duplicates)} duplicate game(s)")
        return len(duplicates)

    # ==================== MAIN SCAN ====================
    def _detect_all(self, detectors: List[LauncherDetector]) -> Iterable:
        """Yields (detector, result) in registration order."""
        if self.max_workers <= 1:
            for detector in detectors:
                yield detector, detector.safe_detect()
            return

        # Probes of one speed group run together, merges stay in order
        groups = defaultdict(list)
        for detector in detectors:
            groups[PLATFORMS[detector.launcher_type.value]['priority']].append(detector)

        order = {d.launcher_type: i for i, d in enumerate(detectors)}
        for priority in sorted(groups):
            group = groups[priority]
            logger.info(f"[UNIFIED] Scan group {priority}: {len(group)} launchers")
            with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {d.launcher_type: executor.submit(d.safe_detect) for d in group}
                for detector in sorted(group, key=lambda d: order[d.launcher_type]):
                    yield detector, futures[detector.launcher_type].result()

    def scan_all(self) -> ScanReport:
        """Scans every launcher, then removes cross-launcher duplicates."""
        start_time = time.time()
        logger.info(f"[UNIFIED] Unified scanner v{SCANNER_VERSION}, starting scan")
        self.send_progress("Starting", 5, 0)

        report = ScanReport()
        detectors = [d for d in self.registry.all() if d.launcher_type != LauncherType.MANUAL]
        total = len(detectors) or 1
        games_found = 0

        for completed, (detector, result) in enumerate(self._detect_all(detectors), start=1):
            try:
                stats = self._apply_result(detector, result)
            except Exception as e:
                logger.exception(f"[UNIFIED] Error while scanning {detector.launcher_name}")
                stats = LauncherScanStats(detector.launcher_type, error=str(e))
            report.launchers[detector.launcher_type] = stats
            games_found += stats.games_found
            self.send_progress(
                detector.launcher_name,
                10 + int((completed / total) * 80),
                games_found,
                [{"name": g.name, "external_id": g.external_id} for g in result.games],
            )

        try:
            report.duplicates_removed = self.deduplicate_games()
        except Exception as e:
            logger.error(f"[Dedupe] Deduplication failed: {e}")

        report.scan_time = time.time() - start_time
        self.send_progress("Done", 100, games_found)
        logger.info(f"[UNIFIED] Scan finished in {report.scan_time:.2f}s, "
                    f"{report.platforms_found} launchers installed")
        return report
