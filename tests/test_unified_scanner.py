from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from gamecatalog.icons import IconService
from gamecatalog.models import DetectedGame, DetectionResult, GameRecord, LauncherType
from gamecatalog.platform_detector import PlatformRegistry
from gamecatalog.platforms import LauncherDetector
from gamecatalog.repository import InMemoryRepository, RepositoryError
from gamecatalog.unified_scanner import UnifiedGameScanner

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class ScriptedDetector(LauncherDetector):
    """Returns queued results, repeating the last one."""

    def __init__(self, launcher, *results):
        super().__init__(system=None)
        self.launcher_type = launcher
        self.launcher_name = launcher.display_name
        self.results = list(results)

    def resolve_install_path(self):
        return r"C:\Launchers\%s" % self.launcher_type.value

    def detect_games(self):
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


def installed(*games):
    return DetectionResult(is_installed=True, install_path=r"C:\Launcher", games=list(games))


def make_scanner(*detectors, repo=None, **kwargs):
    repo = repo if repo is not None else InMemoryRepository()
    kwargs.setdefault("progress_callback", Mock())
    scanner = UnifiedGameScanner(PlatformRegistry(detectors), repo, clock=lambda: NOW, **kwargs)
    return scanner, repo


ALPHA = DetectedGame(name="Alpha", external_id="42", executable_path=r"C:\G\Alpha.exe",
                     launch_command="steam://rungameid/42")


def test_new_game_is_inserted() -> None:
    scanner, repo = make_scanner(ScriptedDetector(LauncherType.STEAM, installed(ALPHA)))

    stats = scanner.scan_launcher(LauncherType.STEAM)

    [record] = repo.list_games()
    assert record.external_id == "42"
    assert record.name == "Alpha"
    assert record.date_added == NOW
    assert record.launcher == LauncherType.STEAM
    assert stats.inserted == 1 and stats.games_found == 1

    state = repo.get_launcher_state(LauncherType.STEAM)
    assert state.is_installed
    assert state.install_path == r"C:\Launcher"
    assert state.last_scanned == NOW


def test_missing_game_is_pruned_but_manual_and_unidentified_games_stay() -> None:
    detector = ScriptedDetector(LauncherType.STEAM, installed(ALPHA), installed())
    scanner, repo = make_scanner(detector)
    manual = repo.insert_game(GameRecord(LauncherType.MANUAL, "My Emulator", executable_path=r"C:\Emu\emu.exe"))
    no_id = repo.insert_game(GameRecord(LauncherType.STEAM, "Imported shortcut"))

    scanner.scan_launcher(LauncherType.STEAM)
    assert repo.find_by_external_id(LauncherType.STEAM, "42") is not None

    stats = scanner.scan_launcher(LauncherType.STEAM)

    assert stats.removed == 1
    assert repo.find_by_external_id(LauncherType.STEAM, "42") is None
    assert repo.get_game(manual.id) is not None
    assert repo.get_game(no_id.id) is not None


def test_uninstalled_launcher_leaves_games_alone() -> None:
    detector = ScriptedDetector(LauncherType.STEAM, installed(ALPHA),
                                DetectionResult.not_installed("Steam installation not found"))
    scanner, repo = make_scanner(detector)
    scanner.scan_launcher(LauncherType.STEAM)

    stats = scanner.scan_launcher(LauncherType.STEAM)

    assert not stats.is_installed
    assert len(repo.list_games()) == 1
    state = repo.get_launcher_state(LauncherType.STEAM)
    assert not state.is_installed
    assert state.install_path is None
    assert state.last_scanned == NOW


def test_existing_game_is_updated_in_place_and_keeps_its_icon() -> None:
    renamed = DetectedGame(name="Alpha Remastered", external_id="42", executable_path=r"D:\G\Alpha.exe",
                           launch_command="steam://rungameid/42")
    detector = ScriptedDetector(LauncherType.STEAM, installed(ALPHA), installed(ALPHA), installed(renamed))
    scanner, repo = make_scanner(detector)
    scanner.scan_launcher(LauncherType.STEAM)
    record = repo.find_by_external_id(LauncherType.STEAM, "42")
    record.icon_path = r"C:\icons\alpha.ico"
    repo.update_game(record)

    unchanged = scanner.scan_launcher(LauncherType.STEAM)
    assert unchanged.updated == 0

    stats = scanner.scan_launcher(LauncherType.STEAM)

    [updated] = repo.list_games()
    assert stats.updated == 1 and stats.inserted == 0
    assert updated.id == record.id
    assert updated.name == "Alpha Remastered"
    assert updated.executable_path == r"D:\G\Alpha.exe"
    assert updated.icon_path == r"C:\icons\alpha.ico"
    assert updated.date_added == NOW


def test_icons_come_from_the_icon_service() -> None:
    icons = Mock(spec=IconService)
    icons.icon_from_folder.return_value = None
    icons.icon_from_executable.return_value = r"C:\icons\steam_42.ico"
    game = DetectedGame(name="Alpha", external_id="42", install_path=r"C:\G", executable_path=r"C:\G\Alpha.exe")
    scanner, repo = make_scanner(ScriptedDetector(LauncherType.STEAM, installed(game)), icons=icons)

    scanner.scan_launcher(LauncherType.STEAM)

    icons.icon_from_folder.assert_called_once_with(r"C:\G", LauncherType.STEAM, "42")
    assert repo.list_games()[0].icon_path == r"C:\icons\steam_42.ico"


def test_icon_failures_do_not_break_the_scan() -> None:
    icons = Mock(spec=IconService)
    icons.icon_from_folder.side_effect = OSError("disk gone")
    game = DetectedGame(name="Alpha", external_id="42", install_path=r"C:\G")
    scanner, repo = make_scanner(ScriptedDetector(LauncherType.STEAM, installed(game)), icons=icons)

    stats = scanner.scan_launcher(LauncherType.STEAM)

    assert stats.error is None
    assert repo.list_games()[0].icon_path is None


def test_games_without_external_id_are_skipped() -> None:
    anonymous = DetectedGame(name="Mystery", executable_path=r"C:\G\m.exe")
    blank = DetectedGame(name="Blank", external_id="  ")
    scanner, repo = make_scanner(ScriptedDetector(LauncherType.EA, installed(anonymous, blank, ALPHA)))

    stats = scanner.scan_launcher(LauncherType.EA)

    assert stats.skipped == 2
    assert [g.name for g in repo.list_games()] == ["Alpha"]


def test_scanning_manual_or_unknown_launcher_is_a_programming_error() -> None:
    scanner, _ = make_scanner(ScriptedDetector(LauncherType.STEAM, installed()))
    with pytest.raises(AssertionError):
        scanner.scan_launcher(LauncherType.MANUAL)
    with pytest.raises(AssertionError):
        scanner.scan_launcher(LauncherType.EPIC)


def test_duplicate_key_from_repository_becomes_an_update() -> None:
    class StaleLookupRepository(InMemoryRepository):
        def find_by_external_id(self, launcher, external_id):
            return None

    repo = StaleLookupRepository()
    existing = repo.insert_game(GameRecord(LauncherType.STEAM, "Old name", external_id="42"))
    scanner, _ = make_scanner(ScriptedDetector(LauncherType.STEAM, installed(ALPHA)), repo=repo)

    stats = scanner.scan_launcher(LauncherType.STEAM)

    assert stats.error is None
    assert stats.updated == 1
    [record] = repo.list_games()
    assert record.id == existing.id
    assert record.name == "Alpha"


# ---- cross-launcher deduplication ----
def shared(external_id, name="Shared"):
    return DetectedGame(name=name, external_id=external_id, executable_path=r"C:\G\Shared.exe")


def test_dedup_prefers_the_reference_launcher() -> None:
    scanner, repo = make_scanner(
        ScriptedDetector(LauncherType.EPIC, installed(shared("epic-1"))),
        ScriptedDetector(LauncherType.STEAM, installed(shared("100"))),
    )

    report = scanner.scan_all()

    [survivor] = repo.list_games()
    assert survivor.launcher == LauncherType.STEAM
    assert report.duplicates_removed == 1


def test_dedup_matches_paths_case_insensitively_and_keeps_newest_otherwise() -> None:
    repo = InMemoryRepository()
    repo.insert_game(GameRecord(LauncherType.EPIC, "Old", external_id="a",
                                executable_path=r"C:\G\Game.exe", date_added=NOW - timedelta(days=3)))
    newest = repo.insert_game(GameRecord(LauncherType.GOG, "New", external_id="b",
                                         executable_path=r"  c:\g\GAME.EXE ", date_added=NOW))
    repo.insert_game(GameRecord(LauncherType.MANUAL, "No exe"))
    repo.insert_game(GameRecord(LauncherType.MANUAL, "No exe either"))
    scanner, _ = make_scanner(repo=repo)

    assert scanner.deduplicate_games() == 1
    remaining = {g.name for g in repo.list_games()}
    assert remaining == {"New", "No exe", "No exe either"}
    assert repo.get_game(newest.id) is not None


def test_dedup_is_idempotent() -> None:
    scanner, repo = make_scanner(
        ScriptedDetector(LauncherType.STEAM, installed(shared("100"))),
        ScriptedDetector(LauncherType.EPIC, installed(shared("epic-1"))),
        ScriptedDetector(LauncherType.GOG, installed(shared("gog-1"))),
    )
    scanner.scan_all()
    survivors = [(g.id, g.launcher) for g in repo.list_games()]

    assert scanner.deduplicate_games() == 0
    assert [(g.id, g.launcher) for g in repo.list_games()] == survivors
    assert len(survivors) == 1


def test_dedup_priority_is_configurable() -> None:
    scanner, repo = make_scanner(
        ScriptedDetector(LauncherType.STEAM, installed(shared("100"))),
        ScriptedDetector(LauncherType.EPIC, installed(shared("epic-1"))),
        dedup_priority=["epic", "steam"],
    )
    scanner.scan_all()
    assert [g.launcher for g in repo.list_games()] == [LauncherType.EPIC]


# ---- full scans ----
def test_failing_launcher_does_not_stop_the_others() -> None:
    class FailingInsertRepository(InMemoryRepository):
        def insert_game(self, game):
            if game.name == "Bad":
                raise RepositoryError("disk full")
            return super().insert_game(game)

    bad = DetectedGame(name="Bad", external_id="2")
    scanner, repo = make_scanner(
        ScriptedDetector(LauncherType.STEAM, RuntimeError("probe crashed")),
        ScriptedDetector(LauncherType.EPIC, installed(DetectedGame(name="Good", external_id="1"), bad)),
        ScriptedDetector(LauncherType.GOG, installed(DetectedGame(name="Fine", external_id="3"))),
        repo=FailingInsertRepository(),
    )

    report = scanner.scan_all()

    assert [g.name for g in repo.list_games()] == ["Fine"]
    assert not report.launchers[LauncherType.STEAM].is_installed
    assert "disk full" in report.launchers[LauncherType.EPIC].error
    assert report.launchers[LauncherType.EPIC].inserted == 0
    assert report.launchers[LauncherType.GOG].inserted == 1
    # the launcher state write is not part of the failed merge
    assert repo.get_launcher_state(LauncherType.EPIC).is_installed
    assert set(report.errors) == {LauncherType.EPIC}


def test_scan_all_reports_progress() -> None:
    progress = Mock()
    scanner, _ = make_scanner(
        ScriptedDetector(LauncherType.STEAM, installed(ALPHA)),
        ScriptedDetector(LauncherType.EPIC, installed()),
        progress_callback=progress,
    )

    report = scanner.scan_all()

    platforms = [c.args[0] for c in progress.call_args_list]
    assert platforms == ["Starting", "Steam", "Epic Games", "Done"]
    assert progress.call_args_list[-1].args[1] == 100
    assert progress.call_args_list[1].args[3] == [{"name": "Alpha", "external_id": "42"}]
    assert report.platforms_found == 2
    assert report.scan_time >= 0


def test_scan_all_prints_progress_lines_without_callback(capsys) -> None:
    scanner, _ = make_scanner(ScriptedDetector(LauncherType.STEAM, installed()), progress_callback=None)
    scanner.scan_all()
    lines = [line for line in capsys.readouterr().out.splitlines() if line.startswith("PROGRESS:")]
    assert len(lines) == 3
    assert '"percentage": 100' in lines[-1]


def test_parallel_detection_gives_the_same_library() -> None:
    def detectors():
        return (
            ScriptedDetector(LauncherType.STEAM, installed(shared("100"), ALPHA)),
            ScriptedDetector(LauncherType.EPIC, installed(shared("epic-1"))),
            ScriptedDetector(LauncherType.GOG, installed(DetectedGame(name="Gamma", external_id="7"))),
        )

    sequential, seq_repo = make_scanner(*detectors())
    parallel, par_repo = make_scanner(*detectors(), max_workers=4)
    sequential.scan_all()
    parallel.scan_all()

    def summary(repo):
        return sorted((g.launcher.value, g.external_id) for g in repo.list_games())

    assert summary(par_repo) == summary(seq_repo)
    assert ("epic", "epic-1") not in summary(par_repo)
