"""
Command line front end: ``python -m gamecatalog <command>``.
"""
import argparse
import logging
import sys
import traceback
from typing import List, Optional

from .config import load_settings
from .library import GameLibrary, create_library
from .models import GameRecord, LauncherType
from .unified_scanner import SCANNER_VERSION


def _launcher(value: str) -> LauncherType:
    try:
        return LauncherType(value.lower())
    except ValueError:
        choices = ", ".join(t.value for t in LauncherType)
        raise argparse.ArgumentTypeError(f"unknown launcher '{value}' (choose from {choices})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gamecatalog",
                                     description="Unified catalog of locally installed games")
    parser.add_argument("--data-dir", help="folder holding settings.json and the library")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--version", action="version", version=f"%(prog)s {SCANNER_VERSION}")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="scan launchers and update the library")
    scan.add_argument("--launcher", type=_launcher, help="scan a single launcher")

    sub.add_parser("launchers", help="detect installed launchers")

    list_cmd = sub.add_parser("list", help="list library games")
    list_cmd.add_argument("--launcher", type=_launcher)

    search = sub.add_parser("search", help="find games by name")
    search.add_argument("text")

    recent = sub.add_parser("recent", help="recently played games")
    recent.add_argument("-n", type=int, default=10, dest="count")

    launch = sub.add_parser("launch", help="launch a game")
    launch.add_argument("game_id", type=int)

    add = sub.add_parser("add", help="add a game by hand")
    add.add_argument("name")
    add.add_argument("--exe", dest="executable_path")
    add.add_argument("--command", dest="launch_command")

    remove = sub.add_parser("remove", help="remove a game from the library")
    remove.add_argument("game_id", type=int)
    return parser


def _print_games(games: List[GameRecord]):
    if not games:
        print("No games.")
        return
    for game in games:
        print(f"{game.id:>5}  {game.name:<40}  {game.launcher_name}")


def run(library: GameLibrary, args: argparse.Namespace) -> int:
    if args.command == "scan":
        if args.launcher is not None:
            if args.launcher == LauncherType.MANUAL:
                print("Manual games are not scanned.")
                return 2
            stats = library.scan_launcher(args.launcher)
            print(f"{args.launcher.display_name}: {stats.games_found} found, {stats.inserted} new, "
                  f"{stats.updated} updated, {stats.removed} removed")
            return 1 if stats.error else 0

        report = library.scan_all()
        print("\n=== Scan summary ===")
        print(f"Games in library: {len(library.list_all())}")
        print(f"Launchers installed: {report.platforms_found}")
        print(f"Duplicates removed: {report.duplicates_removed}")
        print(f"Scan time: {report.scan_time:.2f}s")
        for launcher, error in report.errors.items():
            print(f"Error ({launcher.display_name}): {error}")
        return 0

    if args.command == "launchers":
        installed = library.detect_installed_launchers()
        for state in library.list_launchers():
            if state.launcher not in installed:
                continue
            mark = "installed" if state.is_installed else "-"
            print(f"{state.launcher.display_name:<18} {mark:<10} {state.install_path or ''}")
        return 0

    if args.command == "list":
        games = library.list_by_launcher(args.launcher) if args.launcher else library.list_all()
        _print_games(games)
        return 0

    if args.command == "search":
        _print_games(library.search(args.text))
        return 0

    if args.command == "recent":
        _print_games(library.list_recent(args.count))
        return 0

    if args.command == "launch":
        result = library.try_launch(args.game_id)
        if result.success:
            print("Launched.")
            return 0
        print(f"Launch failed ({result.error.value}): {result.message}")
        return 1

    if args.command == "add":
        game = library.add_manual_game(args.name, executable_path=args.executable_path,
                                       launch_command=args.launch_command)
        print(f"Added #{game.id} {game.name}")
        return 0

    if args.command == "remove":
        if library.delete_game(args.game_id):
            print(f"Removed #{args.game_id}")
            return 0
        print(f"Game {args.game_id} not found")
        return 1

    return 2


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(args.data_dir)
    if args.log_level:
        settings.log_level = args.log_level.upper()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    try:
        return run(create_library(settings), args)
    except KeyboardInterrupt:
        print("\n[UNIFIED] Scan interrupted by user")
        return 130
    except Exception as e:
        print(f"\n[UNIFIED] Fatal error: {e}")
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
