"""
Launch resolver: validates a stored launch directive and starts it.

A record's launch command (a launcher URI or a quoted executable with
arguments) is tried first; if it is rejected or fails to start, the
record's executable path is started instead, from its own folder.
"""
import logging
import ntpath
import os
import re
import shlex
import subprocess
import sys
from typing import Callable, Optional, Tuple

from .models import LaunchError, LaunchResult, LauncherType, utcnow
from .platform_detector import PlatformRegistry
from .repository import LibraryRepository, RepositoryError
from .system import SystemAccess, default_system

logger = logging.getLogger(__name__)

# Launcher protocol handlers accepted as launch directives
ALLOWED_SCHEMES = frozenset({
    "steam",
    "com.epicgames.launcher",
    "uplay",
    "origin",
    "origin2",
    "battlenet",
    "gog",
    "goggalaxy",
    "rockstar",
    "riotclient",
    "minecraft",
    "roblox",
    "roblox-player",
    "shell",
})

# Shell and script hosts that are never started, with or without extension
DANGEROUS_EXECUTABLES = frozenset({
    "cmd", "powershell", "pwsh", "wscript", "cscript",
    "mshta", "rundll32", "regsvr32", "certutil", "bitsadmin",
})

# Win32 error codes seen when starting a process
ERROR_FILE_NOT_FOUND = 2
ERROR_PATH_NOT_FOUND = 3
ERROR_ACCESS_DENIED = 5
ERROR_NO_ASSOCIATION = 1155

MAX_DISPLAY_LENGTH = 100

_SCHEME_RE = re.compile(r"^([A-Za-z][A-Za-z0-9+.\-]*):")


def parse_launch_command(command: str) -> Tuple[str, str]:
    """
    Splits ``"C:\\path\\game.exe" -arg`` into the path and the raw arguments.

    Input that does not start with a quote is returned whole, with no arguments.
    """
    command = (command or "").strip()
    if command.startswith('"'):
        end = command.find('"', 1)
        if end > 0:
            return command[1:end], command[end + 1:].strip()
    return command, ""


def uri_scheme(command: str) -> Optional[str]:
    """Lowercased URI scheme, None for plain paths (a drive letter is not a scheme)."""
    match = _SCHEME_RE.match((command or "").strip())
    if not match or len(match.group(1)) == 1:
        return None
    return match.group(1).lower()


def is_dangerous_executable(path: str) -> bool:
    name = ntpath.basename((path or "").strip().strip('"')).lower()
    return name in DANGEROUS_EXECUTABLES or os.path.splitext(name)[0] in DANGEROUS_EXECUTABLES


def sanitize_for_display(command: Optional[str]) -> str:
    """Single-line, truncated rendering of a command for messages."""
    if not command:
        return ""
    text = " ".join(command.split())
    if len(text) > MAX_DISPLAY_LENGTH:
        text = text[:MAX_DISPLAY_LENGTH - 3] + "..."
    return text


def map_os_error(error: OSError) -> LaunchError:
    winerror = getattr(error, "winerror", None)
    if winerror == ERROR_NO_ASSOCIATION:
        return LaunchError.LAUNCHER_NOT_INSTALLED
    if winerror == ERROR_ACCESS_DENIED or isinstance(error, PermissionError):
        return LaunchError.PERMISSION_DENIED
    if winerror in (ERROR_FILE_NOT_FOUND, ERROR_PATH_NOT_FOUND) or isinstance(error, FileNotFoundError):
        return LaunchError.EXECUTABLE_NOT_FOUND
    return LaunchError.PROCESS_START_FAILED


class ProcessStarter:
    """Starts URIs through the desktop shell and executables directly."""

    def open_uri(self, uri: str):
        if sys.platform == "win32":
            os.startfile(uri)
        else:
            opener = "open" if sys.platform == "darwin" else "xdg-open"
            subprocess.Popen([opener, uri], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)

    def start_process(self, path: str, arguments: str = "", cwd: Optional[str] = None):
        if os.name == "nt":
            argv = f'"{path}" {arguments}'.strip()
        else:
            argv = [path] + shlex.split(arguments)
        subprocess.Popen(argv, cwd=cwd or None)


class LaunchResolver:
    def __init__(self, repository: LibraryRepository, system: Optional[SystemAccess] = None,
                 starter: Optional[ProcessStarter] = None, registry: Optional[PlatformRegistry] = None,
                 clock: Callable = utcnow):
        self.repository = repository
        self.system = system or default_system()
        self.starter = starter or ProcessStarter()
        self.registry = registry
        self.clock = clock

    # ==================== VALIDATION ====================
    def _under_windows_dir(self, path: str) -> bool:
        windows_dir = self.system.folders.windows_dir
        if not windows_dir:
            return False
        root = os.path.normcase(os.path.abspath(windows_dir)).rstrip("\\/")
        target = os.path.normcase(os.path.abspath(path))
        return target == root or target.startswith(root + os.sep)

    def is_valid_file_path(self, path: Optional[str]) -> bool:
        """An existing file that is neither a shell host nor under the Windows folder."""
        path = (path or "").strip().strip('"')
        if not path or is_dangerous_executable(path):
            return False
        if self._under_windows_dir(path):
            return False
        return self.system.is_file(path)

    def resolve_command(self, command: str) -> Optional[Tuple[str, str]]:
        """
        ``(path, arguments)`` for a path directive, None if no valid file is named.

        An unquoted directive with spaces is matched by growing the path one
        word at a time until it names an existing file.
        """
        command = (command or "").strip()
        if command.startswith('"'):
            path, arguments = parse_launch_command(command)
            return (path, arguments) if self.is_valid_file_path(path) else None

        if self.is_valid_file_path(command):
            return command, ""
        words = command.split(" ")
        for i in range(1, len(words)):
            candidate = " ".join(words[:i])
            if self.is_valid_file_path(candidate):
                return candidate, " ".join(words[i:]).strip()
        return None

    def is_valid_launch_command(self, command: Optional[str]) -> bool:
        if not command or not command.strip():
            return False

        scheme = uri_scheme(command)
        if scheme is not None:
            # decided on the scheme alone
            return scheme in ALLOWED_SCHEMES

        path, _ = parse_launch_command(command)
        if is_dangerous_executable(path) or is_dangerous_executable(command.split()[0]):
            return False
        return self.resolve_command(command) is not None

    # ==================== LAUNCH ====================
    def _run(self, action: Callable[[], None], command: str) -> LaunchResult:
        details = sanitize_for_display(command)
        try:
            action()
        except OSError as e:
            error = map_os_error(e)
            logger.error(f"[Launch] Could not start {details}: {e}")
            return LaunchResult.failed(error, str(e), details)
        except ValueError as e:
            logger.error(f"[Launch] Could not start {details}: {e}")
            return LaunchResult.failed(LaunchError.PROCESS_START_FAILED, str(e), details)
        logger.info(f"[Launch] Started {details}")
        return LaunchResult.succeeded()

    def launch_command(self, command: str) -> LaunchResult:
        """Starts an already validated launch directive."""
        if uri_scheme(command) is not None:
            return self._run(lambda: self.starter.open_uri(command.strip()), command)

        resolved = self.resolve_command(command)
        if resolved is None:
            return LaunchResult.failed(LaunchError.EXECUTABLE_NOT_FOUND, "Launch target not found",
                                       sanitize_for_display(command))
        path, arguments = resolved
        return self._run(lambda: self.starter.start_process(path, arguments, os.path.dirname(path)), command)

    def launch_executable(self, executable_path: Optional[str]) -> LaunchResult:
        executable_path = (executable_path or "").strip().strip('"')
        if not executable_path:
            return LaunchResult.failed(LaunchError.INVALID_COMMAND, "No valid launch command or executable")
        details = sanitize_for_display(executable_path)
        if is_dangerous_executable(executable_path) or self._under_windows_dir(executable_path):
            return LaunchResult.failed(LaunchError.INVALID_COMMAND, "Executable is not allowed", details)
        if not self.system.is_file(executable_path):
            return LaunchResult.failed(LaunchError.EXECUTABLE_NOT_FOUND, "Executable not found", details)
        cwd = os.path.dirname(executable_path)
        return self._run(lambda: self.starter.start_process(executable_path, "", cwd), executable_path)

    def try_launch(self, game_id: int) -> LaunchResult:
        """Launches a library game, recording the attempt as its last-played time."""
        game = self.repository.get_game(game_id)
        if game is None:
            return LaunchResult.failed(LaunchError.GAME_NOT_FOUND, f"Game {game_id} not found")

        game.last_played = self.clock()
        try:
            self.repository.update_game(game)
        except RepositoryError as e:
            logger.warning(f"[Launch] Could not record last played for {game.name}: {e}")

        command_result = None
        command = (game.launch_command or "").strip()
        if command:
            if self.is_valid_launch_command(command):
                command_result = self.launch_command(command)
                if command_result.success:
                    return command_result
                logger.warning(f"[Launch] {game.name}: launch command failed, trying executable")
            else:
                logger.warning(f"[Launch] {game.name}: rejected launch command {sanitize_for_display(command)}")

        if not (game.executable_path or "").strip() and command_result is not None:
            return command_result
        return self.launch_executable(game.executable_path)

    def launch_launcher(self, launcher: LauncherType) -> LaunchResult:
        """Opens a launcher client (store shell id or client executable)."""
        if self.registry is None or self.registry.get(launcher) is None:
            return LaunchResult.failed(LaunchError.LAUNCHER_NOT_INSTALLED, f"No probe for {launcher.value}")

        state = self.repository.get_launcher_state(launcher)
        target = self.registry.get(launcher).launch_target()
        if not target and not state.is_installed:
            return LaunchResult.failed(LaunchError.LAUNCHER_NOT_INSTALLED,
                                       f"{launcher.display_name} is not installed")
        if not target:
            return LaunchResult.failed(LaunchError.EXECUTABLE_NOT_FOUND,
                                       f"{launcher.display_name} client not found")
        if uri_scheme(target) is not None:
            if not self.is_valid_launch_command(target):
                return LaunchResult.failed(LaunchError.INVALID_COMMAND, "Launcher target is not allowed",
                                           sanitize_for_display(target))
            return self.launch_command(target)
        return self.launch_executable(target)
