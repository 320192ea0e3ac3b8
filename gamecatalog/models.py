"""
Data model shared by the probes, the reconciliation engine and the launcher.
"""
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple


class LauncherType(str, Enum):
    """Supported launcher integrations. MANUAL owns user-entered games."""
    STEAM = 'steam'
    EPIC = 'epic'
    EA = 'ea'
    UBISOFT = 'ubi'
    GOG = 'gog'
    BATTLENET = 'bnet'
    ROCKSTAR = 'rockstar'
    RIOT = 'riot'
    MINECRAFT = 'minecraft'
    ROBLOX = 'roblox'
    MANUAL = 'manual'

    @property
    def display_name(self) -> str:
        return PLATFORMS[self.value]['name']


# Display names and scan groups (1 = fast probes, 3 = slow probes)
PLATFORMS = {
    'steam': {'name': 'Steam', 'priority': 1},
    'epic': {'name': 'Epic Games', 'priority': 1},
    'riot': {'name': 'Riot Games', 'priority': 1},
    'minecraft': {'name': 'Minecraft', 'priority': 1},
    'roblox': {'name': 'Roblox', 'priority': 1},
    'ea': {'name': 'EA App', 'priority': 2},
    'ubi': {'name': 'Ubisoft Connect', 'priority': 2},
    'bnet': {'name': 'Battle.net', 'priority': 2},
    'rockstar': {'name': 'Rockstar Games', 'priority': 2},
    'gog': {'name': 'GOG Galaxy', 'priority': 3},
    'manual': {'name': 'Manual', 'priority': 3},
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class LauncherState:
    """Persisted installation state of one launcher."""
    launcher: LauncherType
    is_installed: bool = False
    install_path: Optional[str] = None
    last_scanned: Optional[datetime] = None

    def to_dict(self) -> Dict:
        return {
            'launcher': self.launcher.value,
            'is_installed': self.is_installed,
            'install_path': self.install_path,
            'last_scanned': _iso(self.last_scanned),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'LauncherState':
        return cls(
            launcher=LauncherType(data['launcher']),
            is_installed=bool(data.get('is_installed', False)),
            install_path=data.get('install_path'),
            last_scanned=_parse_iso(data.get('last_scanned')),
        )


@dataclass
class DetectedGame:
    """A game as reported by a probe, before it is merged into the library."""
    name: str
    external_id: Optional[str] = None
    install_path: Optional[str] = None
    executable_path: Optional[str] = None
    launch_command: Optional[str] = None
    icon_path: Optional[str] = None


@dataclass
class DetectionResult:
    """Outcome of one probe run."""
    is_installed: bool = False
    install_path: Optional[str] = None
    games: List[DetectedGame] = field(default_factory=list)
    error_message: Optional[str] = None

    @classmethod
    def not_installed(cls, message: str) -> 'DetectionResult':
        return cls(is_installed=False, error_message=message)

    def add_game(self, game: Optional[DetectedGame], keys: Tuple[str, ...] = ('external_id',)) -> bool:
        """Append a game unless one sharing any of ``keys`` is already present."""
        if game is None:
            return False
        for key in keys:
            value = getattr(game, key)
            if any(getattr(existing, key) == value for existing in self.games):
                return False
        self.games.append(game)
        return True


@dataclass
class GameRecord:
    """A game persisted in the library."""
    launcher: LauncherType
    name: str
    id: int = 0
    install_path: Optional[str] = None
    executable_path: Optional[str] = None
    launch_command: Optional[str] = None
    icon_path: Optional[str] = None
    last_played: Optional[datetime] = None
    date_added: datetime = field(default_factory=utcnow)
    external_id: Optional[str] = None

    @property
    def launcher_name(self) -> str:
        return self.launcher.display_name

    def copy(self) -> 'GameRecord':
        return GameRecord(**asdict(self))

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['launcher'] = self.launcher.value
        data['last_played'] = _iso(self.last_played)
        data['date_added'] = _iso(self.date_added)
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'GameRecord':
        return cls(
            id=int(data['id']),
            launcher=LauncherType(data['launcher']),
            name=data['name'],
            install_path=data.get('install_path'),
            executable_path=data.get('executable_path'),
            launch_command=data.get('launch_command'),
            icon_path=data.get('icon_path'),
            last_played=_parse_iso(data.get('last_played')),
            date_added=_parse_iso(data.get('date_added')) or utcnow(),
            external_id=data.get('external_id'),
        )


class LaunchError(str, Enum):
    NONE = 'none'
    GAME_NOT_FOUND = 'game_not_found'
    EXECUTABLE_NOT_FOUND = 'executable_not_found'
    LAUNCHER_NOT_INSTALLED = 'launcher_not_installed'
    PERMISSION_DENIED = 'permission_denied'
    INVALID_COMMAND = 'invalid_command'
    PROCESS_START_FAILED = 'process_start_failed'


@dataclass
class LaunchResult:
    """Typed outcome of a launch attempt."""
    success: bool
    error: LaunchError = LaunchError.NONE
    message: str = ''
    details: Optional[str] = None

    @classmethod
    def succeeded(cls) -> 'LaunchResult':
        return cls(success=True)

    @classmethod
    def failed(cls, error: LaunchError, message: str, details: Optional[str] = None) -> 'LaunchResult':
        return cls(success=False, error=error, message=message, details=details)
