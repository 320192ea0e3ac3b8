"""Launcher probes, one module per vendor."""
from .base import LauncherDetector
from .battlenet import BattleNetDetector
from .ea import EADetector
from .epic import EpicDetector
from .gog import GOGDetector
from .minecraft import MinecraftDetector
from .riot import RiotDetector
from .roblox import RobloxDetector
from .rockstar import RockstarDetector
from .steam import SteamDetector
from .ubisoft import UbisoftDetector

# Registration order is the scan order
DETECTOR_CLASSES = (
    SteamDetector,
    EpicDetector,
    EADetector,
    UbisoftDetector,
    GOGDetector,
    BattleNetDetector,
    RockstarDetector,
    RiotDetector,
    MinecraftDetector,
    RobloxDetector,
)

__all__ = [
    "LauncherDetector",
    "DETECTOR_CLASSES",
    "SteamDetector",
    "EpicDetector",
    "EADetector",
    "UbisoftDetector",
    "GOGDetector",
    "BattleNetDetector",
    "RockstarDetector",
    "RiotDetector",
    "MinecraftDetector",
    "RobloxDetector",
]
