"""
gamecatalog: detects installed game launchers and the games they manage,
keeps them in one library and launches them.
"""
from .config import CatalogSettings, load_settings
from .library import GameLibrary, create_library
from .models import (DetectedGame, DetectionResult, GameRecord, LaunchError, LaunchResult,
                     LauncherState, LauncherType)
from .unified_scanner import SCANNER_VERSION

__version__ = SCANNER_VERSION

__all__ = [
    "CatalogSettings",
    "DetectedGame",
    "DetectionResult",
    "GameLibrary",
    "GameRecord",
    "LaunchError",
    "LaunchResult",
    "LauncherState",
    "LauncherType",
    "create_library",
    "load_settings",
]
