"""
Registry of launcher probes and quick detection of the installed launchers.
"""
import logging
from typing import Dict, Iterable, List, Optional

from .models import LauncherType
from .platforms import DETECTOR_CLASSES, LauncherDetector
from .system import SystemAccess, default_system

logger = logging.getLogger(__name__)


class PlatformRegistry:
    """Holds one probe per launcher, built once at startup."""

    def __init__(self, detectors: Iterable[LauncherDetector]):
        self._detectors: Dict[LauncherType, LauncherDetector] = {}
        for detector in detectors:
            self.register(detector)

    @classmethod
    def create_default(cls, system: Optional[SystemAccess] = None, settings=None) -> "PlatformRegistry":
        system = system or default_system()
        return cls(detector_class(system, settings) for detector_class in DETECTOR_CLASSES)

    def register(self, detector: LauncherDetector):
        self._detectors[detector.launcher_type] = detector

    def get(self, launcher: LauncherType) -> Optional[LauncherDetector]:
        return self._detectors.get(launcher)

    def all(self) -> List[LauncherDetector]:
        return list(self._detectors.values())

    def __contains__(self, launcher: LauncherType) -> bool:
        return launcher in self._detectors

    def __len__(self):
        return len(self._detectors)

    def detect_installed_platforms(self) -> Dict[LauncherType, bool]:
        """
        Checks every registered launcher.

        Returns:
            Launcher -> installed. A probe that fails counts as not installed.
        """
        installed = {}
        for detector in self.all():
            try:
                installed[detector.launcher_type] = bool(detector.probe_installed())
            except Exception as e:
                logger.error(f"[DETECTOR] {detector.launcher_name} check failed: {e}")
                installed[detector.launcher_type] = False

        found = [d.launcher_name for d in self.all() if installed[d.launcher_type]]
        logger.info(f"[DETECTOR] {len(found)} launchers installed: {', '.join(found) or 'none'}")
        return installed
