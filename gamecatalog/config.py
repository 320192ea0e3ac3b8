"""
Settings for the catalog: where the library lives and how scans behave.

Stored as ``settings.json`` in the data folder. Environment variables
override the file for the data folder, log level and scan worker count.
"""
import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from typing import List, Mapping, Optional

logger = logging.getLogger(__name__)

SETTINGS_FILE = "settings.json"

ENV_DATA_DIR = "GAMECATALOG_DATA_DIR"
ENV_LOG_LEVEL = "GAMECATALOG_LOG_LEVEL"
ENV_SCAN_WORKERS = "GAMECATALOG_SCAN_WORKERS"


def default_data_dir() -> str:
    local_app_data = os.environ.get("LOCALAPPDATA")
    if local_app_data:
        return os.path.join(local_app_data, "gamecatalog")
    return os.path.join(os.path.expanduser("~"), ".local", "share", "gamecatalog")


@dataclass
class CatalogSettings:
    """Application-wide settings."""
    data_dir: str = field(default_factory=default_data_dir)
    library_file: str = "library.json"
    icons_dir: str = ""                      # "" = <data_dir>/icons
    scan_workers: int = 1                    # 1 = probes run one after another
    drive_scan_enabled: bool = True          # Walk drive roots for loose installs
    drive_scan_depth: int = 3
    drive_scan_timeout: float = 30.0         # Seconds before a drive walk gives up
    dedup_priority: List[str] = field(default_factory=lambda: ["steam"])
    log_level: str = "INFO"

    @property
    def library_path(self) -> str:
        return os.path.join(self.data_dir, self.library_file)

    @property
    def icons_path(self) -> str:
        return self.icons_dir or os.path.join(self.data_dir, "icons")

    def apply_environ(self, environ: Optional[Mapping[str, str]] = None) -> "CatalogSettings":
        env = os.environ if environ is None else environ
        if env.get(ENV_DATA_DIR):
            self.data_dir = env[ENV_DATA_DIR]
        if env.get(ENV_LOG_LEVEL):
            self.log_level = env[ENV_LOG_LEVEL].upper()
        if env.get(ENV_SCAN_WORKERS):
            try:
                self.scan_workers = max(1, int(env[ENV_SCAN_WORKERS]))
            except ValueError:
                logger.warning(f"Ignoring {ENV_SCAN_WORKERS}={env[ENV_SCAN_WORKERS]!r}: not a number")
        return self


class SettingsManager:
    """Loads and saves CatalogSettings to a JSON file."""

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self.settings_file = os.path.join(data_dir, SETTINGS_FILE)
        self.settings = self._load()

    def _load(self) -> CatalogSettings:
        if os.path.exists(self.settings_file):
            try:
                with open(self.settings_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
                known = {fld.name for fld in fields(CatalogSettings)}
                settings = CatalogSettings(**{k: v for k, v in data.items() if k in known})
                settings.data_dir = settings.data_dir or self.data_dir
                return settings
            except (json.JSONDecodeError, TypeError, AttributeError, OSError) as e:
                logger.error(f"Error loading settings: {e}. Using defaults.")
        return CatalogSettings(data_dir=self.data_dir)

    def save(self) -> None:
        try:
            os.makedirs(self.data_dir, exist_ok=True)
            with open(self.settings_file, "w", encoding="utf-8") as f:
                json.dump(asdict(self.settings), f, indent=2)
            logger.info("Settings saved")
        except OSError as e:
            logger.error(f"Error saving settings: {e}")


def load_settings(data_dir: Optional[str] = None,
                  environ: Optional[Mapping[str, str]] = None) -> CatalogSettings:
    """Settings from ``<data_dir>/settings.json`` with environment overrides applied."""
    env = os.environ if environ is None else environ
    settings = SettingsManager(data_dir or env.get(ENV_DATA_DIR) or default_data_dir()).settings.apply_environ(env)
    if data_dir:
        # an explicit folder beats the environment
        settings.data_dir = data_dir
    return settings
