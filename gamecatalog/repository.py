"""
Library storage: launcher states and game records.

:class:`LibraryRepository` is the interface the engine depends on.
:class:`InMemoryRepository` keeps everything in dicts and
:class:`JsonRepository` adds persistence to a single JSON file.
"""
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from .models import GameRecord, LauncherState, LauncherType

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    pass


class DuplicateGameError(RepositoryError):
    """A game with the same (launcher, external id) already exists."""

    def __init__(self, launcher: LauncherType, external_id: str, existing_id: int):
        super().__init__(f"{launcher.value}:{external_id} already stored as game {existing_id}")
        self.launcher = launcher
        self.external_id = external_id
        self.existing_id = existing_id


class GameNotFoundError(RepositoryError):
    pass


def normalize_path(path: Optional[str]) -> str:
    return (path or "").strip().lower()


class LibraryRepository(ABC):
    """Storage used by the reconciliation engine and the library facade."""

    @abstractmethod
    def get_launcher_state(self, launcher: LauncherType) -> LauncherState: ...

    @abstractmethod
    def save_launcher_state(self, state: LauncherState) -> None: ...

    @abstractmethod
    def list_launcher_states(self) -> List[LauncherState]: ...

    @abstractmethod
    def get_game(self, game_id: int) -> Optional[GameRecord]: ...

    @abstractmethod
    def list_games(self) -> List[GameRecord]: ...

    @abstractmethod
    def games_by_launcher(self, launcher: LauncherType) -> List[GameRecord]: ...

    @abstractmethod
    def find_by_external_id(self, launcher: LauncherType, external_id: str) -> Optional[GameRecord]: ...

    @abstractmethod
    def find_by_executable(self, executable_path: str) -> List[GameRecord]: ...

    @abstractmethod
    def search(self, text: str) -> List[GameRecord]: ...

    @abstractmethod
    def recent(self, count: int) -> List[GameRecord]: ...

    @abstractmethod
    def insert_game(self, game: GameRecord) -> GameRecord: ...

    @abstractmethod
    def update_game(self, game: GameRecord) -> None: ...

    @abstractmethod
    def delete_game(self, game_id: int) -> bool: ...

    @abstractmethod
    def transaction(self):
        """Context manager: every change inside it is kept, or none is."""


class InMemoryRepository(LibraryRepository):
    """
    Dict-backed repository.

    Records are copied on the way in and out, so callers only change stored
    state through :meth:`insert_game` / :meth:`update_game`.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._games: Dict[int, GameRecord] = {}
        self._launchers: Dict[LauncherType, LauncherState] = {}
        self._next_id = 1
        self._depth = 0
        self._seed_launchers()

    def _seed_launchers(self):
        for launcher in LauncherType:
            if launcher not in self._launchers:
                # Manual games need no client, it always counts as installed
                self._launchers[launcher] = LauncherState(launcher, is_installed=launcher == LauncherType.MANUAL)

    # ---- transactions ----
    def _snapshot(self):
        return ({k: v.copy() for k, v in self._games.items()},
                {k: LauncherState(**vars(v)) for k, v in self._launchers.items()},
                self._next_id)

    def _restore(self, snapshot):
        self._games, self._launchers, self._next_id = snapshot

    def _commit(self):
        """Called once the outermost change set is complete."""

    def _changed(self):
        if self._depth == 0:
            self._commit()

    @contextmanager
    def transaction(self) -> Iterator["InMemoryRepository"]:
        with self._lock:
            snapshot = self._snapshot() if self._depth == 0 else None
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if snapshot is not None:
                    self._restore(snapshot)
                    logger.warning("[Registry] Transaction rolled back")
                raise
            self._depth -= 1
            if snapshot is not None:
                try:
                    self._commit()
                except Exception:
                    self._restore(snapshot)
                    raise

    # ---- launchers ----
    def get_launcher_state(self, launcher: LauncherType) -> LauncherState:
        with self._lock:
            return LauncherState(**vars(self._launchers[launcher]))

    def save_launcher_state(self, state: LauncherState) -> None:
        with self._lock:
            self._launchers[state.launcher] = LauncherState(**vars(state))
            self._changed()

    def list_launcher_states(self) -> List[LauncherState]:
        with self._lock:
            return [LauncherState(**vars(self._launchers[launcher])) for launcher in LauncherType]

    # ---- games ----
    def get_game(self, game_id: int) -> Optional[GameRecord]:
        with self._lock:
            game = self._games.get(game_id)
            return game.copy() if game else None

    def list_games(self) -> List[GameRecord]:
        with self._lock:
            return sorted((g.copy() for g in self._games.values()), key=lambda g: (g.name.lower(), g.id))

    def games_by_launcher(self, launcher: LauncherType) -> List[GameRecord]:
        with self._lock:
            return [g.copy() for g in self._games.values() if g.launcher == launcher]

    def find_by_external_id(self, launcher: LauncherType, external_id: str) -> Optional[GameRecord]:
        if not external_id:
            return None
        with self._lock:
            for game in self._games.values():
                if game.launcher == launcher and game.external_id == external_id:
                    return game.copy()
        return None

    def find_by_executable(self, executable_path: str) -> List[GameRecord]:
        wanted = normalize_path(executable_path)
        if not wanted:
            return []
        with self._lock:
            return [g.copy() for g in self._games.values() if normalize_path(g.executable_path) == wanted]

    def search(self, text: str) -> List[GameRecord]:
        needle = (text or "").strip().lower()
        return [g for g in self.list_games() if needle in g.name.lower()]

    def recent(self, count: int) -> List[GameRecord]:
        with self._lock:
            played = [g.copy() for g in self._games.values() if g.last_played is not None]
        played.sort(key=lambda g: g.last_played, reverse=True)
        return played[:max(count, 0)]

    def _check_unique(self, game: GameRecord):
        if not game.external_id:
            return
        for other in self._games.values():
            if (other.id != game.id and other.launcher == game.launcher
                    and other.external_id == game.external_id):
                raise DuplicateGameError(game.launcher, game.external_id, other.id)

    def insert_game(self, game: GameRecord) -> GameRecord:
        with self._lock:
            stored = game.copy()
            stored.id = self._next_id
            self._check_unique(stored)
            self._next_id += 1
            self._games[stored.id] = stored
            self._changed()
            return stored.copy()

    def update_game(self, game: GameRecord) -> None:
        with self._lock:
            if game.id not in self._games:
                raise GameNotFoundError(f"Game {game.id} does not exist")
            self._check_unique(game)
            self._games[game.id] = game.copy()
            self._changed()

    def delete_game(self, game_id: int) -> bool:
        with self._lock:
            if self._games.pop(game_id, None) is None:
                return False
            self._changed()
            return True


class JsonRepository(InMemoryRepository):
    """Repository persisted to one JSON file, rewritten atomically on every commit."""

    def __init__(self, path: str):
        self.path = path
        super().__init__()
        self._load()

    def _load(self):
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            games = [GameRecord.from_dict(g) for g in data.get("games", [])]
            launchers = [LauncherState.from_dict(s) for s in data.get("launchers", [])]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"[Registry] Failed to load {self.path}: {e}")
            return

        self._games = {g.id: g for g in games}
        for state in launchers:
            self._launchers[state.launcher] = state
        self._next_id = max([int(data.get("next_id", 1))] + [g.id + 1 for g in games])
        logger.info(f"[Registry] Loaded {len(self._games)} games from {self.path}")

    def _commit(self):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        payload = {
            "next_id": self._next_id,
            "launchers": [s.to_dict() for s in self._launchers.values()],
            "games": [g.to_dict() for g in sorted(self._games.values(), key=lambda g: g.id)],
        }
        fd, tmp_path = tempfile.mkstemp(prefix=".library-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"[Registry] Failed to save {self.path}: {e}")
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise RepositoryError(f"Cannot write {self.path}: {e}") from e
        logger.debug(f"[Registry] Saved {len(self._games)} games to {self.path}")
