from __future__ import annotations

import json
from datetime import timedelta

import pytest

from gamecatalog.models import GameRecord, LauncherState, LauncherType, utcnow
from gamecatalog.repository import (DuplicateGameError, GameNotFoundError, InMemoryRepository,
                                    JsonRepository, RepositoryError)


def game(name, launcher=LauncherType.STEAM, external_id=None, **kwargs):
    return GameRecord(launcher=launcher, name=name, external_id=external_id, **kwargs)


def test_launchers_are_seeded() -> None:
    repo = InMemoryRepository()
    states = repo.list_launcher_states()
    assert [s.launcher for s in states] == list(LauncherType)
    assert repo.get_launcher_state(LauncherType.MANUAL).is_installed
    assert not repo.get_launcher_state(LauncherType.STEAM).is_installed


def test_insert_assigns_ids_and_copies() -> None:
    repo = InMemoryRepository()
    record = game("Portal 2", external_id="620")
    stored = repo.insert_game(record)
    assert stored.id == 1
    assert record.id == 0
    stored.name = "changed"
    assert repo.get_game(1).name == "Portal 2"


def test_external_id_is_unique_per_launcher() -> None:
    repo = InMemoryRepository()
    first = repo.insert_game(game("Portal 2", external_id="620"))
    repo.insert_game(game("Portal 2", LauncherType.EPIC, external_id="620"))
    repo.insert_game(game("No id A"))
    repo.insert_game(game("No id B"))

    with pytest.raises(DuplicateGameError) as info:
        repo.insert_game(game("Portal 2 again", external_id="620"))
    assert info.value.existing_id == first.id
    assert isinstance(info.value, RepositoryError)
    assert len(repo.list_games()) == 4


def test_queries() -> None:
    repo = InMemoryRepository()
    now = utcnow()
    repo.insert_game(game("Hades", external_id="1", executable_path=r"C:\G\Hades.exe"))
    repo.insert_game(game("hades II", LauncherType.EPIC, external_id="2", last_played=now))
    repo.insert_game(game("Celeste", LauncherType.EPIC, external_id="3", last_played=now - timedelta(days=1)))

    assert [g.name for g in repo.list_games()] == ["Celeste", "Hades", "hades II"]
    assert [g.name for g in repo.search("HADES")] == ["Hades", "hades II"]
    assert [g.name for g in repo.games_by_launcher(LauncherType.EPIC)] == ["hades II", "Celeste"]
    assert repo.find_by_external_id(LauncherType.EPIC, "3").name == "Celeste"
    assert repo.find_by_external_id(LauncherType.STEAM, "3") is None
    assert [g.name for g in repo.find_by_executable("  c:\\g\\HADES.EXE ")] == ["Hades"]
    assert [g.name for g in repo.recent(1)] == ["hades II"]
    assert [g.name for g in repo.recent(5)] == ["hades II", "Celeste"]


def test_update_and_delete() -> None:
    repo = InMemoryRepository()
    stored = repo.insert_game(game("Hades", external_id="1"))
    stored.name = "Hades (2020)"
    repo.update_game(stored)
    assert repo.get_game(stored.id).name == "Hades (2020)"

    assert repo.delete_game(stored.id)
    assert not repo.delete_game(stored.id)
    with pytest.raises(GameNotFoundError):
        repo.update_game(stored)


def test_transaction_rolls_back_everything() -> None:
    repo = InMemoryRepository()
    kept = repo.insert_game(game("Kept", external_id="1"))

    with pytest.raises(RuntimeError):
        with repo.transaction():
            repo.insert_game(game("New", external_id="2"))
            repo.delete_game(kept.id)
            raise RuntimeError("merge failed")

    assert [g.name for g in repo.list_games()] == ["Kept"]
    assert repo.insert_game(game("Next", external_id="3")).id == 2


def test_json_repository_persists_and_reloads(tmp_path) -> None:
    path = tmp_path / "data" / "library.json"
    repo = JsonRepository(str(path))
    played = utcnow()
    stored = repo.insert_game(game("Hades", external_id="1145360", last_played=played))
    repo.save_launcher_state(LauncherState(LauncherType.STEAM, True, r"C:\Steam", played))

    reloaded = JsonRepository(str(path))
    record = reloaded.get_game(stored.id)
    assert record.name == "Hades"
    assert record.last_played == played
    assert record.launcher == LauncherType.STEAM
    state = reloaded.get_launcher_state(LauncherType.STEAM)
    assert state.is_installed and state.install_path == r"C:\Steam"
    assert reloaded.insert_game(game("Next")).id == stored.id + 1


def test_json_repository_writes_once_per_transaction(tmp_path, monkeypatch) -> None:
    repo = JsonRepository(str(tmp_path / "library.json"))
    commits = []
    original = repo._commit
    monkeypatch.setattr(repo, "_commit", lambda: commits.append(1) or original())

    with repo.transaction():
        repo.insert_game(game("A", external_id="1"))
        repo.insert_game(game("B", external_id="2"))

    assert commits == [1]
    data = json.loads((tmp_path / "library.json").read_text(encoding="utf-8"))
    assert [g["name"] for g in data["games"]] == ["A", "B"]


def test_corrupt_library_file_starts_empty(tmp_path) -> None:
    path = tmp_path / "library.json"
    path.write_text("{oops", encoding="utf-8")
    repo = JsonRepository(str(path))
    assert repo.list_games() == []
    assert repo.get_launcher_state(LauncherType.MANUAL).is_installed
