"""Command line: user names, save reset and the first-run settings file."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import main
from backend.models.puzzle_map import PuzzleMap
from backend.models.savestore import SaveStore, Stats

runner = CliRunner()


@pytest.fixture
def config(tmp_path: Path) -> Path:
    path = tmp_path / "settings.json"
    _write_config(path, tmp_path)
    return path


def _write_config(path: Path, root: Path, **extra) -> None:
    settings = {
        "levels_dir": str(root / "levels"),
        "saves_dir": str(root / "saves"),
        "log_file": str(root / "klotski.log"),
        **extra,
    }
    path.write_text(json.dumps(settings), encoding="utf-8")


def _invoke(config: Path, *args: str, input: str | None = None):
    return runner.invoke(main.app, ["--config", str(config), *args], input=input)


def _saved_alice(tmp_path: Path, sidestep_map: PuzzleMap) -> Path:
    store = SaveStore(tmp_path / "saves")
    store.save_manual(sidestep_map, "alice", Stats(), "normal", [], 1000)
    return store.path_for("alice")


# -- user names ---------------------------------------------------------------


def test_invalid_user_option_is_rejected(tmp_path: Path, config: Path) -> None:
    result = _invoke(config, "-u", "bob smith", "--stats")
    assert result.exit_code == 2
    assert not (tmp_path / "saves").exists()


def test_invalid_user_in_settings_is_rejected(tmp_path: Path) -> None:
    config = tmp_path / "settings.json"
    _write_config(config, tmp_path, user="bob smith")
    result = _invoke(config, "--stats")
    assert result.exit_code == 2


def test_stats_for_valid_user(tmp_path: Path, config: Path) -> None:
    (tmp_path / "levels").mkdir()
    result = _invoke(config, "-u", "alice", "--stats")
    assert result.exit_code == 0
    assert "No cleared levels yet." in result.output


# -- reset saves --------------------------------------------------------------


def test_reset_saves_confirmed(tmp_path: Path, config: Path, sidestep_map: PuzzleMap) -> None:
    save = _saved_alice(tmp_path, sidestep_map)
    result = _invoke(config, "--reset-saves", "-u", "alice", input="y\n")
    assert result.exit_code == 0
    assert not save.exists()


def test_reset_saves_declined(tmp_path: Path, config: Path, sidestep_map: PuzzleMap) -> None:
    save = _saved_alice(tmp_path, sidestep_map)
    result = _invoke(config, "--reset-saves", "-u", "alice", input="n\n")
    assert result.exit_code == 1
    assert save.exists()


def test_guest_has_no_saves_to_reset(config: Path) -> None:
    result = _invoke(config, "--reset-saves")
    assert result.exit_code == 2


# -- settings file ------------------------------------------------------------


def test_first_run_writes_default_settings(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(main, "PROJECT_ROOT", tmp_path)
    config = tmp_path / "data" / "settings.json"

    result = _invoke(config, "--reset-saves")

    assert result.exit_code == 2
    assert json.loads(config.read_text(encoding="utf-8"))["user"] is None


def test_existing_settings_are_not_rewritten(config: Path) -> None:
    before = config.read_text(encoding="utf-8")
    _invoke(config, "--reset-saves")
    assert config.read_text(encoding="utf-8") == before
