from __future__ import annotations

from pathlib import Path

from src.core.file_manager import atomic_write_text, list_subdirectories, reset_directory


def test_atomic_write_replaces_content(tmp_path: Path):
    target = tmp_path / "ledgers" / "p1.json"
    atomic_write_text(target, "[]")
    atomic_write_text(target, "[1]")
    assert target.read_text(encoding="utf-8") == "[1]"
    assert [p.name for p in target.parent.iterdir()] == ["p1.json"]


def test_reset_directory_empties_existing(tmp_path: Path):
    target = tmp_path / "artifact"
    (target / "nested").mkdir(parents=True)
    (target / "nested" / "old.html").write_text("x", encoding="utf-8")
    reset_directory(target)
    assert target.is_dir()
    assert list(target.iterdir()) == []


def test_list_subdirectories_ignores_files(tmp_path: Path):
    (tmp_path / "b").mkdir()
    (tmp_path / "a").mkdir()
    (tmp_path / "file.txt").write_text("x", encoding="utf-8")
    assert [p.name for p in list_subdirectories(tmp_path)] == ["a", "b"]
    assert list_subdirectories(tmp_path / "missing") == []
