from __future__ import annotations

import os
from pathlib import Path

import pytest

from build_wheel_pipeline.core import fs


def test_atomic_write_text_replaces_whole_file(tmp_path: Path) -> None:
    text_path = tmp_path / "d1" / "sample.txt"
    fs.atomic_write_text(text_path, "hello\n")
    assert text_path.read_text() == "hello\n"

    fs.atomic_write_text(text_path, "updated")
    assert text_path.read_text() == "updated"

    assert [p.name for p in text_path.parent.iterdir()] == ["sample.txt"]


def test_size_and_copy_or_hardlink(tmp_path: Path) -> None:
    src = tmp_path / "a" / "file.txt"
    fs.ensure_parent(src)
    src.write_text("data")

    dst = tmp_path / "b" / "copied.txt"
    fs.copy_or_hardlink(src, dst)
    assert dst.read_text() == "data"
    assert fs.file_size(dst) == 4

    same_inode = os.stat(src).st_ino == os.stat(dst).st_ino
    assert same_inode or dst.read_text() == src.read_text()


@pytest.mark.parametrize(
    ("n", "expected"),
    [(0, "0"), (512, "512"), (1536, "1.5K"), (23 * 1024 * 1024, "23M")],
)
def test_human_size_matches_ls_style(n: int, expected: str) -> None:
    assert fs.human_size(n) == expected


def test_atomic_dir_commit_replaces_existing(tmp_path: Path) -> None:
    final = tmp_path / "artifact"
    final.mkdir()
    (final / "old.txt").write_text("old")

    tmp = fs.make_tmp_dir_for(final)
    (tmp / "new.txt").write_text("new")

    with pytest.raises(FileExistsError):
        fs.atomic_dir_commit(tmp_dir=tmp, final_dir=final)

    fs.atomic_dir_commit(tmp_dir=tmp, final_dir=final, overwrite=True)
    assert sorted(p.name for p in final.iterdir()) == ["new.txt"]
    assert [p.name for p in tmp_path.iterdir()] == ["artifact"]


def test_append_and_remove_tree(tmp_path: Path) -> None:
    out = tmp_path / "nested" / "out.txt"
    fs.append_text(out, "a=1\n")
    fs.append_text(out, "b=2\n")
    assert out.read_text() == "a=1\nb=2\n"

    fs.remove_tree(tmp_path / "nested")
    fs.remove_tree(tmp_path / "nested")
    assert not (tmp_path / "nested").exists()
