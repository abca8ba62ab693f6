from __future__ import annotations

import tarfile
import zipfile
from pathlib import Path

from build_wheel_pipeline.core import IntegrityError, atomic_write_text


def sdist_members(path: Path) -> list[str]:
    """Member names in archive order; directories carry a trailing slash."""
    try:
        with tarfile.open(path, "r:*") as tf:
            return [m.name + "/" if m.isdir() else m.name for m in tf.getmembers()]
    except (tarfile.TarError, OSError) as e:
        raise IntegrityError(f"Unreadable source archive {path}: {e}") from e


def wheel_members(path: Path) -> list[str]:
    try:
        with zipfile.ZipFile(path) as zf:
            return zf.namelist()
    except (zipfile.BadZipFile, OSError) as e:
        raise IntegrityError(f"Unreadable binary package {path}: {e}") from e


def write_listing(path: Path, members: list[str]) -> Path:
    atomic_write_text(path, "".join(f"{m}\n" for m in members))
    return path
