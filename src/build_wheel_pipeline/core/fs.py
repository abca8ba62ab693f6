import os
import shutil
import tempfile
from pathlib import Path

from .time import utc_now_iso


def ensure_parent(path: Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def safe_unlink(path: os.PathLike[str] | str) -> None:
    try:
        Path(path).unlink(missing_ok=True)
    except OSError:
        return


def remove_tree(path: Path) -> None:
    """Remove a workspace directory; a missing directory is not an error."""
    shutil.rmtree(Path(path), ignore_errors=True)


def file_size(path: Path) -> int:
    return int(Path(path).stat().st_size)


def human_size(n: int) -> str:
    """Size in the style of `ls -lh`: 512, 1.5K, 23M."""
    size = float(n)
    for unit in ("", "K", "M", "G", "T"):
        if size < 1024 or unit == "T":
            if unit == "":
                return f"{int(size)}"
            return f"{size:.1f}{unit}" if size < 10 else f"{size:.0f}{unit}"
        size /= 1024
    return f"{n}"


def fsync_dir(parent: Path) -> None:
    """
    Ensure directory entry durability after atomic rename.
    """
    fd: int | None = None
    try:
        fd = os.open(parent, os.O_RDONLY)
        os.fsync(fd)
    finally:
        if fd is not None:
            os.close(fd)


def _atomic_write(path: Path, data: bytes, *, mode: int) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd: int | None = None
    tmp_path: Path | None = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
        )
        tmp_path = Path(tmp_name)

        with os.fdopen(fd, "wb") as f:
            fd = None
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
        fsync_dir(path.parent)
    finally:
        if fd is not None:
            os.close(fd)
        if tmp_path is not None and tmp_path.exists():
            safe_unlink(tmp_path)


def atomic_write_text(
    path: Path,
    text: str,
    *,
    encoding: str = "utf-8",
    mode: int = 0o644,
) -> None:
    """
    Atomically write text to `path`.

    Readers either see the old complete file or the new complete file.
    """
    _atomic_write(path, text.encode(encoding), mode=mode)


def append_text(path: Path, text: str, *, encoding: str = "utf-8") -> None:
    ensure_parent(path)
    with Path(path).open("a", encoding=encoding) as f:
        f.write(text)


def make_tmp_dir_for(final_dir: Path) -> Path:
    """
    Create a temp dir next to final_dir (same filesystem) so rename is atomic.
    """
    final_dir = Path(final_dir)
    final_dir.parent.mkdir(parents=True, exist_ok=True)
    tmp = tempfile.mkdtemp(prefix=f".{final_dir.name}.tmp.", dir=str(final_dir.parent))
    return Path(tmp)


def atomic_dir_commit(
    *, tmp_dir: Path, final_dir: Path, overwrite: bool = False
) -> None:
    """
    Swap tmp_dir into final_dir, restoring the previous directory if the swap fails.
    """
    final_dir = Path(final_dir)
    tmp_dir = Path(tmp_dir)

    if final_dir.exists() and not overwrite:
        raise FileExistsError(f"Target exists (overwrite disabled): {final_dir}")

    stamp = utc_now_iso().replace(":", "").replace("-", "").replace(".", "")
    backup_dir = final_dir.parent / f"{final_dir.name}.old.{stamp}"

    if final_dir.exists():
        final_dir.rename(backup_dir)

    try:
        tmp_dir.rename(final_dir)
    except OSError:
        if backup_dir.exists() and not final_dir.exists():
            backup_dir.rename(final_dir)
        raise
    finally:
        if backup_dir.exists():
            remove_tree(backup_dir)


def copy_or_hardlink(src: Path, dst: Path) -> None:
    """
    Prefer hardlink (O(1), no extra disk), fallback to copy2.
    """
    src = Path(src)
    dst = Path(dst)
    ensure_parent(dst)
    try:
        os.link(src, dst)
    except OSError:
        shutil.copy2(src, dst)
