from __future__ import annotations

import hashlib
import io
import tarfile
import zipfile
from pathlib import Path
from typing import IO, Any

from build_wheel_pipeline.core import sha256_stream


def _digest_member(h: Any, name: str, mode: int, stream: IO[bytes]) -> None:
    h.update(name.encode("utf-8"))
    h.update(b"\0")
    h.update(str(mode & 0o777).encode("ascii"))
    h.update(b"\0")
    h.update(sha256_stream(stream).sha256.encode("ascii"))
    h.update(b"\n")


def archive_fingerprint(path: Path) -> str:
    """
    Hash an sdist or wheel by member names, permissions and contents, ignoring
    archive mtimes, so two builds of the same tree compare equal. Metadata
    members (PKG-INFO, RECORD) are hashed like any other file.
    """
    path = Path(path)
    h = hashlib.sha256()

    if path.name.endswith(".whl") or path.suffix == ".zip":
        with zipfile.ZipFile(path) as zf:
            for info in sorted(zf.infolist(), key=lambda i: i.filename):
                if info.is_dir():
                    continue
                mode = (info.external_attr >> 16) & 0o777
                with zf.open(info) as member:
                    _digest_member(h, info.filename, mode, member)
        return h.hexdigest()

    with tarfile.open(path, "r:*") as tf:
        for member in sorted(tf.getmembers(), key=lambda m: m.name):
            if not member.isfile():
                continue
            stream = tf.extractfile(member) or io.BytesIO()
            with stream:
                _digest_member(h, member.name, member.mode, stream)
    return h.hexdigest()
