import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

CHUNK_BYTES = 1024 * 1024


@dataclass(frozen=True)
class FileDigest:
    sha256: str
    bytes: int


def sha256_stream(f: BinaryIO, *, chunk_bytes: int = CHUNK_BYTES) -> FileDigest:
    """Digest an open binary stream, e.g. a member of a wheel or sdist."""
    h = hashlib.sha256()
    total = 0
    while True:
        b = f.read(chunk_bytes)
        if not b:
            break
        h.update(b)
        total += len(b)
    return FileDigest(sha256=h.hexdigest(), bytes=total)


def sha256_file(path: Path, *, chunk_bytes: int = CHUNK_BYTES) -> FileDigest:
    with Path(path).open("rb") as f:
        return sha256_stream(f, chunk_bytes=chunk_bytes)
