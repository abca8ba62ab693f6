import json
from pathlib import Path
from typing import Any

from .fs import atomic_write_text


def atomic_write_json(path: Path, obj: Any, *, indent: int = 2) -> None:
    """Reports and artifact metadata; paths and datetimes serialize via str()."""
    atomic_write_text(
        path,
        json.dumps(obj, ensure_ascii=False, indent=indent, sort_keys=True, default=str)
        + "\n",
    )


def read_json(path: Path) -> dict[str, Any]:
    """Read a JSON document whose top level must be an object."""
    with Path(path).open("r", encoding="utf-8") as f:
        obj = json.load(f)
    if not isinstance(obj, dict):
        raise ValueError(f"{path}: expected a JSON object, got {type(obj).__name__}")
    return obj
