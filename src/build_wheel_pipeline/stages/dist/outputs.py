from __future__ import annotations

from pathlib import Path
from typing import Mapping

from build_wheel_pipeline.core import append_text


def format_step_outputs(values: Mapping[str, str], *, prefix: str = "") -> str:
    lines = []
    for key in sorted(values):
        value = str(values[key])
        if "\n" in value:
            raise ValueError(f"Step output {key!r} must be a single line")
        lines.append(f"{prefix}{key}={value}\n")
    return "".join(lines)


def write_step_outputs(
    path: Path, values: Mapping[str, str], *, prefix: str = ""
) -> None:
    """Append key=value lines in the format of the CI runner's outputs file."""
    append_text(path, format_step_outputs(values, prefix=prefix))


def read_step_outputs(path: Path) -> dict[str, str]:
    out: dict[str, str] = {}
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        if not line.strip() or "=" not in line:
            continue
        key, _, value = line.partition("=")
        out[key] = value
    return out
