from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from build_wheel_pipeline.core import (
    BuildError,
    CommandError,
    CommandRunner,
    file_size,
    human_size,
    remove_tree,
)
from build_wheel_pipeline.registry.models import DistSpec, VariantSpec


@dataclass(frozen=True, slots=True)
class DistOutputs:
    sdist_path: Path
    wheel_path: Path

    @property
    def wheel_name(self) -> str:
        return self.wheel_path.name

    @property
    def wheel_size(self) -> int:
        return file_size(self.wheel_path)

    def to_outputs(self) -> dict[str, str]:
        """The four named values downstream steps consume."""
        return {
            "sdist-path": str(self.sdist_path),
            "wheel-path": str(self.wheel_path),
            "wheel-name": self.wheel_name,
            "wheel-size": str(self.wheel_size),
        }


def render_build_command(
    *,
    spec: DistSpec,
    variant: VariantSpec,
    python: str,
    sha: str | None = None,
) -> list[str]:
    values = {
        "python": python,
        "package_type": variant.package_type,
        "variant": variant.name,
        "out_dir": spec.out_dir,
    }
    try:
        cmd = [part.format(**values) for part in spec.command]
    except KeyError as e:
        raise BuildError(f"Unknown placeholder in dist command: {e}") from e
    cmd.extend(variant.extra_build_args)
    if sha:
        cmd.extend(["--sha", sha])
    return cmd


def list_dist_dir(out_dir: Path) -> list[str]:
    """`ls -lh`-style lines for every file in the output directory."""
    lines: list[str] = []
    for p in sorted(Path(out_dir).iterdir()):
        if p.is_file():
            lines.append(f"{human_size(file_size(p)):>6}  {p.name}")
    return lines


def _exactly_one(out_dir: Path, pattern: str, label: str) -> Path:
    found = sorted(p for p in Path(out_dir).glob(pattern) if p.is_file())
    if len(found) != 1:
        names = [p.name for p in found]
        raise BuildError(
            f"Expected exactly one {label} ({pattern}) in {out_dir}, found {len(found)}: {names}"
        )
    return found[0]


def locate_distributions(out_dir: Path) -> DistOutputs:
    out_dir = Path(out_dir)
    if not out_dir.is_dir():
        raise BuildError(f"Build produced no output directory: {out_dir}")
    return DistOutputs(
        sdist_path=_exactly_one(out_dir, "*.tar.gz", "source archive"),
        wheel_path=_exactly_one(out_dir, "*.whl", "binary package"),
    )


def build_distributions(
    runner: CommandRunner,
    *,
    checkout_dir: Path,
    cmd: Sequence[str],
    out_dir: Path,
) -> DistOutputs:
    """
    Clean the output directory, run the packaging command, locate its outputs.
    """
    remove_tree(out_dir)
    try:
        runner.run(list(cmd), cwd=checkout_dir)
    except CommandError as e:
        raise BuildError(f"Distribution build failed: {e}") from e
    return locate_distributions(out_dir)
