from __future__ import annotations

import shutil
from pathlib import Path
from typing import Sequence

from build_wheel_pipeline.core import CommandRunner, IntegrityError, remove_tree
from build_wheel_pipeline.stages.dist.build import DistOutputs, build_distributions
from build_wheel_pipeline.stages.dist.fingerprint import archive_fingerprint


def check_rebuild_matches(
    runner: CommandRunner,
    *,
    first: DistOutputs,
    checkout_dir: Path,
    cmd: Sequence[str],
    out_dir: Path,
    rebuild_dir: Path,
) -> dict[str, str]:
    """
    Rebuild the same tree and compare archive fingerprints.

    The second build lands in `rebuild_dir/second`; the first build's files are
    restored to `out_dir` afterwards so earlier outputs stay valid.
    """
    expected = {
        "sdist": archive_fingerprint(first.sdist_path),
        "wheel": archive_fingerprint(first.wheel_path),
    }

    remove_tree(rebuild_dir)
    kept = rebuild_dir / "first"
    shutil.copytree(out_dir, kept)
    try:
        second = build_distributions(
            runner, checkout_dir=checkout_dir, cmd=cmd, out_dir=out_dir
        )
        second_dir = rebuild_dir / "second"
        shutil.copytree(out_dir, second_dir)
        actual = {
            "sdist": archive_fingerprint(second_dir / second.sdist_path.name),
            "wheel": archive_fingerprint(second_dir / second.wheel_path.name),
        }
        names = (second.sdist_path.name, second.wheel_path.name)
    finally:
        remove_tree(out_dir)
        shutil.copytree(kept, out_dir)

    if names != (first.sdist_path.name, first.wheel_path.name):
        raise IntegrityError(f"Rebuild produced different file names: {list(names)}")
    for kind in ("sdist", "wheel"):
        if expected[kind] != actual[kind]:
            raise IntegrityError(
                f"Rebuilt {kind} differs: {expected[kind][:12]} != {actual[kind][:12]}"
            )
    return expected
