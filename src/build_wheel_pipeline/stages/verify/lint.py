from __future__ import annotations

from pathlib import Path

from build_wheel_pipeline.core import CommandError, CommandRunner, QualityGateError


def twine_check_command(python: str, wheel: Path) -> list[str]:
    return [python, "-m", "twine", "check", "--strict", str(wheel)]


def run_metadata_lint(runner: CommandRunner, *, python: str, wheel: Path) -> str:
    try:
        res = runner.run(twine_check_command(python, wheel))
    except CommandError as e:
        raise QualityGateError(f"Package metadata lint failed for {wheel.name}: {e}") from e
    return res.tail(5)
