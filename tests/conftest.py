from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Sequence

import pytest

from build_wheel_pipeline.core import CommandError, CommandResult

Effect = Callable[[list[str], Path | None], None]


@dataclass
class _Rule:
    needle: str
    output: str
    returncode: int
    effect: Effect | None


class FakeCommands:
    """
    CommandRunner double. Rules match when their needle is a substring of the
    space-joined command; the most recently added rule wins.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[list[str], Path | None]] = []
        self._rules: list[_Rule] = []

    def on(
        self,
        needle: str,
        *,
        output: str = "",
        returncode: int = 0,
        effect: Effect | None = None,
    ) -> "FakeCommands":
        self._rules.append(_Rule(needle, output, returncode, effect))
        return self

    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
    ) -> CommandResult:
        argv = [str(c) for c in cmd]
        self.calls.append((argv, cwd))
        joined = " ".join(argv)

        output, rc = "", 0
        for rule in reversed(self._rules):
            if rule.needle in joined:
                if rule.effect is not None:
                    rule.effect(argv, cwd)
                output, rc = rule.output, rule.returncode
                break

        if check and rc != 0:
            raise CommandError(cmd=argv, returncode=rc, output_tail=output)
        return CommandResult(cmd=tuple(argv), returncode=rc, output=output, duration_ms=0)

    def commands(self) -> list[str]:
        return [" ".join(argv) for argv, _ in self.calls]

    def ran(self, needle: str) -> bool:
        return any(needle in c for c in self.commands())


@pytest.fixture
def fake_commands() -> FakeCommands:
    return FakeCommands()


@pytest.fixture
def job_factory(tmp_path: Path):
    """Build a JobSpec rooted in tmp_path."""
    from build_wheel_pipeline.core import WorkspaceLayout
    from build_wheel_pipeline.pipeline.context import JobSpec
    from build_wheel_pipeline.registry.models import PipelineConfig
    from build_wheel_pipeline.trigger import EventName, Trigger

    def _make(
        *,
        variant: str = "dev",
        config: PipelineConfig | None = None,
        trigger: Trigger | None = None,
        source: str = ".",
        **kw,
    ) -> JobSpec:
        cfg = config or PipelineConfig()
        layout = WorkspaceLayout(
            work_root=tmp_path / "work", run_root=tmp_path / "runs", run_id="run1"
        )
        layout.ensure_dirs(variant)
        return JobSpec(
            variant=cfg.variant_map[variant],
            config=cfg,
            trigger=trigger or Trigger(event=EventName.workflow_dispatch),
            source=source,
            layout=layout,
            python="python3",
            **kw,
        )

    return _make


@pytest.fixture
def ctx_factory(tmp_path: Path, job_factory, fake_commands):
    """Open a RunContext for a job without running any stages."""
    from build_wheel_pipeline.pipeline.runner import PipelineRunner

    def _make(**job_kw):
        job = job_factory(**job_kw)
        runner = PipelineRunner(stages=[])
        return runner.open(
            job=job,
            run_root=job.layout.variant_run_dir(job.variant.name),
            run_id=job.layout.run_id,
            commands=fake_commands,
        )

    return _make


def _make_sdist(path: Path, files: dict[str, bytes], *, top: str = "pkg-1.0") -> Path:
    import io
    import tarfile

    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as tf:
        dirs = {top} | {
            f"{top}/{'/'.join(n.split('/')[:i])}"
            for n in files
            for i in range(1, n.count("/") + 1)
        }
        for d in sorted(dirs):
            info = tarfile.TarInfo(d)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tf.addfile(info)
        for name, data in files.items():
            info = tarfile.TarInfo(f"{top}/{name}")
            info.size = len(data)
            info.mode = 0o644
            tf.addfile(info, io.BytesIO(data))
    return path


def _make_wheel(path: Path, files: dict[str, bytes], *, date_time=(2024, 1, 1, 0, 0, 0)) -> Path:
    import zipfile

    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in files.items():
            info = zipfile.ZipInfo(name, date_time=date_time)
            info.external_attr = 0o644 << 16
            zf.writestr(info, data)
    return path


@pytest.fixture
def make_sdist():
    return _make_sdist


@pytest.fixture
def make_wheel():
    return _make_wheel
