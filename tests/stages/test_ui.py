from __future__ import annotations

import pytest

from build_wheel_pipeline.core import BuildError
from build_wheel_pipeline.registry.models import PipelineConfig, UISpec
from build_wheel_pipeline.stages.ui import stage_ui


def test_runs_yarn_then_build_in_working_dir(ctx_factory, fake_commands) -> None:
    ctx = ctx_factory()
    workdir = ctx.job.checkout_dir / "mlflow" / "server" / "js"
    workdir.mkdir(parents=True)

    out = stage_ui(ctx)

    assert out["skipped"] is False
    assert [argv for argv, _ in fake_commands.calls] == [["yarn"], ["yarn", "build"]]
    assert all(cwd == workdir for _, cwd in fake_commands.calls)


def test_missing_working_dir_is_build_error(ctx_factory) -> None:
    with pytest.raises(BuildError, match="not found"):
        stage_ui(ctx_factory())


def test_failing_command_is_build_error(ctx_factory, fake_commands) -> None:
    ctx = ctx_factory()
    (ctx.job.checkout_dir / "mlflow" / "server" / "js").mkdir(parents=True)
    fake_commands.on("yarn build", returncode=1, output="error TS2304")

    with pytest.raises(BuildError, match="TS2304"):
        stage_ui(ctx)


def test_disabled_ui_is_skipped(ctx_factory, fake_commands) -> None:
    cfg = PipelineConfig(ui=UISpec(enabled=False))
    out = stage_ui(ctx_factory(config=cfg))
    assert out["skipped"] is True
    assert fake_commands.calls == []
