from __future__ import annotations

import json
from pathlib import Path

import pytest

from build_wheel_pipeline.core import InstallError, IntegrityError, QualityGateError
from build_wheel_pipeline.registry.models import PipelineConfig, VerifySpec
from build_wheel_pipeline.stages.verify import stage_verify
from build_wheel_pipeline.trigger import EventName, Trigger

FILES = {"mlflow/__init__.py": b"__version__ = '3.1.0'\n"}
PROBE = "print(mlflow.__version__)"


@pytest.fixture
def verify_ctx(ctx_factory, fake_commands, make_sdist, make_wheel):
    def _make(*, sdist_files=FILES, wheel_files=FILES, **kw):
        ctx = ctx_factory(**kw)
        out = ctx.job.dist_dir
        sdist = make_sdist(out / "mlflow-3.1.0.tar.gz", sdist_files, top="mlflow-3.1.0")
        wheel = make_wheel(out / "mlflow-3.1.0-py3-none-any.whl", wheel_files)
        ctx.outputs["dist"] = {
            "sdist-path": str(sdist),
            "wheel-path": str(wheel),
            "wheel-name": wheel.name,
            "command": ["python3", "dev/build.py", "--package-type", "dev"],
        }
        fake_commands.on(PROBE, output="3.1.0\n")
        return ctx

    return _make


def _report(ctx) -> dict:
    return json.loads(
        ctx.job.layout.verification_report_json(ctx.variant).read_text()
    )


def test_all_checks_on_manual_run(verify_ctx, fake_commands) -> None:
    ctx = verify_ctx()
    out = stage_verify(ctx)

    assert out["checks"] == {
        "list-sdist": "passed",
        "list-wheel": "passed",
        "manifest-parity": "passed",
        "metadata-lint": "passed",
        "install-sdist": "passed",
        "install-wheel": "passed",
        "install-remote": "skipped",
        "install-script": "skipped",
        "determinism": "skipped",
    }
    assert out["versions"] == {"sdist": "3.1.0", "wheel": "3.1.0"}
    assert any("no repository" in w for w in out["_warnings"])

    assert fake_commands.ran("-m twine check --strict")
    assert fake_commands.ran("-m pip install --force-reinstall")
    assert fake_commands.ran("from mlflow import *")
    assert (ctx.run_root / "sdist_files.txt").read_text().startswith("mlflow-3.1.0/")

    report = _report(ctx)
    assert report["status"] == "passed"
    assert [c["name"] for c in report["checks"]][:2] == ["list-sdist", "list-wheel"]


def test_version_mismatch_fails(verify_ctx, fake_commands) -> None:
    ctx = verify_ctx()
    fake_commands.on(
        "--force-reinstall",
        effect=lambda argv, cwd: fake_commands.on(PROBE, output="3.1.1.dev0\n"),
    )
    with pytest.raises(InstallError, match="mismatch"):
        stage_verify(ctx)

    report = _report(ctx)
    assert report["status"] == "failed"
    assert report["checks"][-1]["name"] == "install-wheel"


def test_missing_version_fails(verify_ctx, fake_commands) -> None:
    ctx = verify_ctx()
    fake_commands.on(PROBE, output="")
    with pytest.raises(InstallError, match="no version"):
        stage_verify(ctx)


def test_lint_failure_stops_before_installs(verify_ctx, fake_commands) -> None:
    ctx = verify_ctx()
    fake_commands.on("twine check", returncode=1, output="long_description missing")
    with pytest.raises(QualityGateError):
        stage_verify(ctx)
    assert not fake_commands.ran("pip install")


def test_parity_mismatch_warns_by_default(verify_ctx) -> None:
    ctx = verify_ctx(sdist_files={**FILES, "setup.py": b""})
    out = stage_verify(ctx)
    assert out["checks"]["manifest-parity"] == "warned"
    assert any("parity" in w for w in out["_warnings"])
    assert "-setup.py" in (ctx.run_root / "parity.diff").read_text()


def test_parity_mismatch_fatal_when_configured(verify_ctx, fake_commands) -> None:
    cfg = PipelineConfig(verify=VerifySpec(parity_fatal=True))
    ctx = verify_ctx(config=cfg, sdist_files={**FILES, "setup.py": b""})
    with pytest.raises(IntegrityError):
        stage_verify(ctx)
    assert not fake_commands.ran("twine")
    assert _report(ctx)["checks"][-1]["status"] == "failed"


def test_pull_request_runs_remote_install_and_script(verify_ctx, fake_commands) -> None:
    trigger = Trigger(
        event=EventName.pull_request,
        ref="refs/pull/7/merge",
        pr_number=7,
        repository="mlflow/mlflow",
    )
    ctx = verify_ctx(variant="skinny", trigger=trigger)
    script = ctx.job.checkout_dir / "dev" / "install-skinny.sh"
    script.parent.mkdir(parents=True)
    script.write_text("#!/bin/bash\n")

    out = stage_verify(ctx)

    assert out["checks"]["install-remote"] == "passed"
    assert out["checks"]["install-script"] == "passed"
    assert fake_commands.ran(
        "uv run --isolated --no-project --with "
        "git+https://github.com/mlflow/mlflow.git@refs/pull/7/merge"
        "#subdirectory=libs/skinny python -I -c"
    )
    assert fake_commands.ran("bash dev/install-skinny.sh pull/7/merge")


def test_disabled_checks_are_skipped(verify_ctx, fake_commands) -> None:
    cfg = PipelineConfig(
        verify=VerifySpec(metadata_lint=False, install_checks=False, remote_install=False)
    )
    out = stage_verify(verify_ctx(config=cfg))
    assert out["checks"]["metadata-lint"] == "skipped"
    assert out["checks"]["install-sdist"] == "skipped"
    assert out["checks"]["install-remote"] == "skipped"
    assert fake_commands.calls == []


def test_determinism_check_rebuilds_and_restores(
    verify_ctx, fake_commands, make_sdist, make_wheel
) -> None:
    cfg = PipelineConfig(
        verify=VerifySpec(check_determinism=True, install_checks=False, remote_install=False)
    )
    ctx = verify_ctx(config=cfg)
    original = Path(ctx.outputs["dist"]["wheel-path"]).read_bytes()

    def _rebuild(argv, cwd):
        out = cwd / "dist"
        make_sdist(out / "mlflow-3.1.0.tar.gz", FILES, top="mlflow-3.1.0")
        make_wheel(
            out / "mlflow-3.1.0-py3-none-any.whl", FILES, date_time=(2030, 1, 1, 0, 0, 0)
        )

    fake_commands.on("dev/build.py", effect=_rebuild)
    out = stage_verify(ctx)

    assert out["checks"]["determinism"] == "passed"
    assert Path(ctx.outputs["dist"]["wheel-path"]).read_bytes() == original
    assert (ctx.job.layout.rebuild_dir("dev") / "second").is_dir()


def test_determinism_mismatch_is_integrity_error(
    verify_ctx, fake_commands, make_sdist, make_wheel
) -> None:
    cfg = PipelineConfig(
        verify=VerifySpec(check_determinism=True, install_checks=False, remote_install=False)
    )
    ctx = verify_ctx(config=cfg)

    def _rebuild(argv, cwd):
        out = cwd / "dist"
        make_sdist(out / "mlflow-3.1.0.tar.gz", FILES, top="mlflow-3.1.0")
        make_wheel(out / "mlflow-3.1.0-py3-none-any.whl", {"mlflow/__init__.py": b"changed"})

    fake_commands.on("dev/build.py", effect=_rebuild)
    with pytest.raises(IntegrityError, match="wheel differs"):
        stage_verify(ctx)
