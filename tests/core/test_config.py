from __future__ import annotations

from pathlib import Path

import pytest

from build_wheel_pipeline.core import Settings


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    for name in ("GITHUB_OUTPUT", "GITHUB_STEP_SUMMARY"):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    s = Settings()
    assert s.job_timeout_minutes == 20
    assert s.job_timeout_s == 1200.0
    assert s.log_format == "console"
    assert s.github_output is None


def test_env_prefix_and_ci_aliases(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BUILD_WHEEL_JOB_TIMEOUT_MINUTES", "5")
    monkeypatch.setenv("BUILD_WHEEL_ARTIFACT_STORE_TOKEN", "s3cret")
    monkeypatch.setenv("GITHUB_OUTPUT", "/tmp/out")
    monkeypatch.setenv("GITHUB_STEP_SUMMARY", "/tmp/summary")

    s = Settings()
    assert s.job_timeout_s == 300.0
    assert s.artifact_store_token is not None
    assert s.artifact_store_token.get_secret_value() == "s3cret"
    assert "s3cret" not in repr(s)
    assert s.github_output == Path("/tmp/out")
    assert s.step_summary == Path("/tmp/summary")


def test_roots_resolve_against_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BUILD_WHEEL_WORK_ROOT", "ci/_work")

    s = Settings()
    assert s.work_root == tmp_path / "ci" / "_work"
    assert s.run_root == tmp_path / "_runs"
    assert s.artifact_root.is_absolute()
