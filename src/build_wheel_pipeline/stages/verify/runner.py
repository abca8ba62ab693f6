from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from build_wheel_pipeline.core import (
    InstallError,
    IntegrityError,
    PipelineCancelled,
    monotonic_ms,
)
from build_wheel_pipeline.pipeline.context import RunContext
from build_wheel_pipeline.pipeline.events import EventType
from build_wheel_pipeline.stages.dist.build import DistOutputs

from .determinism import check_rebuild_matches
from .install import (
    create_venv,
    install_and_check,
    install_remote,
    remote_requirement,
    run_install_script,
    venv_python,
)
from .lint import run_metadata_lint
from .listing import sdist_members, wheel_members, write_listing
from .parity import compare_manifests
from .report import write_verification_report
from .types import CHECK_ORDER, CheckName, CheckResult, CheckStatus


@dataclass(slots=True)
class _Outcome:
    status: CheckStatus = CheckStatus.PASSED
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)


CheckFn = Callable[[], _Outcome]


class VerificationRun:
    """
    Runs the ordered checks for one variant's sdist and wheel.

    Checks fail fast: the first raised error is recorded as a failed check, the
    report is written and the error propagates to the stage.
    """

    def __init__(self, ctx: RunContext, dist: DistOutputs) -> None:
        self.ctx = ctx
        self.dist = dist
        self.job = ctx.job
        self.spec = ctx.job.config.verify
        self.log = ctx.stage_logger("verify")

        self.results: list[CheckResult] = []
        self.versions: dict[str, str] = {}
        self.warnings: list[str] = []
        self._members: dict[str, list[str]] = {}

    @property
    def workdir(self) -> Path:
        return self.job.layout.work_dir(self.ctx.variant)

    def plan(self) -> list[tuple[CheckName, CheckFn]]:
        fns: dict[CheckName, CheckFn] = {
            CheckName.LIST_SDIST: self._list_sdist,
            CheckName.LIST_WHEEL: self._list_wheel,
            CheckName.MANIFEST_PARITY: self._parity,
            CheckName.METADATA_LINT: self._lint,
            CheckName.INSTALL_SDIST: self._install_sdist,
            CheckName.INSTALL_WHEEL: self._install_wheel,
            CheckName.INSTALL_REMOTE: self._install_remote,
            CheckName.INSTALL_SCRIPT: self._install_script,
            CheckName.DETERMINISM: self._determinism,
        }
        return [(name, fns[name]) for name in CHECK_ORDER]

    def run(self, report_path: Path) -> list[CheckResult]:
        plan = self.plan()
        self.ctx.emit(
            EventType.VERIFY_PLAN, stage="verify", checks=[n.value for n, _ in plan]
        )
        try:
            for name, fn in plan:
                self.ctx.token.raise_if_cancelled()
                self.ctx.deadline.raise_if_expired()
                self._run_one(name, fn)
        finally:
            write_verification_report(
                out_path=report_path,
                run_id=self.ctx.run_id,
                variant=self.ctx.variant,
                sdist_path=self.dist.sdist_path,
                wheel_path=self.dist.wheel_path,
                checks=self.results,
                versions=self.versions,
                config=self.spec.model_dump(mode="json"),
            )
        return self.results

    def _run_one(self, name: CheckName, fn: CheckFn) -> None:
        t0 = monotonic_ms()
        try:
            outcome = fn()
        except PipelineCancelled:
            raise
        except Exception as e:
            res = CheckResult(
                name=name.value,
                status=CheckStatus.FAILED,
                message=str(e),
                duration_ms=monotonic_ms() - t0,
            )
            self._record(res)
            raise

        res = CheckResult(
            name=name.value,
            status=outcome.status,
            message=outcome.message,
            duration_ms=monotonic_ms() - t0,
            details=outcome.details,
        )
        self._record(res)

    def _record(self, res: CheckResult) -> None:
        self.results.append(res)
        self.ctx.emit(
            EventType.VERIFY_CHECK,
            stage="verify",
            check=res.name,
            status=res.status.value,
            duration_ms=res.duration_ms,
            message=res.message,
        )
        level = self.log.error if res.status is CheckStatus.FAILED else self.log.info
        level("Check finished", check=res.name, status=res.status.value, detail=res.message)

    def _list_sdist(self) -> _Outcome:
        members = sdist_members(self.dist.sdist_path)
        self._members["sdist"] = members
        out = write_listing(self.ctx.run_root / "sdist_files.txt", members)
        return _Outcome(message=f"{len(members)} entries", details={"listing": str(out)})

    def _list_wheel(self) -> _Outcome:
        members = wheel_members(self.dist.wheel_path)
        self._members["wheel"] = members
        out = write_listing(self.ctx.run_root / "wheel_files.txt", members)
        return _Outcome(message=f"{len(members)} entries", details={"listing": str(out)})

    def _parity(self) -> _Outcome:
        result = compare_manifests(
            self._members["sdist"],
            self._members["wheel"],
            ignore=self.spec.parity_ignore,
        )
        if result.matches:
            return _Outcome(message="file sets match", details=result.summary())

        (self.ctx.run_root / "parity.diff").write_text(result.diff, encoding="utf-8")
        msg = (
            f"{len(result.only_in_sdist)} only in sdist, "
            f"{len(result.only_in_wheel)} only in wheel"
        )
        if self.spec.parity_fatal:
            raise IntegrityError(f"Manifest parity mismatch: {msg}\n{result.diff}")

        self.warnings.append(f"Manifest parity mismatch: {msg}")
        for line in result.diff.splitlines():
            self.log.warning("parity", line=line)
        return _Outcome(status=CheckStatus.WARNED, message=msg, details=result.summary())

    def _lint(self) -> _Outcome:
        if not self.spec.metadata_lint:
            return _Outcome(status=CheckStatus.SKIPPED, message="disabled")
        tail = run_metadata_lint(
            self.ctx.commands, python=self.job.python, wheel=self.dist.wheel_path
        )
        return _Outcome(message=tail)

    def _install_sdist(self) -> _Outcome:
        if not self.spec.install_checks:
            return _Outcome(status=CheckStatus.SKIPPED, message="disabled")
        py = create_venv(
            self.ctx.commands,
            python=self.job.python,
            venv_dir=self.job.layout.venv_dir(self.ctx.variant),
        )
        version = install_and_check(
            self.ctx.commands,
            python=py,
            target=self.dist.sdist_path,
            import_name=self.job.import_name,
            cwd=self.workdir,
        )
        self.versions["sdist"] = version
        return _Outcome(message=version)

    def _install_wheel(self) -> _Outcome:
        if not self.spec.install_checks:
            return _Outcome(status=CheckStatus.SKIPPED, message="disabled")
        version = install_and_check(
            self.ctx.commands,
            python=venv_python(self.job.layout.venv_dir(self.ctx.variant)),
            target=self.dist.wheel_path,
            import_name=self.job.import_name,
            cwd=self.workdir,
            force_reinstall=True,
        )
        self.versions["wheel"] = version
        if version != self.versions.get("sdist"):
            raise InstallError(
                f"Version mismatch: sdist={self.versions.get('sdist')!r} wheel={version!r}"
            )
        return _Outcome(message=version)

    def _install_remote(self) -> _Outcome:
        if not self.spec.remote_install:
            return _Outcome(status=CheckStatus.SKIPPED, message="disabled")
        project = self.job.config.project
        repository = self.job.trigger.repository or project.repository
        if not repository:
            self.warnings.append("Remote install skipped: no repository configured")
            return _Outcome(status=CheckStatus.SKIPPED, message="no repository")

        url = project.remote_url_template.format(repository=repository)
        req = remote_requirement(url, self.job.trigger.ref, self.job.variant.install_subdir)
        version = install_remote(
            self.ctx.commands,
            requirement=req,
            import_name=self.job.import_name,
            cwd=self.workdir,
        )
        self.versions["remote"] = version
        return _Outcome(message=version, details={"requirement": req})

    def _install_script(self) -> _Outcome:
        ref = self.job.trigger.pr_merge_ref()
        script = self.spec.pr_install_script
        if ref is None:
            return _Outcome(status=CheckStatus.SKIPPED, message="not a pull request")
        if not script:
            return _Outcome(status=CheckStatus.SKIPPED, message="disabled")
        run_install_script(
            self.ctx.commands, checkout_dir=self.job.checkout_dir, script=script, ref=ref
        )
        return _Outcome(message=f"{script} {ref}")

    def _determinism(self) -> _Outcome:
        if not self.spec.check_determinism:
            return _Outcome(status=CheckStatus.SKIPPED, message="disabled")
        fingerprints = check_rebuild_matches(
            self.ctx.commands,
            first=self.dist,
            checkout_dir=self.job.checkout_dir,
            cmd=self.ctx.output("dist", "command"),
            out_dir=self.job.dist_dir,
            rebuild_dir=self.job.layout.rebuild_dir(self.ctx.variant),
        )
        return _Outcome(message="rebuild matches", details=fingerprints)
