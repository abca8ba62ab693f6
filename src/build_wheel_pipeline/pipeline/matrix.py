from __future__ import annotations

import sys
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Sequence

from build_wheel_pipeline.core import (
    CancellationToken,
    CommandRunner,
    ILogger,
    WorkspaceLayout,
    bind,
    clear_bindings,
    monotonic_ms,
    new_run_id,
    remove_tree,
    utc_now_iso,
)
from build_wheel_pipeline.registry.models import PipelineConfig, VariantSpec
from build_wheel_pipeline.trigger import (
    Trigger,
    TriggerDecision,
    concurrency_key,
    evaluate_trigger,
)

from .context import JobSpec, RunContext
from .report import MatrixReport, VariantSummary, exit_code_for, status_of
from .runner import PipelineRunner, RunnerConfig, default_logger
from .stage import Stage
from .state import VariantState

if TYPE_CHECKING:
    from build_wheel_pipeline.stages.publish.store import ArtifactStore

CommandsFactory = Callable[[VariantSpec], CommandRunner]


@dataclass(slots=True)
class MatrixOptions:
    work_root: Path = Path("_work")
    run_root: Path = Path("_runs")
    job_timeout_s: float | None = 20 * 60.0
    keep_workspace: bool = False
    max_workers: int | None = None
    python: str = sys.executable
    github_output: Path | None = None
    step_summary: Path | None = None


@dataclass(slots=True)
class _Job:
    variant: str
    runner: PipelineRunner | None = None
    ctx: RunContext | None = None
    error: str | None = None
    exit_code: int = 0
    report_json: Path | None = None
    notes: list[str] = field(default_factory=list)


class MatrixRunner:
    """
    Fans a trigger out into one job per variant, then applies the publish gate.

    Jobs run in parallel and never cancel each other. Publication happens only
    after every job has finished building and verifying.
    """

    def __init__(
        self,
        *,
        config: PipelineConfig,
        build_stages: Sequence[Stage],
        publish_stages: Sequence[Stage] = (),
        options: MatrixOptions | None = None,
        store: "ArtifactStore | None" = None,
        logger: ILogger | None = None,
        commands_factory: CommandsFactory | None = None,
    ) -> None:
        self.config = config
        self.build_stages = list(build_stages)
        self.publish_stages = list(publish_stages)
        self.options = options or MatrixOptions()
        self.store = store
        self.logger: ILogger = logger or default_logger()
        self.commands_factory = commands_factory

    def decide(self, trigger: Trigger) -> tuple[TriggerDecision, str]:
        policy = self.config.triggers
        return evaluate_trigger(trigger, policy), concurrency_key(trigger, policy)

    def run(
        self,
        *,
        trigger: Trigger,
        source: str,
        variants: list[str] | None = None,
        token: CancellationToken | None = None,
        run_id: str | None = None,
    ) -> MatrixReport:
        rid = run_id or new_run_id()
        started_at = utc_now_iso()
        t0 = monotonic_ms()

        decision, key = self.decide(trigger)
        layout = WorkspaceLayout(
            work_root=Path(self.options.work_root),
            run_root=Path(self.options.run_root),
            run_id=rid,
        )
        log = self.logger.bind(run_id=rid, concurrency_key=key)

        if not decision.build:
            log.info("Trigger skipped", reason=decision.reason)
            return self._finish(
                layout=layout,
                trigger=trigger,
                key=key,
                decision=decision,
                status="skipped",
                started_at=started_at,
                t0=t0,
                jobs=[],
            )

        selected = self.config.select_variants(variants)
        token = token or CancellationToken(key)
        log.info(
            "Matrix starting",
            reason=decision.reason,
            variants=[v.name for v in selected],
            publish=decision.publish,
        )

        workers = self.options.max_workers or len(selected)
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="variant"
        ) as pool:
            futures = {
                v.name: pool.submit(
                    self._build_job,
                    variant=v,
                    trigger=trigger,
                    source=source,
                    layout=layout,
                    token=token,
                    prefix="" if len(selected) == 1 else f"{v.name}-",
                )
                for v in selected
            }
            jobs = [self._collect(name, f, log) for name, f in futures.items()]

        self._gate(jobs, decision=decision, token=token, log=log)

        for job in jobs:
            if job.runner is not None and job.ctx is not None:
                job.exit_code, job.report_json = job.runner.close(job.ctx)
            if not self.options.keep_workspace:
                remove_tree(layout.work_dir(job.variant))

        if token.cancelled:
            status = "cancelled"
        elif any(j.error for j in jobs):
            status = "failed"
        else:
            status = status_of([r for j in jobs if j.ctx for r in j.ctx.results])

        return self._finish(
            layout=layout,
            trigger=trigger,
            key=key,
            decision=decision,
            status=status,
            started_at=started_at,
            t0=t0,
            jobs=jobs,
        )

    def _collect(self, variant: str, future: Future[_Job], log: ILogger) -> _Job:
        """A job that could not even start is recorded as failed; siblings go on."""
        try:
            return future.result()
        except Exception as e:
            log.exception("Job could not start", variant=variant, error=str(e))
            return _Job(variant=variant, exit_code=1, error=f"{type(e).__name__}: {e}")

    def _build_job(
        self,
        *,
        variant: VariantSpec,
        trigger: Trigger,
        source: str,
        layout: WorkspaceLayout,
        token: CancellationToken,
        prefix: str,
    ) -> _Job:
        bind(variant=variant.name)
        try:
            layout.ensure_dirs(variant.name)
            spec = JobSpec(
                variant=variant,
                config=self.config,
                trigger=trigger,
                source=source,
                layout=layout,
                python=self.options.python,
                github_output=self.options.github_output,
                output_prefix=prefix,
                step_summary=self.options.step_summary,
                store=self.store,
            )
            runner = PipelineRunner(
                stages=self.build_stages,
                cfg=RunnerConfig(job_timeout_s=self.options.job_timeout_s),
                logger=self.logger,
            )
            ctx = runner.open(
                job=spec,
                run_root=layout.variant_run_dir(variant.name),
                run_id=layout.run_id,
                token=token,
                commands=(
                    self.commands_factory(variant) if self.commands_factory else None
                ),
            )
            runner.execute(ctx)
            # Waiting at the publish gate for slower siblings is not job time.
            ctx.deadline.pause()
            return _Job(variant=variant.name, runner=runner, ctx=ctx)
        finally:
            clear_bindings()

    def _gate(
        self,
        jobs: list[_Job],
        *,
        decision: TriggerDecision,
        token: CancellationToken,
        log: ILogger,
    ) -> None:
        verified = [
            j for j in jobs if j.ctx is not None and j.ctx.state is VariantState.VERIFIED
        ]
        all_verified = len(verified) == len(jobs)

        allowed = decision.publish and bool(self.publish_stages)
        reason = "publication allowed"
        if not decision.publish:
            reason = "trigger does not publish"
        elif token.cancelled:
            allowed, reason = False, "run cancelled"
        elif self.config.publish.require_all_variants and not all_verified:
            allowed, reason = False, "not every variant verified"
        elif not self.publish_stages:
            reason = "no publish stages"

        log.info(
            "Publish gate",
            allowed=allowed,
            reason=reason,
            verified=[j.ctx.variant for j in verified],
        )

        for job in verified:
            if allowed:
                job.ctx.deadline.resume()
                job.runner.execute(job.ctx, self.publish_stages)
            else:
                job.ctx.machine.advance(VariantState.DISCARDED)
                job.notes.append(reason)

    def _finish(
        self,
        *,
        layout: WorkspaceLayout,
        trigger: Trigger,
        key: str,
        decision: TriggerDecision,
        status: str,
        started_at: str,
        t0: int,
        jobs: list[_Job],
    ) -> MatrixReport:
        summaries = []
        for job in jobs:
            if job.ctx is None:
                summaries.append(
                    VariantSummary(
                        variant=job.variant,
                        status="failed",
                        final_state="failed",
                        exit_code=job.exit_code,
                        report_json=None,
                        error=job.error,
                    )
                )
                continue
            dist = job.ctx.outputs.get("dist", {})
            pub = job.ctx.outputs.get("publish", {})
            summaries.append(
                VariantSummary(
                    variant=job.ctx.variant,
                    status=status_of(job.ctx.results),
                    final_state=job.ctx.state.value,
                    exit_code=job.exit_code,
                    report_json=str(job.report_json) if job.report_json else None,
                    wheel_name=dist.get("wheel-name"),
                    artifact_url=pub.get("artifact_url"),
                )
            )

        report = MatrixReport(
            run_id=layout.run_id,
            trigger=trigger.model_dump(mode="json"),
            concurrency_key=key,
            decision=decision.reason,
            status=status,
            started_at_utc=started_at,
            finished_at_utc=utc_now_iso(),
            duration_ms=monotonic_ms() - t0,
            published=any(
                j.ctx is not None and j.ctx.state is VariantState.PUBLISHED
                for j in jobs
            ),
            variants=summaries,
        )
        report.write_json(layout.matrix_report_json())
        self.logger.info(
            "Matrix complete",
            run_id=layout.run_id,
            status=status,
            exit_code=exit_code_for(status),
            published=report.published,
            report=str(layout.matrix_report_json()),
        )
        return report
