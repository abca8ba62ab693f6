from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from build_wheel_pipeline.core import (
    CancellationToken,
    CommandRunner,
    Deadline,
    ILogger,
    RunProvenance,
    SubprocessRunner,
    configure_logging,
    get_logger,
    monotonic_ms,
    new_run_id,
    utc_now_iso,
)

from .context import JobSpec, RunContext
from .events import EventSink, EventType, make_event
from .report import RunReport, exit_code_for, status_of
from .stage import (
    FunctionStage,
    Stage,
    StageFn,
    StageResult,
    format_duration_ms,
    run_stage,
)
from .state import VariantState


@dataclass(slots=True)
class RunnerConfig:
    stop_on_failure: bool = True
    job_timeout_s: float | None = None


def default_logger() -> ILogger:
    configure_logging()
    return get_logger("pipeline")


class PipelineRunner:
    """
    Runs one variant job: a strictly sequential list of stages, fail-fast.

    A job is opened once, may execute several stage lists (build stages, then
    publication after the matrix gate), and is closed once to write its report.
    """

    def __init__(
        self,
        *,
        stages: Sequence[Stage],
        cfg: RunnerConfig | None = None,
        logger: ILogger | None = None,
    ) -> None:
        self.stages = list(stages)
        self.cfg = cfg or RunnerConfig()
        self.logger: ILogger = logger or default_logger()

        ids = [s.stage_id for s in self.stages]
        if len(ids) != len(set(ids)):
            dupes = sorted({x for x in ids if ids.count(x) > 1})
            raise ValueError(f"Duplicate stage_id(s): {dupes}")

    @staticmethod
    def fn(stage_id: str, fn: StageFn, advances_to: VariantState | None = None) -> Stage:
        return FunctionStage(stage_id=stage_id, fn=fn, advances_to=advances_to)

    def open(
        self,
        *,
        job: JobSpec,
        run_root: Path,
        run_id: str | None = None,
        token: CancellationToken | None = None,
        commands: CommandRunner | None = None,
        meta: dict[str, Any] | None = None,
    ) -> RunContext:
        rid = run_id or new_run_id()
        run_root = Path(run_root)
        run_root.mkdir(parents=True, exist_ok=True)

        token = token or CancellationToken()
        deadline = Deadline(self.cfg.job_timeout_s)
        sink = EventSink(run_root / "events.jsonl")
        log = self.logger.bind(run_id=rid, variant=job.variant.name)

        ctx = RunContext(
            run_id=rid,
            run_root=run_root,
            logger=log,
            events=sink,
            job=job,
            commands=commands or SubprocessRunner(token=token, deadline=deadline),
            token=token,
            deadline=deadline,
            meta=dict(meta or {}),
        )
        ctx.meta["started_at_utc"] = utc_now_iso()
        ctx.meta["provenance"] = RunProvenance(
            run_id=rid,
            variant=job.variant.name,
            started_at_utc=ctx.meta["started_at_utc"],
            build_python=job.python,
        ).to_dict()
        ctx.meta["_t0_ms"] = monotonic_ms()

        log.info(
            "Job starting",
            stages=[s.stage_id for s in self.stages],
            run_root=str(run_root),
            source=job.source,
            trigger_event=job.trigger.event.value,
        )
        sink.emit(
            make_event(
                event_type=EventType.RUN_START,
                run_id=rid,
                variant=job.variant.name,
                trigger=job.trigger.model_dump(mode="json"),
                package_type=job.variant.package_type,
                provenance=ctx.meta["provenance"],
            )
        )
        return ctx

    def execute(
        self, ctx: RunContext, stages: Sequence[Stage] | None = None
    ) -> list[StageResult]:
        todo = list(self.stages if stages is None else stages)
        results: list[StageResult] = []

        total = len(todo)
        for idx, st in enumerate(todo, start=1):
            res = run_stage(ctx=ctx, stage=st, index=idx, total=total)
            results.append(res)
            ctx.results.append(res)

            if res.status != "success" and self.cfg.stop_on_failure:
                ctx.logger.error("Stopping on first failure", stage=st.stage_id)
                break

        return results

    def close(self, ctx: RunContext) -> tuple[int, Path]:
        """
        Write run_report.json and emit run.finish. Returns (exit_code, report_path).
        """
        started_at = str(ctx.meta.pop("started_at_utc", utc_now_iso()))
        duration = monotonic_ms() - int(ctx.meta.pop("_t0_ms", monotonic_ms()))

        status = status_of(ctx.results)
        report = RunReport(
            run_id=ctx.run_id,
            variant=ctx.variant,
            started_at_utc=started_at,
            finished_at_utc=utc_now_iso(),
            status=status,
            final_state=ctx.state.value,
            state_history=[s.value for s in ctx.machine.history],
            duration_ms=duration,
            stages=list(ctx.results),
            outputs=ctx.outputs,
            events_jsonl=str(ctx.events.path),
            meta=ctx.meta,
        )

        report_json = ctx.run_root / "run_report.json"
        report.write_json(report_json)

        ctx.events.emit(
            make_event(
                event_type=EventType.RUN_FINISH,
                run_id=ctx.run_id,
                variant=ctx.variant,
                status=status,
                final_state=ctx.state.value,
                duration_ms=duration,
                report_json=str(report_json),
            )
        )

        ctx.logger.info(
            "Job complete",
            duration_ms=duration,
            duration=format_duration_ms(duration),
            report=str(report_json),
            status=status,
            final_state=ctx.state.value,
        )
        return exit_code_for(status), report_json

    def run(
        self,
        *,
        job: JobSpec,
        run_root: Path,
        run_id: str | None = None,
        token: CancellationToken | None = None,
        commands: CommandRunner | None = None,
        meta: dict[str, Any] | None = None,
    ) -> tuple[int, Path]:
        ctx = self.open(
            job=job,
            run_root=run_root,
            run_id=run_id,
            token=token,
            commands=commands,
            meta=meta,
        )
        self.execute(ctx)
        return self.close(ctx)
