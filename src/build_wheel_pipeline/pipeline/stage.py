from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

from build_wheel_pipeline.core import (
    PipelineCancelled,
    StageError,
    monotonic_ms,
    utc_now_iso,
)

from .context import RunContext
from .events import EventType
from .state import VariantState
from .types import ArtifactRef


def format_duration_ms(ms: int) -> str:
    """Return a short human-readable duration string."""
    if ms < 1000:
        return f"{ms} ms"
    return f"{ms / 1000:.2f} s"


StageFn = Callable[[RunContext], dict[str, Any] | None]


@dataclass(slots=True)
class FunctionStage:
    """
    Adapter that turns a plain function into a Stage.
    """

    stage_id: str
    fn: StageFn
    advances_to: VariantState | None = None

    def run(self, ctx: RunContext) -> dict[str, Any] | None:
        return self.fn(ctx)


@dataclass(slots=True)
class StageResult:
    stage: str
    status: str  # "success" | "failed" | "cancelled"
    started_at_utc: str
    finished_at_utc: str
    duration_ms: int

    outputs: dict[str, Any] = field(default_factory=dict)
    metrics: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    artifacts: list[ArtifactRef] = field(default_factory=list)
    error: Optional[StageError] = None


class Stage(Protocol):
    stage_id: str
    advances_to: VariantState | None

    def run(self, ctx: RunContext) -> dict[str, Any] | None: ...


def _split_reserved(out: dict[str, Any]) -> tuple[list[str], dict[str, Any], list[ArtifactRef]]:
    warnings: list[str] = []
    metrics: dict[str, Any] = {}
    artifacts: list[ArtifactRef] = []

    w = out.pop("_warnings", None)
    if isinstance(w, list):
        warnings.extend(str(x) for x in w)
    m = out.pop("_metrics", None)
    if isinstance(m, dict):
        metrics.update(m)
    a = out.pop("_artifacts", None)
    if isinstance(a, list):
        artifacts.extend(a)
    return warnings, metrics, artifacts


def run_stage(
    *,
    ctx: RunContext,
    stage: Stage,
    index: int | None = None,
    total: int | None = None,
) -> StageResult:
    stage_id = stage.stage_id
    log = ctx.stage_logger(stage_id)

    t0 = monotonic_ms()
    started_at = utc_now_iso()
    position = f"{index}/{total}" if index is not None and total is not None else None

    ctx.emit(EventType.STAGE_START, stage=stage_id)
    log.info("Stage starting", position=position, started_at=started_at)

    try:
        ctx.token.raise_if_cancelled()
        ctx.deadline.raise_if_expired()

        out = stage.run(ctx) or {}
        if not isinstance(out, dict):
            raise TypeError(
                f"Stage {stage_id} returned {type(out).__name__}, expected dict or None"
            )
        out = dict(out)
        warnings, metrics, artifacts = _split_reserved(out)

        ctx.outputs[stage_id] = dict(out)
        if stage.advances_to is not None:
            ctx.machine.advance(stage.advances_to)

        for w in warnings:
            ctx.emit(EventType.STAGE_WARN, stage=stage_id, message=w)
            log.warning(w)

        if metrics:
            ctx.emit(EventType.STAGE_METRICS, stage=stage_id, metrics=metrics)

        duration = monotonic_ms() - t0
        ctx.emit(EventType.STAGE_SUCCESS, stage=stage_id, duration_ms=duration)
        log.info(
            "Stage succeeded",
            status="success",
            position=position,
            duration_ms=duration,
            duration=format_duration_ms(duration),
            warnings=len(warnings),
            outputs=sorted(out.keys()),
            state=ctx.state.value,
        )

        return StageResult(
            stage=stage_id,
            status="success",
            started_at_utc=started_at,
            finished_at_utc=utc_now_iso(),
            duration_ms=duration,
            outputs=out,
            metrics=metrics,
            warnings=warnings,
            artifacts=artifacts,
        )

    except Exception as e:
        tb = traceback.format_exc()
        duration = monotonic_ms() - t0
        cancelled = isinstance(e, PipelineCancelled)
        status = "cancelled" if cancelled else "failed"

        ctx.machine.fail()
        ctx.emit(
            EventType.RUN_CANCELLED if cancelled else EventType.STAGE_FAILED,
            stage=stage_id,
            duration_ms=duration,
            exc_type=type(e).__name__,
            message=str(e),
        )
        log.error(
            "Stage cancelled" if cancelled else "Stage failed",
            status=status,
            position=position,
            duration_ms=duration,
            duration=format_duration_ms(duration),
            error=str(e),
        )
        if not cancelled:
            log.exception("Stage exception")

        return StageResult(
            stage=stage_id,
            status=status,
            started_at_utc=started_at,
            finished_at_utc=utc_now_iso(),
            duration_ms=duration,
            error=StageError(exc_type=type(e).__name__, message=str(e), traceback=tb),
        )
