from __future__ import annotations

from pathlib import Path
from typing import TypedDict

from build_wheel_pipeline.pipeline.context import RunContext
from build_wheel_pipeline.stages.dist.build import DistOutputs

from .runner import VerificationRun


class VerifyStageOutput(TypedDict):
    report: str
    checks: dict[str, str]
    versions: dict[str, str]
    _warnings: list[str]
    _metrics: dict[str, int]


def stage_verify(ctx: RunContext) -> VerifyStageOutput:
    dist = DistOutputs(
        sdist_path=Path(ctx.output("dist", "sdist-path")),
        wheel_path=Path(ctx.output("dist", "wheel-path")),
    )
    report_path = ctx.job.layout.verification_report_json(ctx.variant)

    run = VerificationRun(ctx, dist)
    results = run.run(report_path)

    return {
        "report": str(report_path),
        "checks": {r.name: r.status.value for r in results},
        "versions": dict(run.versions),
        "_warnings": list(run.warnings),
        "_metrics": {
            "checks": len(results),
            "skipped": sum(1 for r in results if r.status == "skipped"),
        },
    }
