from __future__ import annotations

from typing import Any

from build_wheel_pipeline.pipeline.context import RunContext
from build_wheel_pipeline.pipeline.events import EventType

from .build import build_distributions, list_dist_dir, render_build_command
from .outputs import write_step_outputs


def stage_dist(ctx: RunContext) -> dict[str, Any]:
    job = ctx.job
    spec = job.config.dist
    log = ctx.stage_logger("dist")

    sha = None
    if job.trigger.is_manual and spec.pass_sha_on_dispatch:
        sha = str(ctx.output("checkout", "sha"))

    cmd = render_build_command(
        spec=spec, variant=job.variant, python=job.python, sha=sha
    )
    dist = build_distributions(
        ctx.commands, checkout_dir=job.checkout_dir, cmd=cmd, out_dir=job.dist_dir
    )

    listing = list_dist_dir(job.dist_dir)
    for line in listing:
        log.info("dist file", entry=line)

    values = dist.to_outputs()
    if job.github_output is not None:
        write_step_outputs(job.github_output, values, prefix=job.output_prefix)

    artifacts = [
        ctx.record_artifact(
            stage="dist", path=dist.sdist_path, content_type="application/gzip"
        ),
        ctx.record_artifact(
            stage="dist", path=dist.wheel_path, content_type="application/zip"
        ),
    ]
    ctx.emit(EventType.DIST_OUTPUTS, stage="dist", **values)

    return {
        **values,
        "command": cmd,
        "listing": listing,
        "_artifacts": artifacts,
        "_metrics": {"wheel_bytes": dist.wheel_size},
    }
