from __future__ import annotations

import fnmatch
from pathlib import Path
from typing import TypedDict

from build_wheel_pipeline.core import PublicationError
from build_wheel_pipeline.pipeline.context import RunContext
from build_wheel_pipeline.pipeline.events import EventType

from .summary import append_summary


class PublishStageOutput(TypedDict):
    artifact_name: str
    artifact_url: str
    expires_at_utc: str
    summary: str
    _metrics: dict[str, int]


def select_files(out_dir: Path, *, name: str, pattern: str) -> list[Path]:
    """Files in out_dir named `name` that also match the configured pattern."""
    if not out_dir.is_dir():
        return []
    return sorted(
        p
        for p in out_dir.iterdir()
        if p.is_file() and p.name == name and fnmatch.fnmatchcase(p.name, pattern)
    )


def stage_publish(ctx: RunContext) -> PublishStageOutput:
    job = ctx.job
    spec = job.config.publish
    if not job.trigger.is_manual:
        raise PublicationError(
            f"Publication requires a manual trigger, got {job.trigger.event.value}"
        )
    if job.store is None:
        raise PublicationError("No artifact store configured")

    wheel_name = str(ctx.output("dist", "wheel-name"))
    files = select_files(job.dist_dir, name=wheel_name, pattern=spec.name_pattern)
    if not files:
        raise PublicationError(
            f"No files found matching {wheel_name!r} ({spec.name_pattern}) in {job.dist_dir}"
        )

    ctx.emit(
        EventType.PUBLISH_START,
        stage="publish",
        name=wheel_name,
        retention_days=spec.retention_days,
    )
    art = job.store.upload(files[0], name=wheel_name, retention_days=spec.retention_days)

    summary = job.step_summary or job.layout.summary_md()
    append_summary(summary, art.url, retention_days=spec.retention_days)

    ctx.emit(
        EventType.PUBLISH_FINISH,
        stage="publish",
        name=art.name,
        url=art.url,
        expires_at_utc=art.expires_at_utc,
    )
    return {
        "artifact_name": art.name,
        "artifact_url": art.url,
        "expires_at_utc": art.expires_at_utc,
        "summary": str(summary),
        "_metrics": {"bytes": art.bytes},
    }
