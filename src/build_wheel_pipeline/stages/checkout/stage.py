from __future__ import annotations

from typing import TypedDict

from build_wheel_pipeline.pipeline.context import RunContext
from build_wheel_pipeline.pipeline.events import EventType

from .git import checkout_detached, clone_source, head_sha, resolve_revision


class CheckoutStageOutput(TypedDict):
    ref: str
    sha: str
    checkout_dir: str


def stage_checkout(ctx: RunContext) -> CheckoutStageOutput:
    job = ctx.job
    ref = job.trigger.checkout_ref(job.config.project.trunk)
    dest = job.checkout_dir

    repo = clone_source(ctx.commands, source=job.source, dest=dest)
    sha = resolve_revision(ctx.commands, repo=repo, ref=ref)
    checkout_detached(ctx.commands, repo=repo, sha=sha)
    sha = head_sha(ctx.commands, repo=repo)

    ctx.emit(
        EventType.CHECKOUT_FINISH,
        stage="checkout",
        ref=ref,
        sha=sha,
        checkout_dir=str(repo),
    )
    return {"ref": ref, "sha": sha, "checkout_dir": str(repo)}
