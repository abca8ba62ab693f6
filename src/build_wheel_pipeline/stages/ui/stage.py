from __future__ import annotations

from typing import Any

from build_wheel_pipeline.core import BuildError, CommandError
from build_wheel_pipeline.pipeline.context import RunContext
from build_wheel_pipeline.pipeline.events import EventType


def stage_ui(ctx: RunContext) -> dict[str, Any]:
    """
    Compile the UI bundle inside the checkout so the packaging step ships it.
    """
    spec = ctx.job.config.ui
    if not spec.enabled:
        return {"skipped": True, "_warnings": ["UI build disabled by configuration"]}

    workdir = ctx.job.checkout_dir / spec.working_dir
    if not workdir.is_dir():
        raise BuildError(f"UI working directory not found: {workdir}")

    durations: list[int] = []
    for cmd in spec.commands:
        try:
            res = ctx.commands.run(cmd, cwd=workdir)
        except CommandError as e:
            raise BuildError(f"UI build failed: {e}") from e
        durations.append(res.duration_ms)

    ctx.emit(
        EventType.UI_FINISH,
        stage="ui",
        working_dir=str(workdir),
        commands=[" ".join(c) for c in spec.commands],
    )
    return {
        "skipped": False,
        "working_dir": str(workdir),
        "_metrics": {"commands": len(spec.commands), "duration_ms": sum(durations)},
    }
