from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from build_wheel_pipeline.core import (
    CancellationToken,
    CommandRunner,
    Deadline,
    ILogger,
    WorkspaceLayout,
    sha256_file,
)
from build_wheel_pipeline.registry.models import PipelineConfig, VariantSpec
from build_wheel_pipeline.trigger.models import Trigger

from .events import EventSink, EventType, make_event
from .state import VariantState, VariantStateMachine
from .types import ArtifactRef

if TYPE_CHECKING:
    from build_wheel_pipeline.stages.publish.store import ArtifactStore


@dataclass(frozen=True, slots=True)
class JobSpec:
    """
    Everything one matrix job needs to know about what it builds.
    """

    variant: VariantSpec
    config: PipelineConfig
    trigger: Trigger
    source: str
    layout: WorkspaceLayout
    python: str = sys.executable
    github_output: Path | None = None
    output_prefix: str = ""
    step_summary: Path | None = None
    store: "ArtifactStore | None" = None

    @property
    def import_name(self) -> str:
        return self.config.import_name_for(self.variant)

    @property
    def checkout_dir(self) -> Path:
        return self.layout.checkout_dir(self.variant.name)

    @property
    def dist_dir(self) -> Path:
        return self.checkout_dir / self.config.dist.out_dir


@dataclass(slots=True)
class RunContext:
    """
    Context shared across stages for a single variant job.
    """

    run_id: str
    run_root: Path
    logger: ILogger
    events: EventSink
    job: JobSpec
    commands: CommandRunner
    token: CancellationToken = field(default_factory=CancellationToken)
    deadline: Deadline = field(default_factory=lambda: Deadline(None))

    # stage_id -> outputs; the job's output namespace
    outputs: dict[str, dict[str, Any]] = field(default_factory=dict)
    meta: dict[str, Any] = field(default_factory=dict)
    results: list[Any] = field(default_factory=list)
    machine: VariantStateMachine = field(init=False)

    def __post_init__(self) -> None:
        self.machine = VariantStateMachine(on_transition=self._record_transition)

    @property
    def variant(self) -> str:
        return self.job.variant.name

    @property
    def state(self) -> VariantState:
        return self.machine.state

    def stage_logger(self, stage: str) -> ILogger:
        return self.logger.bind(stage=stage)

    def emit(self, event: EventType | str, **kw: object) -> None:
        # Keep event chatter at debug level to leave console logs readable.
        event_value = event.value if isinstance(event, EventType) else str(event)
        stage = kw.pop("stage", None)
        self.events.emit(
            make_event(
                event_type=event_value,
                run_id=self.run_id,
                variant=self.variant,
                stage=str(stage) if stage is not None else None,
                **kw,
            )
        )
        self.logger.debug(event_value, event_type=event_value, stage=stage, **kw)

    def output(self, stage: str, key: str) -> Any:
        try:
            return self.outputs[stage][key]
        except KeyError as e:
            raise KeyError(f"No output {key!r} recorded by stage {stage!r}") from e

    def _record_transition(self, prev: VariantState, to: VariantState) -> None:
        self.emit(EventType.STATE_TRANSITION, from_state=prev.value, to_state=to.value)

    def record_artifact(
        self,
        *,
        stage: str,
        path: Path,
        content_type: str | None = None,
        rel_to: Path | None = None,
    ) -> ArtifactRef:
        p = Path(path)
        digest = sha256_file(p)
        rel = str(p if rel_to is None else p.relative_to(rel_to))
        art = ArtifactRef(
            path=rel, bytes=digest.bytes, sha256=digest.sha256, content_type=content_type
        )
        self.emit(
            EventType.ARTIFACT_WRITTEN,
            stage=stage,
            path=art.path,
            bytes=art.bytes,
            sha256=art.sha256,
            content_type=art.content_type,
        )
        return art
