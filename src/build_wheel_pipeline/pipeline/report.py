from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from build_wheel_pipeline.core import atomic_write_json

from .stage import StageResult


def status_of(stage_results: list[StageResult]) -> str:
    if any(s.status == "cancelled" for s in stage_results):
        return "cancelled"
    if any(s.status == "failed" for s in stage_results):
        return "failed"
    return "success"


def exit_code_for(status: str) -> int:
    return {"success": 0, "skipped": 0, "cancelled": 130}.get(status, 1)


@dataclass(slots=True)
class RunReport:
    run_id: str
    variant: str
    started_at_utc: str
    finished_at_utc: str
    status: str  # "success" | "failed" | "cancelled"
    final_state: str
    state_history: list[str]
    duration_ms: int

    stages: list[StageResult] = field(default_factory=list)
    outputs: dict[str, dict[str, Any]] = field(default_factory=dict)
    events_jsonl: Optional[str] = None
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def write_json(self, path: Path) -> None:
        atomic_write_json(path, self.to_dict())


@dataclass(slots=True)
class VariantSummary:
    variant: str
    status: str
    final_state: str
    exit_code: int
    report_json: Optional[str]
    wheel_name: Optional[str] = None
    artifact_url: Optional[str] = None
    error: Optional[str] = None


@dataclass(slots=True)
class MatrixReport:
    run_id: str
    trigger: dict[str, Any]
    concurrency_key: str
    decision: str
    status: str  # "success" | "failed" | "cancelled" | "skipped"
    started_at_utc: str
    finished_at_utc: str
    duration_ms: int
    published: bool
    variants: list[VariantSummary] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return exit_code_for(self.status)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def write_json(self, path: Path) -> None:
        atomic_write_json(path, self.to_dict())
