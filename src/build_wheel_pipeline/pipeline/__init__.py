from .context import JobSpec, RunContext
from .events import EventSink, EventType
from .matrix import MatrixOptions, MatrixRunner
from .report import MatrixReport, RunReport, VariantSummary, exit_code_for
from .runner import PipelineRunner, RunnerConfig
from .stage import FunctionStage, Stage, StageResult, run_stage
from .state import VariantState, VariantStateMachine

__all__ = [
    "EventSink",
    "EventType",
    "FunctionStage",
    "JobSpec",
    "MatrixOptions",
    "MatrixReport",
    "MatrixRunner",
    "PipelineRunner",
    "RunContext",
    "RunReport",
    "RunnerConfig",
    "Stage",
    "StageResult",
    "VariantState",
    "VariantStateMachine",
    "VariantSummary",
    "exit_code_for",
    "run_stage",
]
