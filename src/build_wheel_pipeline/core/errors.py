from __future__ import annotations

import traceback
from dataclasses import dataclass


class PipelineError(RuntimeError):
    """Base error"""


@dataclass(frozen=True, slots=True)
class StageError:
    """
    A normalized error record for stage failures.
    """

    exc_type: str
    message: str
    traceback: str


def stage_error_from_exc(exc: BaseException) -> StageError:
    return StageError(
        exc_type=type(exc).__name__,
        message=str(exc),
        traceback=traceback.format_exc(),
    )


class ConfigError(PipelineError):
    """Pipeline configuration is missing or invalid"""


class ResolutionError(PipelineError):
    """
    Requested revision, branch or source location cannot be resolved or checked out.
    """


class BuildError(PipelineError):
    """UI or distribution build failed"""


class IntegrityError(PipelineError):
    """
    Source archive and binary package disagree (manifest drift, non-deterministic output)
    """


class QualityGateError(PipelineError):
    """Strict package metadata lint failed"""


class InstallError(PipelineError):
    """An install-and-import check failed"""


class PublicationError(PipelineError):
    """Publish-stage error"""


class InternalError(PipelineError):
    """Bugs or invariant violation in our code"""


class JobTimeoutError(PipelineError):
    """A job exceeded its wall-clock ceiling"""


class PipelineCancelled(PipelineError):
    """A newer run with the same trigger key superseded this one"""


class CommandError(PipelineError):
    """
    A subprocess exited non-zero. Stages wrap this into their own error class.
    """

    def __init__(self, *, cmd: list[str], returncode: int, output_tail: str) -> None:
        msg = f"Command failed (exit {returncode}): {' '.join(cmd)}"
        if output_tail:
            msg += f"\n{output_tail}"
        super().__init__(msg)
        self.cmd = list(cmd)
        self.returncode = returncode
        self.output_tail = output_tail
