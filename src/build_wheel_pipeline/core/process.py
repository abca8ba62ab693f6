from __future__ import annotations

import os
import subprocess
import threading
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol, Sequence

import structlog

from .cancel import CancellationToken, Deadline
from .errors import CommandError, JobTimeoutError, PipelineCancelled
from .time import monotonic_ms

log = structlog.get_logger(__name__)

_POLL_INTERVAL_S = 0.2
_TAIL_LINES = 40


@dataclass(frozen=True, slots=True)
class CommandResult:
    cmd: tuple[str, ...]
    returncode: int
    output: str
    duration_ms: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def tail(self, lines: int = _TAIL_LINES) -> str:
        return "\n".join(self.output.splitlines()[-lines:])


class CommandRunner(Protocol):
    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
    ) -> CommandResult: ...


def _merged_env(env: Mapping[str, str] | None) -> dict[str, str] | None:
    if env is None:
        return None
    merged = dict(os.environ)
    merged.update(env)
    return merged


class SubprocessRunner:
    """
    Runs commands fail-fast, bounded by the job deadline and the cancellation token.

    stdout and stderr are merged; every line is logged at debug level and the
    whole output is kept on the result.
    """

    def __init__(
        self,
        *,
        token: CancellationToken | None = None,
        deadline: Deadline | None = None,
    ) -> None:
        self.token = token or CancellationToken()
        self.deadline = deadline or Deadline(None)

    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
    ) -> CommandResult:
        argv = [str(c) for c in cmd]
        self.token.raise_if_cancelled()
        self.deadline.raise_if_expired()

        log.info("command.start", cmd=argv, cwd=str(cwd) if cwd else None)
        t0 = monotonic_ms()

        try:
            proc = subprocess.Popen(
                argv,
                cwd=str(cwd) if cwd else None,
                env=_merged_env(env),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
        except (FileNotFoundError, NotADirectoryError) as e:
            # Same code a shell reports for a missing executable.
            raise CommandError(cmd=argv, returncode=127, output_tail=str(e)) from e

        lines: list[str] = []
        recent: deque[str] = deque(maxlen=_TAIL_LINES)

        def _pump() -> None:
            assert proc.stdout is not None
            for raw in proc.stdout:
                line = raw.rstrip("\n")
                lines.append(line)
                recent.append(line)
                log.debug("command.output", line=line)

        reader = threading.Thread(target=_pump, daemon=True)
        reader.start()

        try:
            while True:
                try:
                    proc.wait(timeout=_POLL_INTERVAL_S)
                    break
                except subprocess.TimeoutExpired:
                    pass
                if self.token.cancelled:
                    raise PipelineCancelled(self.token.reason or "cancelled")
                if self.deadline.expired:
                    raise JobTimeoutError(
                        f"Job exceeded its wall-clock ceiling while running: {' '.join(argv)}"
                    )
        except BaseException:
            proc.kill()
            proc.wait()
            raise
        finally:
            reader.join(timeout=5)

        result = CommandResult(
            cmd=tuple(argv),
            returncode=int(proc.returncode),
            output="\n".join(lines),
            duration_ms=monotonic_ms() - t0,
        )
        log.info(
            "command.finish",
            cmd=argv,
            returncode=result.returncode,
            duration_ms=result.duration_ms,
        )

        if check and result.returncode != 0:
            raise CommandError(
                cmd=argv, returncode=result.returncode, output_tail="\n".join(recent)
            )
        return result
