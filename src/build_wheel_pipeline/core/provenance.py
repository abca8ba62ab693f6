from __future__ import annotations

import os
import platform
import sys
import uuid
from dataclasses import asdict, dataclass, field


def new_run_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class RunProvenance:
    """
    Where and with what a variant job was built; recorded in run_report.json.
    """

    run_id: str
    variant: str
    started_at_utc: str
    build_python: str = sys.executable
    hostname: str = field(default_factory=platform.node)
    pid: int = field(default_factory=os.getpid)
    python_version: str = field(default_factory=platform.python_version)
    platform: str = field(default_factory=platform.platform)

    def to_dict(self) -> dict[str, object]:
        return asdict(self)
