from __future__ import annotations

import json
import threading
from dataclasses import asdict
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from build_wheel_pipeline.core import utc_now_iso

from .types import Event


class EventType(str, Enum):
    RUN_START = "run.start"
    RUN_FINISH = "run.finish"
    RUN_CANCELLED = "run.cancelled"

    STAGE_START = "stage.start"
    STAGE_WARN = "stage.warn"
    STAGE_METRICS = "stage.metrics"
    STAGE_SUCCESS = "stage.success"
    STAGE_FAILED = "stage.failed"

    STATE_TRANSITION = "state.transition"
    ARTIFACT_WRITTEN = "artifact.written"

    CHECKOUT_FINISH = "checkout.finish"
    UI_FINISH = "ui.finish"
    DIST_OUTPUTS = "dist.outputs"

    VERIFY_PLAN = "verify.plan"
    VERIFY_CHECK = "verify.check"

    PUBLISH_START = "publish.start"
    PUBLISH_FINISH = "publish.finish"


class EventSink:
    """Append-only events.jsonl writer, safe to share between threads."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def emit(self, event: Event) -> None:
        line = json.dumps(asdict(event), ensure_ascii=False, default=str)
        with self._lock:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line)
                f.write("\n")

    def read(self) -> list[dict[str, Any]]:
        with self._lock:
            if not self.path.exists():
                return []
            return [
                json.loads(line)
                for line in self.path.read_text(encoding="utf-8").splitlines()
                if line.strip()
            ]


def make_event(
    *,
    event_type: EventType | str,
    run_id: str,
    variant: Optional[str] = None,
    stage: Optional[str] = None,
    **data: Any,
) -> Event:
    type_value = (
        event_type.value if isinstance(event_type, EventType) else str(event_type)
    )
    return Event(
        type=type_value,
        ts_utc=utc_now_iso(),
        run_id=run_id,
        variant=variant,
        stage=stage,
        data=dict(data),
    )
