from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from build_wheel_pipeline.core import ConfigError

from .models import EventName, Trigger


def _read_event_payload(path: str | None) -> dict[str, Any]:
    if not path:
        return {}
    p = Path(path)
    if not p.is_file():
        raise ConfigError(f"GITHUB_EVENT_PATH does not point to a file: {p}")
    return json.loads(p.read_text(encoding="utf-8"))


def trigger_from_github_env(environ: Mapping[str, str]) -> Trigger:
    """
    Build a Trigger from the GitHub Actions runner environment.

    Reads GITHUB_EVENT_NAME, GITHUB_REF, GITHUB_REPOSITORY and the JSON event
    payload at GITHUB_EVENT_PATH (pull request number/draft/action and the
    workflow_dispatch `ref` input).
    """
    name = environ.get("GITHUB_EVENT_NAME")
    if not name:
        raise ConfigError("GITHUB_EVENT_NAME is not set")
    try:
        event = EventName(name)
    except ValueError as e:
        raise ConfigError(f"Unsupported GITHUB_EVENT_NAME: {name!r}") from e

    payload = _read_event_payload(environ.get("GITHUB_EVENT_PATH"))
    kw: dict[str, Any] = {
        "event": event,
        "ref": environ.get("GITHUB_REF") or "refs/heads/master",
        "repository": environ.get("GITHUB_REPOSITORY") or None,
    }

    if event is EventName.pull_request:
        pr = payload.get("pull_request") or {}
        number = pr.get("number", payload.get("number"))
        if number is None:
            raise ConfigError("pull_request event payload has no number")
        kw["pr_number"] = int(number)
        kw["draft"] = bool(pr.get("draft", False))
        kw["pr_action"] = payload.get("action")
    elif event is EventName.workflow_dispatch:
        inputs = payload.get("inputs") or {}
        if inputs.get("ref"):
            kw["input_ref"] = str(inputs["ref"])

    return Trigger(**kw)
