from __future__ import annotations

import re
from dataclasses import dataclass

from build_wheel_pipeline.registry.models import TriggerPolicySpec

from .models import EventName, Trigger


@dataclass(frozen=True, slots=True)
class TriggerDecision:
    build: bool
    publish: bool
    reason: str


def branch_matches(branch: str, patterns: list[str]) -> bool:
    return any(re.fullmatch(p, branch) for p in patterns)


def evaluate_trigger(trigger: Trigger, policy: TriggerPolicySpec) -> TriggerDecision:
    """
    Decide whether a trigger builds, and whether it may publish.

    Only manual dispatches publish; push and pull_request runs end discarded.
    """
    if trigger.event is EventName.push:
        branch = trigger.branch
        if branch is None or not branch_matches(branch, policy.push_branches):
            return TriggerDecision(
                build=False,
                publish=False,
                reason=f"push to {trigger.ref} does not match {policy.push_branches}",
            )
        return TriggerDecision(build=True, publish=False, reason=f"push to {branch}")

    if trigger.event is EventName.pull_request:
        if trigger.draft:
            return TriggerDecision(
                build=False, publish=False, reason="draft pull request"
            )
        action = trigger.pr_action
        if action is not None and action not in policy.pull_request_actions:
            return TriggerDecision(
                build=False,
                publish=False,
                reason=f"pull_request action {action!r} not in {policy.pull_request_actions}",
            )
        return TriggerDecision(
            build=True, publish=False, reason=f"pull request #{trigger.pr_number}"
        )

    return TriggerDecision(
        build=True,
        publish=True,
        reason=f"manual dispatch of {trigger.input_ref or 'default ref'}",
    )


def concurrency_key(trigger: Trigger, policy: TriggerPolicySpec) -> str:
    """workflow-event-ref, the identity shared by superseding runs."""
    return f"{policy.workflow}-{trigger.event.value}-{trigger.ref}"
