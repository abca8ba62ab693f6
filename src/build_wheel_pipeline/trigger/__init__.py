from .github import trigger_from_github_env
from .models import EventName, Trigger
from .policy import TriggerDecision, branch_matches, concurrency_key, evaluate_trigger

__all__ = [
    "EventName",
    "Trigger",
    "TriggerDecision",
    "branch_matches",
    "concurrency_key",
    "evaluate_trigger",
    "trigger_from_github_env",
]
