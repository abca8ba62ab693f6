from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EventName(StrEnum):
    push = "push"
    pull_request = "pull_request"
    workflow_dispatch = "workflow_dispatch"


class Trigger(BaseModel):
    """
    What started a pipeline run.

    `ref` is the fully-qualified ref of the triggering context (refs/heads/master,
    refs/pull/123/merge). `input_ref` is the workflow_dispatch input naming the
    branch, tag or SHA to build.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    event: EventName
    ref: str = Field(default="refs/heads/master", min_length=1)
    input_ref: Optional[str] = None
    repository: Optional[str] = None
    pr_number: Optional[int] = Field(default=None, ge=1)
    pr_action: Optional[str] = None
    draft: bool = False

    @model_validator(mode="after")
    def _validate(self) -> "Trigger":
        if self.event is EventName.pull_request and self.pr_number is None:
            raise ValueError("pull_request triggers require pr_number")
        return self

    @property
    def is_manual(self) -> bool:
        return self.event is EventName.workflow_dispatch

    @property
    def is_pull_request(self) -> bool:
        return self.event is EventName.pull_request

    @property
    def branch(self) -> str | None:
        prefix = "refs/heads/"
        if self.ref.startswith(prefix):
            return self.ref[len(prefix) :]
        return None

    def checkout_ref(self, trunk: str) -> str:
        """The revision the checkout stage should resolve."""
        if self.is_manual:
            return self.input_ref or trunk
        if self.is_pull_request:
            return f"pull/{self.pr_number}/merge"
        return self.branch or self.ref

    def pr_merge_ref(self) -> str | None:
        if not self.is_pull_request:
            return None
        return f"pull/{self.pr_number}/merge"
