from __future__ import annotations

from enum import StrEnum
from typing import Callable, Final

from build_wheel_pipeline.core import InternalError


class VariantState(StrEnum):
    PENDING = "pending"
    CHECKED_OUT = "checked-out"
    UI_BUILT = "ui-built"
    PACKAGED = "packaged"
    VERIFIED = "verified"
    PUBLISHED = "published"
    DISCARDED = "discarded"
    FAILED = "failed"


TERMINAL: Final[frozenset[VariantState]] = frozenset(
    {VariantState.PUBLISHED, VariantState.DISCARDED, VariantState.FAILED}
)

_NEXT: Final[dict[VariantState, frozenset[VariantState]]] = {
    VariantState.PENDING: frozenset({VariantState.CHECKED_OUT}),
    VariantState.CHECKED_OUT: frozenset({VariantState.UI_BUILT}),
    VariantState.UI_BUILT: frozenset({VariantState.PACKAGED}),
    VariantState.PACKAGED: frozenset({VariantState.VERIFIED}),
    VariantState.VERIFIED: frozenset(
        {VariantState.PUBLISHED, VariantState.DISCARDED}
    ),
}

TransitionHook = Callable[[VariantState, VariantState], None]


class VariantStateMachine:
    """
    checked-out -> ui-built -> packaged -> verified -> {published | discarded}

    Any non-terminal state may move to failed. Nothing skips a state.
    """

    def __init__(self, *, on_transition: TransitionHook | None = None) -> None:
        self._state = VariantState.PENDING
        self._history: list[VariantState] = [VariantState.PENDING]
        self._on_transition = on_transition

    @property
    def state(self) -> VariantState:
        return self._state

    @property
    def history(self) -> list[VariantState]:
        return list(self._history)

    @property
    def terminal(self) -> bool:
        return self._state in TERMINAL

    def can_advance(self, to: VariantState) -> bool:
        if to is VariantState.FAILED:
            return not self.terminal
        return to in _NEXT.get(self._state, frozenset())

    def advance(self, to: VariantState) -> None:
        if not self.can_advance(to):
            raise InternalError(
                f"Illegal variant state transition: {self._state.value} -> {to.value}"
            )
        prev = self._state
        self._state = to
        self._history.append(to)
        if self._on_transition is not None:
            self._on_transition(prev, to)

    def fail(self) -> None:
        if not self.terminal:
            self.advance(VariantState.FAILED)
