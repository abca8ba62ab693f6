from __future__ import annotations

import pytest

from build_wheel_pipeline.core import InternalError
from build_wheel_pipeline.pipeline.state import VariantState, VariantStateMachine

HAPPY = [
    VariantState.CHECKED_OUT,
    VariantState.UI_BUILT,
    VariantState.PACKAGED,
    VariantState.VERIFIED,
]


def test_happy_path_to_published() -> None:
    seen: list[tuple[str, str]] = []
    m = VariantStateMachine(on_transition=lambda a, b: seen.append((a.value, b.value)))
    for s in HAPPY:
        m.advance(s)
    m.advance(VariantState.PUBLISHED)

    assert m.terminal
    assert m.history[0] is VariantState.PENDING
    assert m.history[-1] is VariantState.PUBLISHED
    assert seen[0] == ("pending", "checked-out")
    assert len(seen) == 5


def test_verified_may_be_discarded() -> None:
    m = VariantStateMachine()
    for s in HAPPY:
        m.advance(s)
    m.advance(VariantState.DISCARDED)
    assert m.state is VariantState.DISCARDED


@pytest.mark.parametrize(
    "target",
    [VariantState.UI_BUILT, VariantState.VERIFIED, VariantState.PUBLISHED],
)
def test_skipping_a_state_is_illegal(target: VariantState) -> None:
    m = VariantStateMachine()
    with pytest.raises(InternalError):
        m.advance(target)


def test_packaged_cannot_be_published_or_discarded() -> None:
    m = VariantStateMachine()
    for s in HAPPY[:3]:
        m.advance(s)
    assert not m.can_advance(VariantState.PUBLISHED)
    assert not m.can_advance(VariantState.DISCARDED)


def test_fail_from_any_non_terminal_state_only() -> None:
    m = VariantStateMachine()
    m.advance(VariantState.CHECKED_OUT)
    m.fail()
    assert m.state is VariantState.FAILED

    m.fail()
    assert m.history.count(VariantState.FAILED) == 1
    with pytest.raises(InternalError):
        m.advance(VariantState.UI_BUILT)
