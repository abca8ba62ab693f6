from __future__ import annotations

from build_wheel_pipeline.pipeline.stage import FunctionStage, Stage
from build_wheel_pipeline.pipeline.state import VariantState

from .checkout import stage_checkout
from .dist import stage_dist
from .publish import stage_publish
from .ui import stage_ui
from .verify import stage_verify


def build_stages(*, verify: bool = True) -> list[Stage]:
    """Checkout through verification, in order."""
    stages: list[Stage] = [
        FunctionStage("checkout", stage_checkout, VariantState.CHECKED_OUT),
        FunctionStage("ui", stage_ui, VariantState.UI_BUILT),
        FunctionStage("dist", stage_dist, VariantState.PACKAGED),
    ]
    if verify:
        stages.append(FunctionStage("verify", stage_verify, VariantState.VERIFIED))
    return stages


def publish_stages() -> list[Stage]:
    return [FunctionStage("publish", stage_publish, VariantState.PUBLISHED)]


__all__ = [
    "build_stages",
    "publish_stages",
    "stage_checkout",
    "stage_dist",
    "stage_publish",
    "stage_ui",
    "stage_verify",
]
