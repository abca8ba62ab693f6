from .stage import stage_checkout

__all__ = ["stage_checkout"]
