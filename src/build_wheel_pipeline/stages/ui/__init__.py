from .stage import stage_ui

__all__ = ["stage_ui"]
