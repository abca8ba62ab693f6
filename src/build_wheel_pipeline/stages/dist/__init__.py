from .build import DistOutputs, locate_distributions, render_build_command
from .fingerprint import archive_fingerprint
from .stage import stage_dist

__all__ = [
    "DistOutputs",
    "archive_fingerprint",
    "locate_distributions",
    "render_build_command",
    "stage_dist",
]
