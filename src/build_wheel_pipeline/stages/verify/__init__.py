from .parity import compare_manifests, normalize_sdist, normalize_wheel
from .runner import VerificationRun
from .stage import stage_verify
from .types import CheckName, CheckResult, CheckStatus, ParityResult

__all__ = [
    "CheckName",
    "CheckResult",
    "CheckStatus",
    "ParityResult",
    "VerificationRun",
    "compare_manifests",
    "normalize_sdist",
    "normalize_wheel",
    "stage_verify",
]
