from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

from build_wheel_pipeline.core import atomic_write_json, utc_now_iso

from .types import CheckResult, CheckStatus, VerificationReport

REPORT_VERSION = "1.0"


def overall_status(checks: Sequence[CheckResult]) -> str:
    if any(c.status is CheckStatus.FAILED for c in checks):
        return "failed"
    if any(c.status is CheckStatus.WARNED for c in checks):
        return "warned"
    return "passed"


def write_verification_report(
    *,
    out_path: Path,
    run_id: str,
    variant: str,
    sdist_path: Path,
    wheel_path: Path,
    checks: Sequence[CheckResult],
    versions: dict[str, str],
    config: dict[str, Any],
) -> VerificationReport:
    report = VerificationReport(
        report_version=REPORT_VERSION,
        run_id=run_id,
        variant=variant,
        generated_at_utc=utc_now_iso(),
        status=overall_status(checks),
        sdist_path=str(sdist_path),
        wheel_path=str(wheel_path),
        checks=tuple(checks),
        versions=dict(versions),
        config=config,
    )
    atomic_write_json(out_path, report.to_dict())
    return report
