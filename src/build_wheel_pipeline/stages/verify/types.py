from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any


class CheckStatus(StrEnum):
    PASSED = "passed"
    WARNED = "warned"
    SKIPPED = "skipped"
    FAILED = "failed"


class CheckName(StrEnum):
    LIST_SDIST = "list-sdist"
    LIST_WHEEL = "list-wheel"
    MANIFEST_PARITY = "manifest-parity"
    METADATA_LINT = "metadata-lint"
    INSTALL_SDIST = "install-sdist"
    INSTALL_WHEEL = "install-wheel"
    INSTALL_REMOTE = "install-remote"
    INSTALL_SCRIPT = "install-script"
    DETERMINISM = "determinism"


CHECK_ORDER: tuple[CheckName, ...] = tuple(CheckName)


@dataclass(frozen=True, slots=True)
class CheckResult:
    name: str
    status: CheckStatus
    message: str = ""
    duration_ms: int = 0
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is not CheckStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        return d


@dataclass(frozen=True, slots=True)
class ParityResult:
    sdist_files: tuple[str, ...]
    wheel_files: tuple[str, ...]
    only_in_sdist: tuple[str, ...]
    only_in_wheel: tuple[str, ...]
    diff: str

    @property
    def matches(self) -> bool:
        return not self.only_in_sdist and not self.only_in_wheel

    def summary(self) -> dict[str, Any]:
        return {
            "matches": self.matches,
            "sdist_files": len(self.sdist_files),
            "wheel_files": len(self.wheel_files),
            "only_in_sdist": list(self.only_in_sdist),
            "only_in_wheel": list(self.only_in_wheel),
        }


@dataclass(frozen=True, slots=True)
class VerificationReport:
    report_version: str
    run_id: str
    variant: str
    generated_at_utc: str
    status: str
    sdist_path: str
    wheel_path: str
    checks: tuple[CheckResult, ...]
    versions: dict[str, str] = field(default_factory=dict)
    config: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "report_version": self.report_version,
            "run_id": self.run_id,
            "variant": self.variant,
            "generated_at_utc": self.generated_at_utc,
            "status": self.status,
            "sdist_path": self.sdist_path,
            "wheel_path": self.wheel_path,
            "checks": [c.to_dict() for c in self.checks],
            "versions": dict(self.versions),
            "config": self.config,
        }
