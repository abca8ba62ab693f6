from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class WorkspaceLayout:
    """
    Canonical path layout for one pipeline run:

      {work_root}/{run_id}/{variant}/src/        checkout
      {work_root}/{run_id}/{variant}/venv/       clean install environment
      {work_root}/{run_id}/{variant}/rebuild/    determinism rebuild output
      {run_root}/{run_id}/{variant}/             events, reports, listings
      {run_root}/{run_id}/matrix_report.json
    """

    work_root: Path
    run_root: Path
    run_id: str

    def __post_init__(self) -> None:
        # Commands run with cwd inside work_root; paths handed to them must be absolute.
        object.__setattr__(self, "work_root", Path(self.work_root).resolve())
        object.__setattr__(self, "run_root", Path(self.run_root).resolve())

    def work_dir(self, variant: str) -> Path:
        return self.work_root / self.run_id / variant

    def checkout_dir(self, variant: str) -> Path:
        return self.work_dir(variant) / "src"

    def venv_dir(self, variant: str) -> Path:
        return self.work_dir(variant) / "venv"

    def rebuild_dir(self, variant: str) -> Path:
        return self.work_dir(variant) / "rebuild"

    def run_dir(self) -> Path:
        return self.run_root / self.run_id

    def variant_run_dir(self, variant: str) -> Path:
        return self.run_dir() / variant

    def matrix_report_json(self) -> Path:
        return self.run_dir() / "matrix_report.json"

    def summary_md(self) -> Path:
        return self.run_dir() / "summary.md"

    def verification_report_json(self, variant: str) -> Path:
        return self.variant_run_dir(variant) / "verification_report.json"

    def ensure_dirs(self, variant: str) -> None:
        for p in (self.work_dir(variant), self.variant_run_dir(variant)):
            p.mkdir(parents=True, exist_ok=True)
