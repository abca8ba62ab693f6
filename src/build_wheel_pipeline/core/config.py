from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogFormat = Literal["json", "console"]

DEFAULT_JOB_TIMEOUT_MINUTES = 20
DEFAULT_RETENTION_DAYS = 7


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BUILD_WHEEL_",
        env_file=".env",
        extra="ignore",
    )

    work_root: Path = Field(default=Path("_work"))
    run_root: Path = Field(default=Path("_runs"))
    artifact_root: Path = Field(default=Path("_artifacts"))
    config_path: Optional[Path] = Field(default=None)

    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default="console")

    job_timeout_minutes: float = Field(default=DEFAULT_JOB_TIMEOUT_MINUTES, gt=0)

    artifact_store_url: Optional[str] = Field(default=None)
    artifact_store_token: Optional[SecretStr] = Field(default=None)

    # Accept the CI runner's names as well as our own prefix.
    github_output: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("BUILD_WHEEL_GITHUB_OUTPUT", "GITHUB_OUTPUT"),
    )
    step_summary: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices(
            "BUILD_WHEEL_STEP_SUMMARY", "GITHUB_STEP_SUMMARY"
        ),
    )

    # Subprocess cwd is inside the workspace; roots must be absolute.
    @field_validator("work_root", "run_root", "artifact_root", "config_path")
    @classmethod
    def _absolute(cls, v: Optional[Path]) -> Optional[Path]:
        return None if v is None else Path(v).expanduser().resolve()

    @property
    def job_timeout_s(self) -> float:
        return float(self.job_timeout_minutes) * 60.0


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    return Settings()
