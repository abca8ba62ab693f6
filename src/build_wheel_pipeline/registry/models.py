from __future__ import annotations

from functools import cached_property
from typing import Annotated, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)

VariantName = Annotated[
    str,
    StringConstraints(min_length=1, max_length=64, pattern=r"^[a-z0-9][a-z0-9_\-]*$"),
]

DEFAULT_BUILD_COMMAND: tuple[str, ...] = (
    "{python}",
    "dev/build.py",
    "--package-type",
    "{package_type}",
)


class VariantSpec(BaseModel):
    """
    One entry of the build matrix. Adding a variant is a config change only.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: VariantName
    package_type: str = Field(..., min_length=1)
    install_subdir: Optional[str] = None
    extra_build_args: list[str] = Field(default_factory=list)
    import_name: Optional[str] = None

    @field_validator("install_subdir")
    @classmethod
    def _normalize_subdir(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip().strip("/") or None


class ProjectSpec(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    import_name: str = Field(default="mlflow", min_length=1)
    repository: Optional[str] = Field(default=None, examples=["mlflow/mlflow"])
    remote_url_template: str = "https://github.com/{repository}.git"
    trunk: str = Field(default="master", min_length=1)

    def remote_url(self) -> str | None:
        if not self.repository:
            return None
        return self.remote_url_template.format(repository=self.repository)


class TriggerPolicySpec(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    workflow: str = "build-wheel"
    push_branches: list[str] = Field(
        default_factory=lambda: ["master", r"branch-[0-9]+\.[0-9]+"]
    )
    pull_request_actions: list[str] = Field(
        default_factory=lambda: [
            "opened",
            "synchronize",
            "reopened",
            "ready_for_review",
        ]
    )


class UISpec(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    working_dir: str = "mlflow/server/js"
    commands: list[list[str]] = Field(
        default_factory=lambda: [["yarn"], ["yarn", "build"]]
    )


class DistSpec(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    command: list[str] = Field(default_factory=lambda: list(DEFAULT_BUILD_COMMAND))
    out_dir: str = "dist"
    pass_sha_on_dispatch: bool = True


class VerifySpec(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    parity_fatal: bool = False
    parity_ignore: list[str] = Field(default_factory=list)
    metadata_lint: bool = True
    install_checks: bool = True
    remote_install: bool = True
    pr_install_script: Optional[str] = "dev/install-skinny.sh"
    check_determinism: bool = False


class PublishSpec(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    retention_days: int = Field(default=7, ge=1, le=90)
    name_pattern: str = "*.whl"
    require_all_variants: bool = True


def default_variants() -> list[VariantSpec]:
    return [
        VariantSpec(name="dev", package_type="dev"),
        VariantSpec(name="skinny", package_type="skinny", install_subdir="libs/skinny"),
        VariantSpec(
            name="tracing", package_type="tracing", install_subdir="libs/tracing"
        ),
    ]


class PipelineConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    spec_version: int = Field(default=1, ge=1)
    project: ProjectSpec = Field(default_factory=ProjectSpec)
    triggers: TriggerPolicySpec = Field(default_factory=TriggerPolicySpec)
    ui: UISpec = Field(default_factory=UISpec)
    dist: DistSpec = Field(default_factory=DistSpec)
    verify: VerifySpec = Field(default_factory=VerifySpec)
    publish: PublishSpec = Field(default_factory=PublishSpec)
    variants: list[VariantSpec] = Field(default_factory=default_variants, min_length=1)

    @model_validator(mode="after")
    def _validate(self) -> "PipelineConfig":
        names = [v.name for v in self.variants]
        if len(names) != len(set(names)):
            dupes = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Duplicate variant name(s): {dupes}")
        return self

    @cached_property
    def variant_map(self) -> dict[str, VariantSpec]:
        return {v.name: v for v in self.variants}

    def select_variants(self, names: list[str] | None) -> list[VariantSpec]:
        if not names:
            return list(self.variants)
        unknown = sorted(set(names) - set(self.variant_map))
        if unknown:
            raise KeyError(f"Unknown variant(s): {unknown}")
        wanted = set(names)
        return [v for v in self.variants if v.name in wanted]

    def import_name_for(self, variant: VariantSpec) -> str:
        return variant.import_name or self.project.import_name
