from .loader import get_pipeline_config, load_pipeline_config, resolve_config_path
from .models import (
    DistSpec,
    PipelineConfig,
    ProjectSpec,
    PublishSpec,
    TriggerPolicySpec,
    UISpec,
    VariantSpec,
    VerifySpec,
    default_variants,
)

__all__ = [
    "DistSpec",
    "PipelineConfig",
    "ProjectSpec",
    "PublishSpec",
    "TriggerPolicySpec",
    "UISpec",
    "VariantSpec",
    "VerifySpec",
    "default_variants",
    "get_pipeline_config",
    "load_pipeline_config",
    "resolve_config_path",
]
