from .cancel import CancellationToken, Deadline
from .config import Settings, load_settings
from .errors import (
    BuildError,
    CommandError,
    ConfigError,
    InstallError,
    IntegrityError,
    InternalError,
    JobTimeoutError,
    PipelineCancelled,
    PipelineError,
    PublicationError,
    QualityGateError,
    ResolutionError,
    StageError,
)
from .fs import (
    append_text,
    atomic_dir_commit,
    atomic_write_text,
    copy_or_hardlink,
    ensure_parent,
    file_size,
    human_size,
    make_tmp_dir_for,
    remove_tree,
    safe_unlink,
)
from .hashing import FileDigest, sha256_file, sha256_stream
from .json import atomic_write_json, read_json
from .logging import ILogger, bind, clear_bindings, configure_logging, get_logger
from .paths import WorkspaceLayout
from .process import CommandResult, CommandRunner, SubprocessRunner
from .provenance import RunProvenance, new_run_id
from .time import monotonic_ms, parse_iso, utc_iso_after, utc_now, utc_now_iso

__all__ = [
    "CancellationToken",
    "Deadline",
    "Settings",
    "load_settings",
    "PipelineError",
    "BuildError",
    "CommandError",
    "ConfigError",
    "InstallError",
    "IntegrityError",
    "InternalError",
    "JobTimeoutError",
    "PipelineCancelled",
    "PublicationError",
    "QualityGateError",
    "ResolutionError",
    "StageError",
    "append_text",
    "atomic_dir_commit",
    "atomic_write_text",
    "copy_or_hardlink",
    "ensure_parent",
    "file_size",
    "human_size",
    "make_tmp_dir_for",
    "remove_tree",
    "safe_unlink",
    "FileDigest",
    "sha256_file",
    "sha256_stream",
    "atomic_write_json",
    "read_json",
    "ILogger",
    "bind",
    "clear_bindings",
    "configure_logging",
    "get_logger",
    "WorkspaceLayout",
    "CommandResult",
    "CommandRunner",
    "SubprocessRunner",
    "RunProvenance",
    "new_run_id",
    "monotonic_ms",
    "parse_iso",
    "utc_iso_after",
    "utc_now",
    "utc_now_iso",
]
