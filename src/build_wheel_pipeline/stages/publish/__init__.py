from .stage import select_files, stage_publish
from .store import (
    ArtifactStore,
    HttpArtifactStore,
    LocalArtifactStore,
    StoredArtifact,
)
from .summary import render_summary

__all__ = [
    "ArtifactStore",
    "HttpArtifactStore",
    "LocalArtifactStore",
    "StoredArtifact",
    "render_summary",
    "select_files",
    "stage_publish",
]
