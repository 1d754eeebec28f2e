"""Storage layer package for per-request artifact streams."""

from .artifact_store import ARTIFACT_FILE_NAMES, FileSystemArtifactStore
from .interfaces import ArtifactStorePort

__all__ = ["ARTIFACT_FILE_NAMES", "ArtifactStorePort", "FileSystemArtifactStore"]
