"""Typed interfaces for artifact storage responsibilities."""

from pathlib import Path
from typing import Protocol

from report_runner.domain import Report, ReportArtifactKind


class ArtifactStorePort(Protocol):
    """Port definition for per-request artifact byte streams."""

    def storage_artifact_path(self, uuid: str, kind: ReportArtifactKind) -> Path:
        """Return the durable location of one artifact stream.

        Args:
            uuid: Request identity.
            kind: Artifact kind.

        Returns:
            Path: Artifact file path, whether or not it exists yet.

        Raises:
            ValueError: Raised when uuid is malformed.
        """

    def storage_write_artifact(self, uuid: str, kind: ReportArtifactKind, payload: bytes) -> Path:
        """Atomically replace one artifact stream.

        Args:
            uuid: Request identity.
            kind: Artifact kind.
            payload: Full stream contents.

        Returns:
            Path: Written artifact path.

        Raises:
            ValueError: Raised when inputs are invalid.
            OSError: Raised when the filesystem write fails.
        """

    def storage_append_artifact(self, uuid: str, kind: ReportArtifactKind, payload: bytes) -> Path:
        """Atomically append bytes to one artifact stream.

        Args:
            uuid: Request identity.
            kind: Artifact kind.
            payload: Bytes to append.

        Returns:
            Path: Written artifact path.

        Raises:
            ValueError: Raised when inputs are invalid.
            OSError: Raised when the filesystem write fails.
        """

    def storage_read_artifact(self, uuid: str, kind: ReportArtifactKind) -> bytes | None:
        """Read one artifact stream.

        Args:
            uuid: Request identity.
            kind: Artifact kind.

        Returns:
            bytes | None: Stream contents, or None when not written.

        Raises:
            ValueError: Raised when uuid is malformed.
            OSError: Raised when the filesystem read fails.
        """

    def storage_delete_artifact(self, uuid: str, kind: ReportArtifactKind) -> bool:
        """Remove one artifact stream.

        Args:
            uuid: Request identity.
            kind: Artifact kind.

        Returns:
            bool: True when a stream was removed.

        Raises:
            ValueError: Raised when uuid is malformed.
        """

    def storage_persist_report(self, report: Report) -> None:
        """Write the `data` and, when present, `output` streams of a report.

        Args:
            report: Report to persist.

        Returns:
            None: Streams are written as side effect.

        Raises:
            TypeError: Raised when report data is not serializable.
            OSError: Raised when the filesystem write fails.
        """

    def storage_purge(self, uuid: str) -> bool:
        """Remove all artifact streams of a request.

        Args:
            uuid: Request identity.

        Returns:
            bool: True when anything was removed.

        Raises:
            ValueError: Raised when uuid is malformed.
        """
