"""Filesystem artifact store with atomic per-stream writes."""

from __future__ import annotations

import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Final

from report_runner.config import config_get_logger
from report_runner.domain import (
    Report,
    ReportArtifactKind,
    domain_encode_report_data,
    domain_validate_request_uuid,
)

from .interfaces import ArtifactStorePort

logger = config_get_logger(__name__)

ARTIFACT_FILE_NAMES: Final[dict[ReportArtifactKind, str]] = {
    ReportArtifactKind.DATA: "data.json",
    ReportArtifactKind.OUTPUT: "output.bin",
    ReportArtifactKind.LOG: "log.txt",
    ReportArtifactKind.ERROR: "error.txt",
}


class FileSystemArtifactStore(ArtifactStorePort):
    """Artifact store laid out as `<root>/<uuid>/<stream file>`.

    Every write lands in a temporary sibling file that is fsynced and then
    renamed over the target, so readers observe either the previous stream or
    the complete new one.
    """

    def __init__(self, root_directory: str | Path):
        """Initialize filesystem artifact store.

        Args:
            root_directory: Directory holding one subdirectory per request.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when root directory is blank.
            OSError: Raised when the root directory cannot be created.
        """

        if not str(root_directory).strip():
            raise ValueError("root_directory must not be blank")

        self._root_directory = Path(root_directory)
        self._root_directory.mkdir(parents=True, exist_ok=True)
        self._append_lock = threading.Lock()

    @property
    def storage_root_directory(self) -> Path:
        """Return the artifact root directory."""

        return self._root_directory

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

        normalized_uuid = domain_validate_request_uuid(uuid)
        return self._root_directory / normalized_uuid / ARTIFACT_FILE_NAMES[ReportArtifactKind(kind)]

    def storage_write_artifact(self, uuid: str, kind: ReportArtifactKind, payload: bytes) -> Path:
        """Atomically replace one artifact stream.

        Args:
            uuid: Request identity.
            kind: Artifact kind.
            payload: Full stream contents.

        Returns:
            Path: Written artifact path.

        Raises:
            ValueError: Raised when uuid is malformed or payload is not bytes.
            OSError: Raised when the filesystem write fails.
        """

        if not isinstance(payload, (bytes, bytearray)):
            raise ValueError("artifact payload must be bytes")

        artifact_path = self.storage_artifact_path(uuid, kind)
        artifact_path.parent.mkdir(parents=True, exist_ok=True)

        temporary_file = tempfile.NamedTemporaryFile(  # pylint: disable=consider-using-with
            dir=artifact_path.parent,
            prefix=f".{artifact_path.name}.",
            suffix=".tmp",
            delete=False,
        )
        try:
            with temporary_file:
                temporary_file.write(bytes(payload))
                temporary_file.flush()
                os.fsync(temporary_file.fileno())
            os.replace(temporary_file.name, artifact_path)
        except OSError:
            Path(temporary_file.name).unlink(missing_ok=True)
            raise

        logger.debug(
            "report_artifact_written",
            uuid=artifact_path.parent.name,
            kind=ReportArtifactKind(kind).value,
            size_bytes=len(payload),
        )
        return artifact_path

    def storage_append_artifact(self, uuid: str, kind: ReportArtifactKind, payload: bytes) -> Path:
        """Atomically append bytes to one artifact stream.

        Args:
            uuid: Request identity.
            kind: Artifact kind.
            payload: Bytes to append.

        Returns:
            Path: Written artifact path.

        Raises:
            ValueError: Raised when uuid is malformed or payload is not bytes.
            OSError: Raised when the filesystem write fails.
        """

        if not isinstance(payload, (bytes, bytearray)):
            raise ValueError("artifact payload must be bytes")

        with self._append_lock:
            existing_payload = self.storage_read_artifact(uuid, kind) or b""
            return self.storage_write_artifact(uuid, kind, existing_payload + bytes(payload))

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

        artifact_path = self.storage_artifact_path(uuid, kind)
        try:
            return artifact_path.read_bytes()
        except FileNotFoundError:
            return None

    def storage_artifact_exists(self, uuid: str, kind: ReportArtifactKind) -> bool:
        """Return whether one artifact stream has been written."""

        return self.storage_artifact_path(uuid, kind).is_file()

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

        artifact_path = self.storage_artifact_path(uuid, kind)
        try:
            artifact_path.unlink()
        except FileNotFoundError:
            return False
        return True

    def storage_persist_report(self, report: Report) -> None:
        """Write the `data` and, when present, `output` streams of a report.

        Args:
            report: Report to persist.

        Returns:
            None: Streams are written as side effect.

        Raises:
            TypeError: Raised when report data is not JSON-serializable.
            OSError: Raised when the filesystem write fails.
        """

        if report.rendered_output is not None:
            self.storage_write_artifact(report.report_uuid, ReportArtifactKind.OUTPUT, report.rendered_output)
        self.storage_write_artifact(
            report.report_uuid,
            ReportArtifactKind.DATA,
            domain_encode_report_data(report.data),
        )

    def storage_purge(self, uuid: str) -> bool:
        """Remove all artifact streams of a request.

        Args:
            uuid: Request identity.

        Returns:
            bool: True when the request directory existed.

        Raises:
            ValueError: Raised when uuid is malformed.
            OSError: Raised when the directory cannot be removed.
        """

        request_directory = self._root_directory / domain_validate_request_uuid(uuid)
        if not request_directory.exists():
            return False
        shutil.rmtree(request_directory)
        logger.debug("report_artifacts_purged", uuid=request_directory.name)
        return True
