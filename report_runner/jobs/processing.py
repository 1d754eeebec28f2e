"""Post-processor registry and built-in processors."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import Final

from report_runner.config import config_get_logger
from report_runner.domain import (
    ProcessorError,
    Report,
    ReportProcessorConfiguration,
    domain_encode_report_data,
)

from .interfaces import ReportProcessorPort

logger = config_get_logger(__name__)

FILE_EXPORT_PROCESSOR_KIND: Final[str] = "file_export"


class FileExportReportProcessor(ReportProcessorPort):
    """Copy rendered output, or encoded data for raw modes, into an export directory.

    Configuration keys:
        directory: Target directory; falls back to the processor default.
        file_name_pattern: Optional `str.format` pattern with `uuid` and
            `definition_ref` fields. Defaults to `{uuid}.out`.
    """

    def __init__(self, default_directory: str | Path | None = None):
        self._default_directory = Path(default_directory) if default_directory is not None else None

    def processor_kind(self) -> str:
        return FILE_EXPORT_PROCESSOR_KIND

    def processor_process(self, configuration: ReportProcessorConfiguration, report: Report) -> Report:
        """Export one report to disk.

        Args:
            configuration: Processor configuration.
            report: Completed report.

        Returns:
            Report: Unchanged report.

        Raises:
            ProcessorError: Raised when the target is not configured or the write fails.
        """

        directory_value = configuration.configuration.get("directory")
        target_directory = Path(directory_value) if directory_value else self._default_directory
        if target_directory is None:
            raise ProcessorError(
                "file export directory is not configured",
                processor_name=configuration.name,
                error_code="PROCESSOR_CONFIGURATION_ERROR",
            )

        file_name_pattern = str(configuration.configuration.get("file_name_pattern") or "{uuid}.out")
        try:
            file_name = file_name_pattern.format(uuid=report.report_uuid, definition_ref=report.request.definition_ref)
        except (KeyError, IndexError, ValueError) as error:
            raise ProcessorError(
                f"invalid file_name_pattern={file_name_pattern!r}",
                processor_name=configuration.name,
                error_code="PROCESSOR_CONFIGURATION_ERROR",
            ) from error

        payload = report.rendered_output
        if payload is None:
            payload = domain_encode_report_data(report.data)

        target_path = target_directory / Path(file_name).name
        try:
            target_directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(dir=target_directory, delete=False) as temporary_file:
                temporary_file.write(payload)
                temporary_path = temporary_file.name
            os.replace(temporary_path, target_path)
        except OSError as error:
            raise ProcessorError(
                f"file export failed: {error}",
                processor_name=configuration.name,
                error_code="PROCESSOR_IO_ERROR",
            ) from error

        logger.info("report_exported", uuid=report.report_uuid, path=str(target_path))
        return report


class ReportProcessorRegistry:
    """Static mapping from processor kind tag to processor implementation."""

    def __init__(self, processors: Iterable[ReportProcessorPort] = ()):
        self._processors: dict[str, ReportProcessorPort] = {}
        for processor in processors:
            processor_kind = processor.processor_kind()
            if processor_kind in self._processors:
                raise ValueError(f"duplicate processor kind={processor_kind}")
            self._processors[processor_kind] = processor

    def registry_get(self, processor_kind: str) -> ReportProcessorPort:
        """Return processor registered for one kind tag.

        Args:
            processor_kind: Processor kind tag.

        Returns:
            ReportProcessorPort: Registered processor.

        Raises:
            ProcessorError: Raised when no processor is registered for the tag.
        """

        processor = self._processors.get(processor_kind)
        if processor is None:
            raise ProcessorError(
                f"unknown processor kind={processor_kind}",
                error_code="PROCESSOR_UNKNOWN_KIND",
            )
        return processor

    def registry_kinds(self) -> tuple[str, ...]:
        return tuple(sorted(self._processors))
