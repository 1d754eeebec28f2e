"""Tests for runtime dependency assembly."""

from __future__ import annotations

from pathlib import Path

from report_runner.adapters import CallableReportEvaluator, HttpReportEvaluator
from report_runner.bootstrap import bootstrap_create_evaluator, bootstrap_create_report_service
from report_runner.config import AppSettings
from report_runner.domain import RenderingMode, ReportRequest


def test_bootstrap_create_evaluator_follows_settings() -> None:
    assert isinstance(
        bootstrap_create_evaluator(AppSettings(_env_file=None, evaluation_service_url="https://eval.test")),
        HttpReportEvaluator,
    )
    assert isinstance(bootstrap_create_evaluator(AppSettings(_env_file=None)), CallableReportEvaluator)


def test_bootstrap_create_report_service_wires_export(database_url: str, tmp_path: Path) -> None:
    """A configured export directory receives every completed report."""

    settings = AppSettings(
        _env_file=None,
        database_url=database_url,
        artifact_directory=str(tmp_path / "artifacts"),
        export_directory=str(tmp_path / "exports"),
    )
    report_service = bootstrap_create_report_service(
        settings,
        evaluator=CallableReportEvaluator({"ping": lambda parameters: {"pong": True}}),
    )
    try:
        report = report_service.service_run_report(
            ReportRequest(definition_ref="ping", rendering_mode=RenderingMode("json"))
        )
    finally:
        report_service.service_shutdown()

    assert (tmp_path / "exports" / f"{report.report_uuid}.out").read_bytes() == b'{"pong":true}'
    assert (tmp_path / "artifacts" / report.report_uuid / "data.json").read_bytes() == b'{"pong":true}'
