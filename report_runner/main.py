"""Main module entrypoint for local runtime execution.

This module validates startup configuration and launches the FastAPI service
or runs one dispatcher or retention pass.
"""

import argparse
import json

import uvicorn

from report_runner.bootstrap import bootstrap_create_application, bootstrap_create_report_service
from report_runner.config import config_configure_logging, config_load_settings


def main() -> None:
    """Run selected runtime command with validated startup configuration.

    Returns:
        None: This function does not return a runtime value.

    Raises:
        SettingsLoadError: Raised when configuration validation fails.
    """

    argument_parser = argparse.ArgumentParser(description="Report runner runtime entrypoint")
    argument_parser.add_argument(
        "command",
        nargs="?",
        default="api",
        choices=("api", "dispatch-once", "sweep"),
        help="Runtime command: `api` starts server, `dispatch-once` recovers the queue and runs one "
        "dispatch pass to completion, `sweep` runs one retention sweep",
        type=str,
    )
    argument_parser.add_argument(
        "--max-concurrent",
        dest="max_concurrent",
        type=int,
        help="Optional in-flight bound override for `dispatch-once`",
    )
    parsed_arguments = argument_parser.parse_args()

    settings = config_load_settings()

    if parsed_arguments.command == "dispatch-once":
        config_configure_logging(level=settings.log_level, json_format=settings.log_json_format)
        report_service = bootstrap_create_report_service(settings)
        report_service.service_start(start_loops=False)
        claimed_requests = report_service.service_dispatch_next(max_concurrent=parsed_arguments.max_concurrent)
        report_service.service_shutdown()
        print(json.dumps({"claimed": [request.uuid for request in claimed_requests]}))
        return

    if parsed_arguments.command == "sweep":
        config_configure_logging(level=settings.log_level, json_format=settings.log_json_format)
        report_service = bootstrap_create_report_service(settings)
        sweep_result = report_service.service_sweep()
        print(json.dumps(sweep_result.result_to_payload()))
        return

    application = bootstrap_create_application(settings=settings)
    uvicorn.run(
        application,
        host=settings.application_host,
        port=settings.application_port,
    )


if __name__ == "__main__":
    main()
