"""GCP calculator link generator - CLI entry point."""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from gcp_calculator.automation.runner import run_estimate
from gcp_calculator.cli.prompts import print_error, print_result, print_run_start
from gcp_calculator.core.config import DEFAULT_SERVICE, load_environment
from gcp_calculator.shared.async_utils import run_coroutine
from gcp_calculator.shared.logging import resolve_log_level, setup_logging
from gcp_calculator.shared.metrics import configure_metrics
from gcp_calculator.shared.tracing import configure_tracing

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gcp-calculator-link",
        description="Fill in the Google Cloud pricing calculator and print a shareable link.",
    )
    parser.add_argument(
        "request_file",
        nargs="?",
        help="JSON request file ({\"instances\": [...]} or {\"configurations\": [...]}); '-' reads stdin",
    )
    single = parser.add_argument_group("single instance (used when no request file is given)")
    single.add_argument("--machine-type", help="Machine type, e.g. e2-standard-2")
    single.add_argument("--series", help="Machine series, e.g. E2 (defaults to the machine type prefix)")
    single.add_argument("--region", default="us-central1", help="Region code or calculator label")
    single.add_argument("--count", type=int, default=1, help="Number of instances")
    single.add_argument("--hours", type=float, default=730, help="Usage hours per month (1-744)")
    single.add_argument("--os", default="Linux", help="Operating system")
    single.add_argument("--provisioning-model", default="Regular", choices=["Regular", "Spot"])
    single.add_argument("--committed-use", default="none", help="none, 1 year or 3 years")

    parser.add_argument("--service", default=None, help=f"Calculator product (default: {DEFAULT_SERVICE})")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--timeout-ms", type=int, default=None, help="Per-interaction timeout")
    parser.add_argument("--csv", action="store_true", help="Also extract the CSV export link")
    parser.add_argument("--artifacts", action="store_true", help="Save screenshots and console logs")
    parser.add_argument("--json", action="store_true", help="Print the raw JSON result")
    parser.add_argument("--log-level", default=None, help="Overrides APP_LOG_LEVEL")
    return parser


def _load_request_file(path: str) -> Dict[str, Any]:
    if path == "-":
        return json.load(sys.stdin)
    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def build_payload(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Build the request payload from a file or the single-instance flags.

    Command-line options override the file's top-level options.
    """
    if args.request_file:
        payload = _load_request_file(args.request_file)
        if not isinstance(payload, dict):
            raise ValueError("Request file must contain a JSON object")
    else:
        if not args.machine_type:
            raise ValueError("Either a request file or --machine-type is required")
        series = args.series or args.machine_type.split("-")[0]
        payload = {
            "instances": [
                {
                    "instanceCount": args.count,
                    "totalHours": args.hours,
                    "operatingSystem": args.os,
                    "provisioningModel": args.provisioning_model,
                    "series": series,
                    "machineType": args.machine_type,
                    "region": args.region,
                    "committedUse": args.committed_use,
                }
            ]
        }

    if "configurations" in payload:
        options = payload.setdefault("options", {})
        if args.headed:
            options["headless"] = False
        if args.timeout_ms:
            options["timeout"] = args.timeout_ms
        if args.csv:
            options["wantCsvLink"] = True
        if args.artifacts:
            options["collectArtifacts"] = True
    else:
        if args.headed:
            payload["headless"] = False
        if args.timeout_ms:
            payload["timeoutMs"] = args.timeout_ms
        if args.csv:
            payload["wantCsvLink"] = True
        if args.artifacts:
            payload["collectArtifacts"] = True
    if args.service:
        payload["service"] = args.service
    return payload


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI; returns the process exit code."""
    args = build_parser().parse_args(argv)
    load_environment()

    setup_logging(
        name="gcp_calculator",
        level=resolve_log_level(args.log_level),
        service_name="gcp-calculator-cli",
        stream=sys.stderr if args.json else None,
    )
    configure_tracing(service_name="gcp-calculator-cli")
    configure_metrics()

    try:
        payload = build_payload(args)
    except (OSError, ValueError) as e:
        print_error(str(e))
        return 2

    instances = payload.get("instances") or payload.get("configurations") or []
    if not args.json:
        print_run_start(len(instances), payload.get("service") or DEFAULT_SERVICE)

    result = run_coroutine(run_estimate(payload))

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_result(result)
    return 0 if result.success else 1


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
