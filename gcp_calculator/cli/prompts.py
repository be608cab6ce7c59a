"""CLI output formatting utilities."""

from gcp_calculator.core.models import EstimateResult


def print_header(title: str) -> None:
    """Print a formatted section header."""
    print(f"\n{'=' * 60}")
    print(f"=== {title}")
    print(f"{'=' * 60}\n")


def print_run_start(instance_count: int, service: str) -> None:
    print_header("GCP Pricing Calculator")
    print(f"🔄 Adding {instance_count} instance(s) of {service} to a new estimate...\n", flush=True)


def print_error(error: str) -> None:
    """Print error message."""
    print(f"❌ Error: {error}\n", flush=True)


def print_line_items(result: EstimateResult) -> None:
    """Print one line per configured instance."""
    for index, item in enumerate(result.line_items, start=1):
        status = "✅" if item.committed else "⚠️"
        subtotal = f" - {item.subtotal_text}" if item.subtotal_text else ""
        print(f"{status} {index}. {item.instances}x {item.machine_type} in {item.region}{subtotal}")
        if item.skipped_stages:
            print(f"     skipped: {', '.join(item.skipped_stages)}")
        for discrepancy in item.field_discrepancies:
            print(f"     mismatch: {discrepancy}")
        if item.error:
            print(f"     error: {item.error}")


def print_result(result: EstimateResult) -> None:
    """Print the share URL and summary, or the failure details."""
    if result.line_items:
        print_line_items(result)
        print()

    if not result.success:
        stage = f" during {result.failed_stage}" if result.failed_stage else ""
        print_error(f"[{result.error_code}]{stage} {result.error}")
        if result.error_help:
            print(f"💡 {result.error_help}\n")
    else:
        if result.estimate_summary and result.estimate_summary.total_text:
            print(f"Total: {result.estimate_summary.total_text}")
        print(f"Share URL: {result.share_url}")
        if result.csv_download_url:
            print(f"CSV: {result.csv_download_url}")

    if result.artifacts is not None:
        for name, path in result.artifacts.screenshots.items():
            print(f"📸 {name}: {path}")
        if result.artifacts.console_log:
            print(f"📝 console log: {result.artifacts.console_log}")
