"""GCP display-name mappings between spreadsheet codes and calculator labels.

The pricing calculator shows regions, operating systems and commitment terms by
display label ("Iowa (us-central1)", "Red Hat Enterprise Linux"). Spreadsheet
rows and API callers usually carry short codes instead. This module maps the
common variations onto the exact labels the calculator renders.
"""

import re
from typing import Optional

# Region code -> calculator display label.
# These MUST match the option text shown in the calculator's Region list.
REGION_DISPLAY_NAMES = {
    # Americas
    "us-central1": "Iowa (us-central1)",
    "us-east1": "South Carolina (us-east1)",
    "us-east4": "Northern Virginia (us-east4)",
    "us-east5": "Columbus (us-east5)",
    "us-west1": "Oregon (us-west1)",
    "us-west2": "Los Angeles (us-west2)",
    "us-west3": "Salt Lake City (us-west3)",
    "us-west4": "Las Vegas (us-west4)",
    "us-south1": "Dallas (us-south1)",
    "northamerica-northeast1": "Montréal (northamerica-northeast1)",
    "northamerica-northeast2": "Toronto (northamerica-northeast2)",
    "southamerica-east1": "São Paulo (southamerica-east1)",
    "southamerica-west1": "Santiago (southamerica-west1)",

    # Europe
    "europe-west1": "Belgium (europe-west1)",
    "europe-west2": "London (europe-west2)",
    "europe-west3": "Frankfurt (europe-west3)",
    "europe-west4": "Netherlands (europe-west4)",
    "europe-west6": "Zurich (europe-west6)",
    "europe-central2": "Warsaw (europe-central2)",
    "europe-north1": "Finland (europe-north1)",

    # Asia Pacific
    "asia-east1": "Taiwan (asia-east1)",
    "asia-east2": "Hong Kong (asia-east2)",
    "asia-northeast1": "Tokyo (asia-northeast1)",
    "asia-northeast2": "Osaka (asia-northeast2)",
    "asia-northeast3": "Seoul (asia-northeast3)",
    "asia-south1": "Mumbai (asia-south1)",
    "asia-south2": "Delhi (asia-south2)",
    "asia-southeast1": "Singapore (asia-southeast1)",
    "asia-southeast2": "Jakarta (asia-southeast2)",
    "australia-southeast1": "Sydney (australia-southeast1)",
    "australia-southeast2": "Melbourne (australia-southeast2)",

    # Africa
    "africa-south1": "Johannesburg (africa-south1)",
}

# Legacy spreadsheet values mapping to region codes
REGION_ALIASES = {
    "mumbai": "asia-south1",
    "iowa": "us-central1",
    "oregon": "us-west1",
}

# Operating system variations -> canonical OperatingSystem value
OPERATING_SYSTEM_VARIATIONS = {
    "linux": "Linux",
    "free": "Linux",
    "debian": "Linux",
    "centos": "Linux",
    "ubuntu": "Linux",
    "windows": "Windows",
    "windows server": "Windows",
    "rhel": "Red Hat Enterprise Linux",
    "red hat": "Red Hat Enterprise Linux",
    "red hat enterprise linux": "Red Hat Enterprise Linux",
    "rhel_sap": "Red Hat Enterprise Linux for SAP",
    "red hat enterprise linux for sap": "Red Hat Enterprise Linux for SAP",
    "sles": "SUSE Linux Enterprise Server",
    "suse": "SUSE Linux Enterprise Server",
    "suse linux enterprise server": "SUSE Linux Enterprise Server",
    "sles_sap": "SUSE Linux Enterprise Server for SAP",
    "suse linux enterprise server for sap": "SUSE Linux Enterprise Server for SAP",
    "ubuntu pro": "Ubuntu Pro",
}

# Canonical OperatingSystem value -> text matched against the calculator's
# "Operating System / Software" options ("Free: Debian, CentOS, ...",
# "Paid: Windows Server 2012 R2, ...")
OPERATING_SYSTEM_OPTION_LABELS = {
    "Linux": "Free: Debian, CentOS, CoreOS, Ubuntu",
    "Windows": "Windows Server",
    "Red Hat Enterprise Linux": "Red Hat Enterprise Linux",
    "Red Hat Enterprise Linux for SAP": "Red Hat Enterprise Linux for SAP",
    "SUSE Linux Enterprise Server": "SLES",
    "SUSE Linux Enterprise Server for SAP": "SLES 12 for SAP",
    "Ubuntu Pro": "Ubuntu Pro",
}

# Discount model variations -> committed use term value
COMMITTED_USE_VARIATIONS = {
    "1-year cud": "1 year",
    "1 year cud": "1 year",
    "1-year": "1 year",
    "1 year": "1 year",
    "1y": "1 year",
    "3-year cud": "3 years",
    "3 year cud": "3 years",
    "3-year": "3 years",
    "3 years": "3 years",
    "3 year": "3 years",
    "3y": "3 years",
    "on-demand": "none",
    "spot vm": "none",
    "none": "none",
}

_REGION_CODE_RE = re.compile(r"\(([a-z]+-[a-z]+\d+)\)\s*$")


def region_display_name(region: str) -> str:
    """
    Map a region code (or partial label) to the calculator's display label.

    Args:
        region: Region code from a spreadsheet row (e.g. "us-central1") or a
            label that already carries the code

    Returns:
        Display label such as "Iowa (us-central1)". Unknown codes fall back to
        "<code> (<code>)" so the code can still be matched structurally.

    Examples:
        >>> region_display_name("us-central1")
        'Iowa (us-central1)'
        >>> region_display_name("Iowa (us-central1)")
        'Iowa (us-central1)'
    """
    if not region:
        return region

    region_lower = region.strip().lower()

    if region_lower in REGION_DISPLAY_NAMES:
        return REGION_DISPLAY_NAMES[region_lower]

    if region_lower in REGION_ALIASES:
        return REGION_DISPLAY_NAMES[REGION_ALIASES[region_lower]]

    # Already a display label for a known region
    for label in REGION_DISPLAY_NAMES.values():
        if region_lower == label.lower():
            return label

    # Partial matches (e.g. "central1" or "tokyo")
    for code, label in REGION_DISPLAY_NAMES.items():
        if region_lower in code or region_lower in label.lower():
            return label

    region = region.strip()
    return region if "(" in region else f"{region} ({region})"


def region_code(region_label: str) -> Optional[str]:
    """Extract the region code from a display label like "Iowa (us-central1)"."""
    if not region_label:
        return None
    match = _REGION_CODE_RE.search(region_label.strip())
    if match:
        return match.group(1)
    if region_label.strip().lower() in REGION_DISPLAY_NAMES:
        return region_label.strip().lower()
    return None


def normalize_operating_system(os_name: Optional[str]) -> Optional[str]:
    """
    Map an OS variation onto its canonical name.

    Returns "Linux" for an empty value and None for an unrecognised one so the
    validator can report it.
    """
    if not os_name:
        return "Linux"
    os_lower = os_name.strip().lower()
    if os_lower in OPERATING_SYSTEM_VARIATIONS:
        return OPERATING_SYSTEM_VARIATIONS[os_lower]
    for canonical in OPERATING_SYSTEM_OPTION_LABELS:
        if os_lower == canonical.lower():
            return canonical
    return None


def operating_system_option_label(os_name: str) -> str:
    """Return the text used to match the calculator's OS option."""
    canonical = normalize_operating_system(os_name) or "Linux"
    return OPERATING_SYSTEM_OPTION_LABELS[canonical]


def committed_use_term(discount_model: Optional[str]) -> str:
    """
    Map a spreadsheet discount model onto a committed use term.

    Examples:
        >>> committed_use_term("1-Year CUD")
        '1 year'
        >>> committed_use_term("On-Demand")
        'none'
    """
    if not discount_model:
        return "none"
    return COMMITTED_USE_VARIATIONS.get(discount_model.strip().lower(), "none")


def provisioning_model(explicit: Optional[str], discount_model: Optional[str] = None) -> str:
    """Resolve the provisioning model, inferring Spot from the discount model."""
    for candidate in (explicit, discount_model):
        if candidate and ("spot" in candidate.lower() or "preemptible" in candidate.lower()):
            return "Spot"
    return "Regular"


def series_code(series: str) -> str:
    """The calculator lists machine series in upper case (E2, N2, C3)."""
    return series.strip().upper() if series else series
