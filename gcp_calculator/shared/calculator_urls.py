"""GCP pricing calculator URL utilities."""

from typing import Optional, Tuple
from urllib.parse import urlparse

# Keep hl=en so option labels render in English
CALCULATOR_URL = "https://cloud.google.com/products/calculator?hl=en"

# Hosts a generated share link may live on
SHARE_URL_HOSTS: Tuple[str, ...] = (
    "cloud.google.com",
)


def calculator_origin(calculator_url: str = CALCULATOR_URL) -> str:
    """Return scheme://host of the calculator, used for permission grants."""
    parsed = urlparse(calculator_url)
    return f"{parsed.scheme}://{parsed.netloc}"


def is_absolute_url(value: Optional[str]) -> bool:
    """True for an absolute http(s) URL with a host."""
    if not value:
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_valid_share_url(
    value: Optional[str], hosts: Tuple[str, ...] = SHARE_URL_HOSTS
) -> bool:
    """Check a candidate share link is an absolute https URL on the calculator domain.

    The link is treated as opaque: only scheme and host are inspected, never
    the path or query encoding.

    Args:
        value: Candidate URL text read from the page or clipboard
        hosts: Accepted hostnames (subdomains of these are accepted too)

    Returns:
        True when the candidate can be returned as the share URL
    """
    if not is_absolute_url(value):
        return False
    parsed = urlparse(value.strip())
    if parsed.scheme != "https":
        return False
    host = (parsed.hostname or "").lower()
    return any(host == allowed or host.endswith(f".{allowed}") for allowed in hosts)


def share_hosts_for(calculator_url: str) -> Tuple[str, ...]:
    """Accepted share hosts for a (possibly overridden) calculator URL."""
    host = (urlparse(calculator_url).hostname or "").lower()
    if not host or host in SHARE_URL_HOSTS:
        return SHARE_URL_HOSTS
    return SHARE_URL_HOSTS + (host,)
