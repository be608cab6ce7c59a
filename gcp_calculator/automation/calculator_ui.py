"""GCP Pricing Calculator UI vocabulary.

Label patterns and selectors used to drive the calculator at
https://cloud.google.com/products/calculator. Everything that depends on the
calculator's current markup lives here so the automation modules only deal
with behavior.

Controls are located through the accessibility tree (role + accessible name)
wherever the calculator exposes one, falling back to CSS only for surfaces
without a stable role.
"""

import re
from typing import Pattern

from playwright.async_api import Locator, Page

# Top-level and in-pane "Add to estimate" buttons
ADD_TO_ESTIMATE = re.compile(r"add to estimate", re.I)

# Product picker dialog and the search box it contains
PRODUCT_DIALOG = '[role="dialog"]'

# Service type toggle ("Instances" vs "Sole-tenant nodes" etc.)
INSTANCES_TOGGLE = re.compile(r"^\s*instances\s*$", re.I)
ADVANCED_SETTINGS = re.compile(r"advanced settings", re.I)

# Form field labels
FIELD_LABELS = {
    "region": re.compile(r"^\s*region|location", re.I),
    "provisioning_model": re.compile(r"provisioning model", re.I),
    "series": re.compile(r"^\s*(machine\s+)?series", re.I),
    "machine_type": re.compile(r"machine type", re.I),
    "instance_count": re.compile(r"number of instances", re.I),
    "usage_hours": re.compile(r"total instance usage time|total hours|hours per month|hrs per month", re.I),
    "units": re.compile(r"^\s*units?\s*$|usage time unit", re.I),
    "time_period": re.compile(r"time period|per\s+(day|month|week)", re.I),
    "operating_system": re.compile(r"operating system", re.I),
    "committed_use": re.compile(r"committed use|commitment", re.I),
}

USAGE_UNIT = "hours"
USAGE_TIME_PERIOD = "per month"

# Committed use radios, keyed by CommittedUseTerm value
COMMITTED_USE_RADIOS = {
    "none": re.compile(r"^\s*(none|no commitment)", re.I),
    "1 year": re.compile(r"^\s*1\s*year", re.I),
    "3 years": re.compile(r"^\s*3\s*years?", re.I),
}

# Stepper buttons rendered next to numeric fields
STEPPER_INCREMENT = re.compile(r"increase|increment|add one|^\s*\+\s*$", re.I)
STEPPER_DECREMENT = re.compile(r"decrease|decrement|remove one|^\s*[-−]\s*$", re.I)

# Right-hand estimate panel
ESTIMATE_PANEL = '[aria-label*="estimate" i], [data-testid*="estimate"], .estimate, .right-panel'

# Currency text such as "$48.92" or "$1,234.56 / month"
CURRENCY_RE = re.compile(r"\$\s?[0-9][0-9,]*(\.[0-9]{2})?")
CURRENCY_TEXT = r"text=/\$[0-9,]+(\.[0-9]{2})?/i"

# Total cost candidates, tried in order
TOTAL_PATTERNS = (
    re.compile(r"total.*/\s*month", re.I),
    re.compile(r"^\s*total", re.I),
)
TOTAL_CURRENCY_TEXT = r"text=/\$[0-9,]+(\.[0-9]{2})?\s*\/\s*month/i"

# Share flow
SHARE_BUTTON = re.compile(r"^\s*share", re.I)
SHARE_SURFACE = '[role="dialog"], [role="menu"], .cdk-overlay-pane'
COPY_LINK = re.compile(r"copy link", re.I)
COPY_ANY = re.compile(r"copy", re.I)
CALCULATOR_LINKS = 'a[href^="https://cloud.google.com/products/calculator"]'
CSV_LINK = re.compile(r"download csv|export csv|\bcsv\b", re.I)

# Consent / cookie overlays shown on first load
OVERLAY_BUTTONS = (
    re.compile(r"^\s*accept", re.I),
    re.compile(r"^\s*agree", re.I),
    re.compile(r"^\s*ok\s*$", re.I),
    re.compile(r"got it", re.I),
    re.compile(r"^\s*dismiss", re.I),
    re.compile(r"^\s*no thanks", re.I),
)
COOKIE_BUTTONS = (
    "#cookie button",
    '[data-testid*="cookie"] button',
    '[id*="cookie"] button',
    '[class*="cookie"] button',
)


def combobox(page: Page, label: Pattern) -> Locator:
    """Return the first combobox whose accessible name matches ``label``."""
    return page.get_by_role("combobox", name=label).first


def field(page: Page, label: Pattern) -> Locator:
    """Return the first form field labelled ``label``."""
    return page.get_by_label(label).first


def radio(page: Page, label: Pattern) -> Locator:
    return page.get_by_role("radio", name=label)


def exact_name(text: str) -> Pattern:
    """Case-insensitive pattern matching ``text`` as a whole accessible name."""
    return re.compile(rf"^\s*{re.escape(text.strip())}\s*$", re.I)


def mentions(text: str) -> Pattern:
    """Case-insensitive pattern matching ``text`` bounded by non-word characters.

    Keeps "n2-standard-8" from matching inside "n2-standard-80".
    """
    return re.compile(rf"(?<![\w-]){re.escape(text.strip())}(?![\w-])", re.I)
