"""Generate shareable Google Cloud pricing calculator links by driving the calculator UI."""

__version__ = "0.1.0"
