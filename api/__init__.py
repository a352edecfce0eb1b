"""Order fulfillment engine HTTP API."""

__version__ = "0.1.0"
