"""SEC EDGAR filing crawler."""

__version__ = "0.1.0"
