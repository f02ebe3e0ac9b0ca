"""CareerForge account and email verification API."""

__version__ = "0.1.0"
