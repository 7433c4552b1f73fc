"""Invoicez - invoicing back-office API for clients, invoices, receipts and handovers."""

__version__ = "0.1.0"

from invoicez.api import create_app
from invoicez.client import AuthenticationError, InvoicezAPIError, InvoicezClient
from invoicez.config import configure_logging, get_settings
from invoicez.db import Database
from invoicez.loader import load_directory
from invoicez.numbering import format_invoice_code, parse_invoice_code

__all__ = [
    # Version
    "__version__",
    # Server
    "create_app",
    "Database",
    "load_directory",
    # Client
    "InvoicezClient",
    "InvoicezAPIError",
    "AuthenticationError",
    # Invoice codes
    "format_invoice_code",
    "parse_invoice_code",
    # Config
    "get_settings",
    "configure_logging",
]
