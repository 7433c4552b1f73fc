"""HTTP routers, mounted under ``/api`` by ``create_app``."""

from invoicez.api.routes import auth, clients, handovers, invoices, products, receipts, staff

__all__ = ["auth", "clients", "handovers", "invoices", "products", "receipts", "staff"]
