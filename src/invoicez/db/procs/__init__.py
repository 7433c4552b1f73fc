"""Procedure implementations; importing this package registers all of them."""

from invoicez.db.procs import (  # noqa: F401
    clients,
    handovers,
    invoices,
    products,
    receipts,
    staff,
    users,
)
