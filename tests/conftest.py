"""Pytest configuration and fixtures."""

import os
from datetime import date

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("INVOICEZ_API_URL", "http://localhost:3001")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient  # noqa: E402

from invoicez.api import create_app  # noqa: E402
from invoicez.config import Settings  # noqa: E402
from invoicez.db import Database  # noqa: E402


@pytest.fixture
def db(tmp_path):
    """A fresh SQLite database with every table created."""
    database = Database(f"sqlite:///{tmp_path / 'invoicez.db'}")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def settings():
    return Settings(_env_file=None, JWT_SECRET="test-secret", AUTH_REQUIRED=False)


@pytest.fixture
def api(db, settings):
    """TestClient against an app bound to the temporary database."""
    app = create_app(settings=settings, db=db)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def make_client(db):
    """Create a client row and return it."""

    def _make(name: str = "PT Maju Jaya", contact: str | None = "0812-555-0101") -> dict:
        return db.call_proc_row("CreateClientTx", [name, contact])

    return _make


@pytest.fixture
def make_staff(db):
    """Create a staff row and return it."""

    def _make(name: str = "Budi", nim: str | None = "NIM001", role: str = "Designer") -> dict:
        return db.call_proc_row("CreateStaffTx", [name, nim, role, None, None])

    return _make


@pytest.fixture
def make_invoice(db):
    """Create an invoice and return ``{"InvoiceID", "InvoiceCode"}``."""

    def _make(
        items: list[dict] | None = None,
        invoice_type: str = "SALE",
        invoice_date: date = date(2024, 10, 5),
        client_id: int | None = None,
        staff_id: int | None = None,
        down_payment: float = 0,
        status: str = "Draft",
        notes: str | None = None,
    ) -> dict:
        if items is None:
            items = [{"Description": "Poster A2", "Quantity": 2, "UnitPrice": 50000}]
        return db.call_proc_row(
            "CreateInvoiceWithItems",
            [invoice_type, invoice_date, client_id, staff_id, down_payment, status, notes, items],
        )

    return _make


@pytest.fixture
def mock_login_response():
    """Mock successful login response."""
    return {
        "user": {"id": 1, "email": "admin@folks.id", "name": "Admin"},
        "token": "header.payload.signature",
        "expiresIn": 3600,
    }


@pytest.fixture
def mock_invoice_response():
    """Mock aggregated invoice response."""
    return {
        "summary": [
            {
                "InvoiceID": 7,
                "InvoiceCode": "FOLKS/SALE/10/001",
                "Status": "Sent",
                "Subtotal": 100000.0,
                "DownPaymentAmount": 0.0,
                "TotalDue": 100000.0,
                "TotalPaid": 25000.0,
                "Balance": 75000.0,
            }
        ],
        "items": [{"ItemID": 1, "Description": "Poster A2", "Quantity": 2.0, "UnitPrice": 50000.0}],
        "receipts": [{"ReceiptID": 3, "Amount": 25000.0}],
        "handovers": [],
    }
