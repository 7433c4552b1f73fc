"""Helpers shared by the procedure modules."""

from datetime import date, datetime
from typing import Any

from sqlalchemy import Connection, func, select

from invoicez.db.procedures import NotFoundError, Row, ValidationError
from invoicez.db.schema import (
    INVOICE_STATUSES,
    clients,
    invoice_items,
    invoices,
    receipts,
    staff,
)

# Amounts within half a cent are treated as settled.
EPSILON = 0.005


def clean_text(value: Any) -> str | None:
    """Strip strings and turn blanks into ``None``."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def require_text(value: Any, field: str) -> str:
    text = clean_text(value)
    if text is None:
        raise ValidationError(f"{field} is required")
    return text


def as_amount(value: Any, field: str) -> float:
    """Coerce a numeric parameter, rejecting anything that is not a number."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field} must be a number") from e
    if amount != amount or amount in (float("inf"), float("-inf")):
        raise ValidationError(f"{field} must be a number")
    return round(amount, 2)


def as_quantity(value: Any, field: str = "Quantity") -> float:
    """Like ``as_amount`` but kept to the three decimals the column stores."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        quantity = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field} must be a number") from e
    if quantity != quantity or quantity in (float("inf"), float("-inf")):
        raise ValidationError(f"{field} must be a number")
    return round(quantity, 3)


def as_date(value: Any, field: str) -> date:
    """Accept a ``date``, a ``datetime`` or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as e:
            raise ValidationError(f"{field} must be a date (YYYY-MM-DD)") from e
    raise ValidationError(f"{field} must be a date (YYYY-MM-DD)")


def as_id(value: Any, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field} must be an integer id") from e


def check_status(status: Any) -> str:
    status = clean_text(status) or "Draft"
    # Accept any casing but store the canonical spelling.
    for known in INVOICE_STATUSES:
        if status.lower() == known.lower():
            return known
    raise ValidationError(
        f"Invalid status '{status}'; expected one of {', '.join(INVOICE_STATUSES)}"
    )


def ensure_client(conn: Connection, client_id: Any) -> int | None:
    if client_id is None:
        return None
    client_id = as_id(client_id, "clientId")
    found = conn.execute(
        select(clients.c.ClientID).where(clients.c.ClientID == client_id)
    ).first()
    if found is None:
        raise NotFoundError("Client not found")
    return client_id


def ensure_staff(conn: Connection, staff_id: Any) -> int | None:
    if staff_id is None:
        return None
    staff_id = as_id(staff_id, "staffId")
    found = conn.execute(select(staff.c.StaffID).where(staff.c.StaffID == staff_id)).first()
    if found is None:
        raise NotFoundError("Staff not found")
    return staff_id


def staff_id_by_nim(conn: Connection, nim: Any) -> int:
    nim = require_text(nim, "staffNIM")
    found = conn.execute(select(staff.c.StaffID).where(staff.c.NIM == nim)).first()
    if found is None:
        raise NotFoundError("Staff not found")
    return found.StaffID


def invoice_by_code(conn: Connection, code: Any) -> Row:
    code = require_text(code, "invoiceCode")
    found = conn.execute(select(invoices).where(invoices.c.InvoiceCode == code)).first()
    if found is None:
        raise NotFoundError("Invoice not found")
    return dict(found._mapping)


def invoice_by_id(conn: Connection, invoice_id: Any) -> Row:
    invoice_id = as_id(invoice_id, "invoiceId")
    found = conn.execute(select(invoices).where(invoices.c.InvoiceID == invoice_id)).first()
    if found is None:
        raise NotFoundError("Invoice not found")
    return dict(found._mapping)


def subtotal_column():
    """Correlated ``Σ Quantity × UnitPrice`` for the outer invoice row."""
    return (
        select(func.coalesce(func.sum(invoice_items.c.Quantity * invoice_items.c.UnitPrice), 0))
        .where(invoice_items.c.InvoiceID == invoices.c.InvoiceID)
        .correlate(invoices)
        .scalar_subquery()
        .label("Subtotal")
    )


def total_paid_column():
    """Correlated ``Σ Receipt.Amount`` for the outer invoice row."""
    return (
        select(func.coalesce(func.sum(receipts.c.Amount), 0))
        .where(receipts.c.InvoiceID == invoices.c.InvoiceID)
        .correlate(invoices)
        .scalar_subquery()
        .label("TotalPaid")
    )


def with_financials(row: Row) -> Row:
    """Add ``TotalDue`` and ``Balance`` to a row carrying Subtotal/TotalPaid."""
    subtotal = round(float(row.get("Subtotal") or 0), 2)
    down_payment = round(float(row.get("DownPaymentAmount") or 0), 2)
    total_paid = round(float(row.get("TotalPaid") or 0), 2)
    total_due = round(subtotal - down_payment, 2)
    row.update(
        Subtotal=subtotal,
        DownPaymentAmount=down_payment,
        TotalDue=total_due,
        TotalPaid=total_paid,
        Balance=round(total_due - total_paid, 2),
    )
    return row


def invoice_totals(conn: Connection, invoice_id: int) -> Row:
    """Financial figures for one invoice."""
    found = conn.execute(
        select(
            invoices.c.InvoiceID,
            invoices.c.Status,
            invoices.c.DownPaymentAmount,
            subtotal_column(),
            total_paid_column(),
        ).where(invoices.c.InvoiceID == invoice_id)
    ).first()
    if found is None:
        raise NotFoundError("Invoice not found")
    return with_financials(dict(found._mapping))


def sync_paid_status(conn: Connection, invoice_id: int, promote: bool = True) -> str:
    """Keep ``Status`` consistent with the balance.

    A Paid invoice with money outstanding goes back to Sent. When ``promote`` is
    set, a Draft/Sent invoice whose receipts settle the balance becomes Paid.
    Cancelled invoices are left alone.
    """
    totals = invoice_totals(conn, invoice_id)
    status = totals["Status"]
    new_status = status
    if status == "Paid" and totals["Balance"] > EPSILON:
        new_status = "Sent"
    elif (
        promote
        and status in ("Draft", "Sent")
        and totals["TotalPaid"] > 0
        and totals["Balance"] <= EPSILON
    ):
        new_status = "Paid"

    if new_status != status:
        conn.execute(
            invoices.update()
            .where(invoices.c.InvoiceID == invoice_id)
            .values(Status=new_status, UpdatedAt=func.current_timestamp())
        )
    return new_status


def touch_invoice(conn: Connection, invoice_id: int) -> None:
    conn.execute(
        invoices.update()
        .where(invoices.c.InvoiceID == invoice_id)
        .values(UpdatedAt=func.current_timestamp())
    )
