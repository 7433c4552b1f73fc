"""Receipt (payment) procedures."""

from typing import Any

import structlog
from sqlalchemy import Connection, select

from invoicez.db.procedures import (
    ConflictError,
    NotFoundError,
    ResultSet,
    Row,
    ValidationError,
    procedure,
    rows,
)
from invoicez.db.procs.common import (
    EPSILON,
    as_amount,
    as_date,
    as_id,
    clean_text,
    invoice_by_code,
    invoice_by_id,
    invoice_totals,
    sync_paid_status,
    touch_invoice,
)
from invoicez.db.schema import clients, invoices, receipts

logger = structlog.get_logger(__name__)


def _receipts_select():
    return select(
        receipts,
        invoices.c.InvoiceCode,
        clients.c.Name.label("ClientName"),
    ).select_from(
        receipts.join(invoices, invoices.c.InvoiceID == receipts.c.InvoiceID).outerjoin(
            clients, clients.c.ClientID == invoices.c.ClientID
        )
    )


def receipts_for_invoice(conn: Connection, invoice_id: int) -> ResultSet:
    stmt = (
        _receipts_select()
        .where(receipts.c.InvoiceID == invoice_id)
        .order_by(receipts.c.ReceiptDate, receipts.c.ReceiptID)
    )
    return rows(conn.execute(stmt))


def _get(conn: Connection, receipt_id: int) -> Row | None:
    found = rows(conn.execute(_receipts_select().where(receipts.c.ReceiptID == receipt_id)))
    return found[0] if found else None


def _amount(value: Any) -> float:
    if value is None:
        raise ValidationError("Amount is required")
    amount = as_amount(value, "Amount")
    if amount <= 0:
        raise ValidationError("Amount must be > 0")
    return amount


def _check_within_balance(
    conn: Connection, invoice_id: int, amount: float, credit: float = 0.0
) -> None:
    # ``credit`` is the amount of the receipt being replaced, if any.
    totals = invoice_totals(conn, invoice_id)
    if amount > totals["Balance"] + credit + EPSILON:
        raise ValidationError(
            "Amount exceeds remaining balance",
            details={"balance": round(totals["Balance"] + credit, 2)},
        )


def _create(
    conn: Connection, invoice: Row, amount: Any, method: Any, notes: Any, receipt_date: Any = None
) -> ResultSet:
    if invoice["Status"] == "Cancelled":
        raise ConflictError("Invoice is cancelled")

    amount = _amount(amount)
    _check_within_balance(conn, invoice["InvoiceID"], amount)

    values: dict[str, Any] = {
        "InvoiceID": invoice["InvoiceID"],
        "Amount": amount,
        "Method": clean_text(method),
        "Notes": clean_text(notes),
    }
    if receipt_date is not None:
        values["ReceiptDate"] = as_date(receipt_date, "receiptDate")
    result = conn.execute(receipts.insert().values(**values))

    touch_invoice(conn, invoice["InvoiceID"])
    status = sync_paid_status(conn, invoice["InvoiceID"])
    logger.info(
        "receipt_created",
        code=invoice["InvoiceCode"],
        amount=amount,
        invoice_status=status,
    )
    return [_get(conn, result.inserted_primary_key[0])]


@procedure("ListReceiptsByCodeTx")
def list_receipts_by_code(conn: Connection, code: Any) -> list[ResultSet]:
    invoice = invoice_by_code(conn, code)
    return [receipts_for_invoice(conn, invoice["InvoiceID"])]


@procedure("ListAllReceiptsTx")
def list_all_receipts(conn: Connection) -> list[ResultSet]:
    stmt = _receipts_select().order_by(receipts.c.ReceiptDate.desc(), receipts.c.ReceiptID.desc())
    return [rows(conn.execute(stmt))]


@procedure("CreateReceiptByIdTx")
def create_receipt_by_id(
    conn: Connection,
    invoice_id: Any,
    amount: Any,
    method: Any = None,
    notes: Any = None,
    receipt_date: Any = None,
) -> list[ResultSet]:
    return [_create(conn, invoice_by_id(conn, invoice_id), amount, method, notes, receipt_date)]


@procedure("CreateReceiptByCodeSafe")
def create_receipt_by_code(
    conn: Connection,
    code: Any,
    amount: Any,
    method: Any = None,
    notes: Any = None,
    receipt_date: Any = None,
) -> list[ResultSet]:
    return [_create(conn, invoice_by_code(conn, code), amount, method, notes, receipt_date)]


@procedure("UpdateReceiptAmountTx")
def update_receipt(
    conn: Connection, receipt_id: Any, amount: Any, method: Any = None, notes: Any = None
) -> list[ResultSet]:
    """Change a receipt's amount (and optionally method/notes)."""
    receipt_id = as_id(receipt_id, "id")
    existing = _get(conn, receipt_id)
    if existing is None:
        raise NotFoundError("Receipt not found")

    amount = _amount(amount)
    _check_within_balance(conn, existing["InvoiceID"], amount, credit=float(existing["Amount"]))

    values: dict[str, Any] = {"Amount": amount}
    if method is not None:
        values["Method"] = clean_text(method)
    if notes is not None:
        values["Notes"] = clean_text(notes)
    conn.execute(receipts.update().where(receipts.c.ReceiptID == receipt_id).values(**values))

    touch_invoice(conn, existing["InvoiceID"])
    sync_paid_status(conn, existing["InvoiceID"])
    return [[_get(conn, receipt_id)]]


@procedure("DeleteReceiptTx")
def delete_receipt(conn: Connection, receipt_id: Any) -> list[ResultSet]:
    receipt_id = as_id(receipt_id, "id")
    existing = _get(conn, receipt_id)
    if existing is None:
        raise NotFoundError("Receipt not found")

    conn.execute(receipts.delete().where(receipts.c.ReceiptID == receipt_id))
    touch_invoice(conn, existing["InvoiceID"])
    sync_paid_status(conn, existing["InvoiceID"])
    return [[{"ok": True, "ReceiptID": receipt_id, "InvoiceCode": existing["InvoiceCode"]}]]
