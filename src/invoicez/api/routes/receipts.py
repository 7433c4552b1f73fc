"""Receipt (payment) routes."""

from typing import Any
from urllib.parse import unquote

from fastapi import APIRouter, Depends

from invoicez.api.deps import get_db
from invoicez.api.schemas import ReceiptByCodeIn, ReceiptIn, ReceiptPatch
from invoicez.db import Database

router = APIRouter(tags=["receipts"])


@router.get("/receipts")
def list_receipts(code: str | None = None, db: Database = Depends(get_db)) -> list[dict[str, Any]]:
    """All receipts, or only those of invoice ``?code=``."""
    if code:
        return db.call_proc_first("ListReceiptsByCodeTx", [unquote(code).strip()])
    return db.call_proc_first("ListAllReceiptsTx")


@router.post("/invoices/{invoice_id}/receipts", status_code=201)
def create_receipt_for_invoice(
    invoice_id: int, body: ReceiptIn, db: Database = Depends(get_db)
) -> dict[str, Any]:
    return db.call_proc_row(
        "CreateReceiptByIdTx",
        [invoice_id, body.amount, body.method, body.notes, body.receipt_date],
    )


@router.post("/receipts", status_code=201)
def create_receipt(body: ReceiptByCodeIn, db: Database = Depends(get_db)) -> dict[str, Any]:
    return db.call_proc_row(
        "CreateReceiptByCodeSafe",
        [body.invoice_code, body.amount, body.method, body.notes, body.receipt_date],
    )


@router.patch("/receipts/{receipt_id}")
def update_receipt(
    receipt_id: int, body: ReceiptPatch, db: Database = Depends(get_db)
) -> dict[str, Any]:
    return db.call_proc_row(
        "UpdateReceiptAmountTx", [receipt_id, body.amount, body.method, body.notes]
    )


@router.delete("/receipts/{receipt_id}")
def delete_receipt(receipt_id: int, db: Database = Depends(get_db)) -> dict[str, Any]:
    return db.call_proc_row("DeleteReceiptTx", [receipt_id]) or {"ok": True}
