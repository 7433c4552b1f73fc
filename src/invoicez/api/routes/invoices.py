"""Invoice routes.

Invoice codes contain ``/`` (``FOLKS/SALE/10/001``), so routes that take a
code use the ``path`` converter and accept the code raw or URL-encoded. The
``/items``, ``/receipts`` and ``/handovers`` listings are declared before the
bare ``/invoices/{code}`` route so they match first.
"""

from typing import Any
from urllib.parse import unquote

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from invoicez.api.deps import get_db
from invoicez.api.schemas import InvoiceHeaderPatch, InvoiceIn, InvoiceItemIn, InvoiceItemPatch
from invoicez.db import Database, ValidationError, pick_invoice_sets

router = APIRouter(tags=["invoices"])


def _code(raw: str) -> str:
    return unquote(raw).strip()


def _aggregate(db: Database, code: str) -> Any:
    sets = db.get_invoice(code)
    if not sets["summary"]:
        return JSONResponse(status_code=404, content={"error": "Invoice not found", "code": code})
    return sets


@router.get("/invoices")
def search_invoices(
    q: str | None = None,
    status: str | None = None,
    type: str | None = None,
    db: Database = Depends(get_db),
) -> list[dict[str, Any]]:
    """Invoice list with Subtotal, TotalDue, TotalPaid and Balance."""
    return db.call_proc_first("SearchInvoicesTx", [q, status, type])


@router.get("/invoice")
def get_invoice_by_query(code: str = "", db: Database = Depends(get_db)) -> Any:
    code = _code(code)
    if not code:
        raise ValidationError("missing ?code=")
    return _aggregate(db, code)


@router.post("/invoices", status_code=201)
def create_invoice(body: InvoiceIn, db: Database = Depends(get_db)) -> dict[str, Any]:
    items = [item.to_row() for item in body.items] if body.items is not None else None
    result = db.call_proc_row("CreateInvoiceWithItems", [*body.header_params(), items])
    return {"ok": True, "result": result}


@router.post("/invoices/empty", status_code=201)
def create_empty_invoice(body: InvoiceIn, db: Database = Depends(get_db)) -> dict[str, Any]:
    """Same body as ``POST /invoices``; any ``items`` are ignored."""
    result = db.call_proc_row("CreateEmptyInvoice", body.header_params())
    return {"ok": True, "result": result}


@router.post("/invoices/{invoice_id}/items", status_code=201)
def add_invoice_item(
    invoice_id: int, body: InvoiceItemIn, db: Database = Depends(get_db)
) -> dict[str, Any]:
    return db.call_proc_row("AddInvoiceItemTx", [invoice_id, *body.params()])


@router.patch("/invoice-items/{item_id}")
def update_invoice_item(
    item_id: int, body: InvoiceItemPatch, db: Database = Depends(get_db)
) -> dict[str, Any]:
    return db.call_proc_row("UpdateInvoiceItemTx", [item_id, *body.params()])


@router.delete("/invoice-items/{item_id}")
def delete_invoice_item(item_id: int, db: Database = Depends(get_db)) -> dict[str, Any]:
    db.call_proc_sets("DeleteInvoiceItemTx", [item_id])
    return {"ok": True, "ItemID": item_id}


@router.get("/invoices/{code:path}/items")
def list_items(code: str, db: Database = Depends(get_db)) -> list[dict[str, Any]]:
    return db.call_proc_first("ListItemsByCodeTx", [_code(code)])


@router.get("/invoices/{code:path}/receipts")
def list_receipts(code: str, db: Database = Depends(get_db)) -> list[dict[str, Any]]:
    return db.call_proc_first("ListReceiptsByCodeTx", [_code(code)])


@router.get("/invoices/{code:path}/handovers")
def list_handovers(code: str, db: Database = Depends(get_db)) -> list[dict[str, Any]]:
    return db.call_proc_first("ListHandoverByCodeTx", [_code(code)])


@router.get("/invoices/{code:path}")
def get_invoice(code: str, db: Database = Depends(get_db)) -> Any:
    return _aggregate(db, _code(code))


@router.patch("/invoices/{code:path}")
def update_invoice_header(
    code: str, body: InvoiceHeaderPatch, db: Database = Depends(get_db)
) -> dict[str, Any]:
    """Patch header fields and return the refreshed invoice as ``detail``."""
    sets = db.call_proc_sets("UpdateInvoiceHeaderByCodeTx", [_code(code), *body.params()])
    return {"ok": True, "detail": pick_invoice_sets(sets)}


@router.delete("/invoices/{code:path}")
def delete_invoice(code: str, db: Database = Depends(get_db)) -> dict[str, Any]:
    return db.call_proc_row("DeleteInvoiceByCodeTx", [_code(code)]) or {"ok": True}
