"""Handover letter routes: /api/handovers."""

from typing import Any
from urllib.parse import unquote

from fastapi import APIRouter, Depends

from invoicez.api.deps import get_db
from invoicez.api.schemas import HandoverIn, HandoverPatch
from invoicez.db import Database, NotFoundError

router = APIRouter(prefix="/handovers", tags=["handovers"])


@router.get("/by-code/{code:path}")
def list_by_code(code: str, db: Database = Depends(get_db)) -> list[dict[str, Any]]:
    return db.call_proc_first("ListHandoverByCodeTx", [unquote(code).strip()])


@router.post("", status_code=201)
def create_handover(body: HandoverIn, db: Database = Depends(get_db)) -> dict[str, Any]:
    return db.call_proc_row(
        "CreateHandoverByCodeSafe",
        [body.invoice_code, body.staff_nim, body.description, body.letter_date],
    )


@router.get("/{letter_id}")
def get_handover(letter_id: int, db: Database = Depends(get_db)) -> dict[str, Any]:
    row = db.call_proc_row("GetHandoverByIdTx", [letter_id])
    if row is None:
        raise NotFoundError("Handover letter not found")
    return row


@router.patch("/{letter_id}")
def update_handover(
    letter_id: int, body: HandoverPatch, db: Database = Depends(get_db)
) -> dict[str, Any]:
    return db.call_proc_row(
        "UpdateHandoverTx", [letter_id, body.letter_date, body.staff_nim, body.description]
    )


@router.delete("/{letter_id}")
def delete_handover(letter_id: int, db: Database = Depends(get_db)) -> dict[str, Any]:
    return db.call_proc_row("DeleteHandoverTx", [letter_id]) or {"ok": True}
