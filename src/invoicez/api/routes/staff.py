"""Staff routes: /api/staff."""

from typing import Any

from fastapi import APIRouter, Depends

from invoicez.api.deps import get_db
from invoicez.api.schemas import StaffIn, StaffPatch
from invoicez.db import Database, NotFoundError

router = APIRouter(prefix="/staff", tags=["staff"])


@router.get("")
def list_staff(search: str | None = None, db: Database = Depends(get_db)) -> list[dict[str, Any]]:
    return db.call_proc_first("SearchStaffTx", [search])


@router.get("/{staff_id}")
def get_staff(staff_id: int, db: Database = Depends(get_db)) -> dict[str, Any]:
    row = db.call_proc_row("GetStaffByIdTx", [staff_id])
    if row is None:
        raise NotFoundError("Staff not found")
    return row


@router.post("", status_code=201)
def create_staff(body: StaffIn, db: Database = Depends(get_db)) -> dict[str, Any]:
    return db.call_proc_row("CreateStaffTx", body.params())


@router.patch("/{staff_id}")
def update_staff(staff_id: int, body: StaffPatch, db: Database = Depends(get_db)) -> dict[str, Any]:
    return db.call_proc_row("UpdateStaffTx", [staff_id, *body.params()])


@router.delete("/{staff_id}")
def delete_staff(staff_id: int, db: Database = Depends(get_db)) -> dict[str, Any]:
    return db.call_proc_row("DeleteStaffTx", [staff_id]) or {"ok": True}
