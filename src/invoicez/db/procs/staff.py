"""Staff procedures."""

import json
from typing import Any

from sqlalchemy import Connection, func, or_, select

from invoicez.db.procedures import ConflictError, NotFoundError, ResultSet, procedure, rows
from invoicez.db.procs.common import as_id, clean_text, require_text
from invoicez.db.schema import DEFAULT_STAFF_TYPE, handovers, invoices, staff


def _get(conn: Connection, staff_id: int) -> ResultSet:
    return rows(conn.execute(select(staff).where(staff.c.StaffID == staff_id)))


def _check_nim_free(conn: Connection, nim: str | None, staff_id: int | None = None) -> None:
    if nim is None:
        return
    stmt = select(staff.c.StaffID).where(staff.c.NIM == nim)
    if staff_id is not None:
        stmt = stmt.where(staff.c.StaffID != staff_id)
    if conn.execute(stmt).first() is not None:
        raise ConflictError(f"NIM already exists: {nim}")


@procedure("SearchStaffTx")
def search_staff(conn: Connection, q: str | None = None) -> list[ResultSet]:
    """List staff, optionally filtered on name, NIM, role or contact."""
    stmt = select(staff).order_by(staff.c.Name, staff.c.StaffID)
    q = clean_text(q)
    if q:
        pattern = f"%{q.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(staff.c.Name).like(pattern),
                func.lower(func.coalesce(staff.c.NIM, "")).like(pattern),
                func.lower(func.coalesce(staff.c.Role, "")).like(pattern),
                func.lower(func.coalesce(staff.c.Contact, "")).like(pattern),
            )
        )
    return [rows(conn.execute(stmt))]


@procedure("GetStaffByIdTx")
def get_staff(conn: Connection, staff_id: Any) -> list[ResultSet]:
    return [_get(conn, as_id(staff_id, "id"))]


@procedure("CreateStaffTx")
def create_staff(
    conn: Connection,
    name: Any,
    nim: Any = None,
    role: Any = None,
    staff_type: Any = None,
    contact: Any = None,
) -> list[ResultSet]:
    nim = clean_text(nim)
    _check_nim_free(conn, nim)
    result = conn.execute(
        staff.insert().values(
            Name=require_text(name, "name"),
            NIM=nim,
            Role=clean_text(role),
            Type=clean_text(staff_type) or DEFAULT_STAFF_TYPE,
            Contact=clean_text(contact),
        )
    )
    return [_get(conn, result.inserted_primary_key[0])]


@procedure("UpdateStaffTx")
def update_staff(
    conn: Connection,
    staff_id: Any,
    name: Any = None,
    nim: Any = None,
    role: Any = None,
    staff_type: Any = None,
    contact: Any = None,
) -> list[ResultSet]:
    staff_id = as_id(staff_id, "id")
    if not _get(conn, staff_id):
        raise NotFoundError("Staff not found")

    values: dict[str, Any] = {}
    if name is not None:
        values["Name"] = require_text(name, "name")
    if nim is not None:
        values["NIM"] = clean_text(nim)
        _check_nim_free(conn, values["NIM"], staff_id)
    if role is not None:
        values["Role"] = clean_text(role)
    if staff_type is not None:
        values["Type"] = clean_text(staff_type) or DEFAULT_STAFF_TYPE
    if contact is not None:
        values["Contact"] = clean_text(contact)
    if values:
        conn.execute(staff.update().where(staff.c.StaffID == staff_id).values(**values))
    return [_get(conn, staff_id)]


@procedure("DeleteStaffTx")
def delete_staff(conn: Connection, staff_id: Any) -> list[ResultSet]:
    staff_id = as_id(staff_id, "id")
    if not _get(conn, staff_id):
        raise NotFoundError("Staff not found")

    invoice_refs = conn.execute(
        select(func.count()).select_from(invoices).where(invoices.c.StaffID == staff_id)
    ).scalar_one()
    letter_refs = conn.execute(
        select(func.count()).select_from(handovers).where(handovers.c.StaffID == staff_id)
    ).scalar_one()
    if invoice_refs or letter_refs:
        raise ConflictError(
            f"Staff is referenced by {invoice_refs} invoice(s) and {letter_refs} handover letter(s)"
        )

    conn.execute(staff.delete().where(staff.c.StaffID == staff_id))
    return [[{"ok": True, "StaffID": staff_id}]]


@procedure("GetStaffIDsByNIMsTx")
def staff_ids_by_nims(conn: Connection, nims: Any) -> list[ResultSet]:
    """Resolve a list (or JSON text) of NIMs to staff ids, in input order."""
    if isinstance(nims, str):
        nims = json.loads(nims)

    result: ResultSet = []
    for nim in nims or []:
        nim = clean_text(nim)
        found = None
        if nim is not None:
            found = conn.execute(select(staff.c.StaffID).where(staff.c.NIM == nim)).first()
        result.append({"NIM": nim, "StaffID": found.StaffID if found else None})
    return [result]
