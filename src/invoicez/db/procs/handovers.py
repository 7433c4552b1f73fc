"""Handover letter procedures.

A handover letter records that a staff member (identified by NIM) handed over
the goods or work of one invoice.
"""

from typing import Any

from sqlalchemy import Connection, select

from invoicez.db.procedures import NotFoundError, ResultSet, Row, procedure, rows
from invoicez.db.procs.common import (
    as_date,
    as_id,
    clean_text,
    invoice_by_code,
    staff_id_by_nim,
)
from invoicez.db.schema import handovers, invoices, staff


def _handovers_select():
    return select(
        handovers,
        invoices.c.InvoiceCode,
        staff.c.NIM.label("StaffNIM"),
        staff.c.Name.label("StaffName"),
    ).select_from(
        handovers.join(invoices, invoices.c.InvoiceID == handovers.c.InvoiceID).join(
            staff, staff.c.StaffID == handovers.c.StaffID
        )
    )


def handovers_for_invoice(conn: Connection, invoice_id: int) -> ResultSet:
    stmt = (
        _handovers_select()
        .where(handovers.c.InvoiceID == invoice_id)
        .order_by(handovers.c.LetterDate, handovers.c.LetterID)
    )
    return rows(conn.execute(stmt))


def _get(conn: Connection, letter_id: int) -> Row | None:
    found = rows(conn.execute(_handovers_select().where(handovers.c.LetterID == letter_id)))
    return found[0] if found else None


@procedure("ListHandoverByCodeTx")
def list_handovers_by_code(conn: Connection, code: Any) -> list[ResultSet]:
    invoice = invoice_by_code(conn, code)
    return [handovers_for_invoice(conn, invoice["InvoiceID"])]


@procedure("CreateHandoverByCodeSafe")
def create_handover(
    conn: Connection,
    code: Any,
    staff_nim: Any,
    description: Any = None,
    letter_date: Any = None,
) -> list[ResultSet]:
    invoice = invoice_by_code(conn, code)
    values: dict[str, Any] = {
        "InvoiceID": invoice["InvoiceID"],
        "StaffID": staff_id_by_nim(conn, staff_nim),
        "Description": clean_text(description),
    }
    if letter_date is not None:
        values["LetterDate"] = as_date(letter_date, "letterDate")
    result = conn.execute(handovers.insert().values(**values))
    return [[_get(conn, result.inserted_primary_key[0])]]


@procedure("GetHandoverByIdTx")
def get_handover(conn: Connection, letter_id: Any) -> list[ResultSet]:
    found = _get(conn, as_id(letter_id, "id"))
    return [[found] if found else []]


@procedure("UpdateHandoverTx")
def update_handover(
    conn: Connection,
    letter_id: Any,
    letter_date: Any = None,
    staff_nim: Any = None,
    description: Any = None,
) -> list[ResultSet]:
    letter_id = as_id(letter_id, "id")
    if _get(conn, letter_id) is None:
        raise NotFoundError("Handover letter not found")

    values: dict[str, Any] = {}
    if letter_date is not None:
        values["LetterDate"] = as_date(letter_date, "letterDate")
    if staff_nim is not None:
        values["StaffID"] = staff_id_by_nim(conn, staff_nim)
    if description is not None:
        values["Description"] = clean_text(description)
    if values:
        conn.execute(handovers.update().where(handovers.c.LetterID == letter_id).values(**values))
    return [[_get(conn, letter_id)]]


@procedure("DeleteHandoverTx")
def delete_handover(conn: Connection, letter_id: Any) -> list[ResultSet]:
    letter_id = as_id(letter_id, "id")
    existing = _get(conn, letter_id)
    if existing is None:
        raise NotFoundError("Handover letter not found")

    conn.execute(handovers.delete().where(handovers.c.LetterID == letter_id))
    return [[{"ok": True, "LetterID": letter_id, "InvoiceCode": existing["InvoiceCode"]}]]
