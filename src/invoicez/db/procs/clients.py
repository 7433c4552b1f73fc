"""Client procedures."""

import json
from typing import Any

from sqlalchemy import Connection, and_, func, or_, select

from invoicez.db.procedures import ConflictError, NotFoundError, ResultSet, procedure, rows
from invoicez.db.procs.common import as_id, clean_text, require_text
from invoicez.db.schema import clients, invoices


def _get(conn: Connection, client_id: int) -> ResultSet:
    return rows(conn.execute(select(clients).where(clients.c.ClientID == client_id)))


@procedure("SearchClientsTx")
def search_clients(conn: Connection, q: str | None = None) -> list[ResultSet]:
    """List every client, or those whose name or contact contains ``q``."""
    stmt = select(clients).order_by(clients.c.Name, clients.c.ClientID)
    q = clean_text(q)
    if q:
        pattern = f"%{q.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(clients.c.Name).like(pattern),
                func.lower(func.coalesce(clients.c.Contact, "")).like(pattern),
            )
        )
    return [rows(conn.execute(stmt))]


@procedure("GetClientByIdTx")
def get_client(conn: Connection, client_id: Any) -> list[ResultSet]:
    return [_get(conn, as_id(client_id, "id"))]


@procedure("CreateClientTx")
def create_client(conn: Connection, name: Any, contact: Any = None) -> list[ResultSet]:
    result = conn.execute(
        clients.insert().values(Name=require_text(name, "name"), Contact=clean_text(contact))
    )
    return [_get(conn, result.inserted_primary_key[0])]


@procedure("UpdateClientTx")
def update_client(
    conn: Connection, client_id: Any, name: Any = None, contact: Any = None
) -> list[ResultSet]:
    """Update the given fields; ``None`` leaves a field unchanged."""
    client_id = as_id(client_id, "id")
    if not _get(conn, client_id):
        raise NotFoundError("Client not found")

    values: dict[str, Any] = {}
    if name is not None:
        values["Name"] = require_text(name, "name")
    if contact is not None:
        values["Contact"] = clean_text(contact)
    if values:
        conn.execute(clients.update().where(clients.c.ClientID == client_id).values(**values))
    return [_get(conn, client_id)]


@procedure("DeleteClientTx")
def delete_client(conn: Connection, client_id: Any) -> list[ResultSet]:
    client_id = as_id(client_id, "id")
    if not _get(conn, client_id):
        raise NotFoundError("Client not found")

    in_use = conn.execute(
        select(func.count()).select_from(invoices).where(invoices.c.ClientID == client_id)
    ).scalar_one()
    if in_use:
        raise ConflictError(f"Client is referenced by {in_use} invoice(s)")

    conn.execute(clients.delete().where(clients.c.ClientID == client_id))
    return [[{"ok": True, "ClientID": client_id}]]


@procedure("GetClientIDsByExactTx")
def client_ids_by_exact(conn: Connection, pairs: Any) -> list[ResultSet]:
    """Resolve ``[{"Name", "Contact"}, ...]`` (list or JSON text) to client ids.

    Rows come back in input order; unmatched pairs yield ``ClientID = None``.
    """
    if isinstance(pairs, str):
        pairs = json.loads(pairs)

    result: ResultSet = []
    for pair in pairs or []:
        name = clean_text(pair.get("Name"))
        contact = clean_text(pair.get("Contact"))
        contact_match = (
            clients.c.Contact.is_(None) if contact is None else clients.c.Contact == contact
        )
        found = conn.execute(
            select(clients.c.ClientID)
            .where(and_(clients.c.Name == name, contact_match))
            .order_by(clients.c.ClientID)
            .limit(1)
        ).first()
        result.append(
            {"Name": name, "Contact": contact, "ClientID": found.ClientID if found else None}
        )
    return [result]
