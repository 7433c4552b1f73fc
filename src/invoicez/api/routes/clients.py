"""Client routes: /api/clients."""

from typing import Any

from fastapi import APIRouter, Depends

from invoicez.api.deps import get_db
from invoicez.api.schemas import ClientIn, ClientPatch
from invoicez.db import Database, NotFoundError

router = APIRouter(prefix="/clients", tags=["clients"])


@router.get("")
def list_clients(search: str | None = None, db: Database = Depends(get_db)) -> list[dict[str, Any]]:
    """All clients, or those matching ``?search=``."""
    return db.call_proc_first("SearchClientsTx", [search])


@router.get("/{client_id}")
def get_client(client_id: int, db: Database = Depends(get_db)) -> dict[str, Any]:
    row = db.call_proc_row("GetClientByIdTx", [client_id])
    if row is None:
        raise NotFoundError("Client not found")
    return row


@router.post("", status_code=201)
def create_client(body: ClientIn, db: Database = Depends(get_db)) -> dict[str, Any]:
    return db.call_proc_row("CreateClientTx", [body.name, body.contact])


@router.patch("/{client_id}")
def update_client(
    client_id: int, body: ClientPatch, db: Database = Depends(get_db)
) -> dict[str, Any]:
    return db.call_proc_row("UpdateClientTx", [client_id, body.name, body.contact])


@router.delete("/{client_id}")
def delete_client(client_id: int, db: Database = Depends(get_db)) -> dict[str, Any]:
    return db.call_proc_row("DeleteClientTx", [client_id]) or {"ok": True}
