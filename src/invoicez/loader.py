"""Bulk import from the CSV exports of the old spreadsheet.

``load_directory`` expects up to four files in one directory:

- ``clients.csv``: Name, Contact
- ``staff.csv``: Name, NIM, Role, Type, Contact
- ``products.csv``: Name, Description, UnitPrice, Category, Type
- ``invoices_items.csv``: one row per line item, with the invoice header
  repeated on each row (InvoiceType, InvoiceDate, ClientName, ClientContact,
  StaffNIM, DownPayment, Status, Notes, ItemDescription, Quantity, UnitPrice,
  PurchaseLocation, PaymentAmount, PaymentMethod, PaymentNotes)

Every row goes through the same procedures the API uses.
"""

import csv
from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path

import structlog

from invoicez.db import ConflictError, Database, ProcedureError

logger = structlog.get_logger(__name__)

HEADER_FIELDS = (
    "InvoiceType",
    "InvoiceDate",
    "ClientName",
    "ClientContact",
    "StaffNIM",
    "DownPayment",
    "Status",
    "Notes",
)

# ISO first; the rest are the layouts found in older spreadsheet exports.
DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%Y/%m/%d", "%m-%d-%Y")


def read_csv(path: Path) -> list[dict[str, str]]:
    """Rows of ``path`` keyed by header, values stripped, blank lines dropped."""
    with path.open(newline="", encoding="utf-8-sig") as f:
        return [
            {key.strip(): (value or "").strip() for key, value in row.items() if key}
            for row in csv.DictReader(f)
            if any((value or "").strip() for value in row.values())
        ]


def _number(value: str | None, default: float = 0) -> float:
    return float(value) if value else default


def load_clients(db: Database, path: Path) -> dict[str, int]:
    count = 0
    for row in read_csv(path):
        if not row.get("Name"):
            logger.warning("client_row_skipped", reason="missing name", row=row)
            continue
        db.call_proc_sets("CreateClientTx", [row["Name"], row.get("Contact") or None])
        count += 1
    return {"clients": count}


def load_staff(db: Database, path: Path) -> dict[str, int]:
    count = 0
    for row in read_csv(path):
        if not row.get("Name"):
            logger.warning("staff_row_skipped", reason="missing name", row=row)
            continue
        try:
            db.call_proc_sets(
                "CreateStaffTx",
                [
                    row["Name"],
                    row.get("NIM") or None,
                    row.get("Role") or None,
                    row.get("Type") or None,
                    row.get("Contact") or None,
                ],
            )
        except ConflictError as e:
            logger.warning("staff_row_skipped", reason=e.message, nim=row.get("NIM"))
            continue
        count += 1
    return {"staff": count}


def load_products(db: Database, path: Path) -> dict[str, int]:
    count = 0
    for row in read_csv(path):
        if not row.get("Name"):
            logger.warning("product_row_skipped", reason="missing name", row=row)
            continue
        db.call_proc_sets(
            "CreateProductTx",
            [
                row["Name"],
                row.get("Description") or None,
                _number(row.get("UnitPrice")),
                row.get("Category") or None,
                row.get("Type") or None,
            ],
        )
        count += 1
    return {"products": count}


def group_invoice_rows(rows: list[dict[str, str]]) -> list[list[dict[str, str]]]:
    """Group item rows that share the same invoice header, in file order."""
    groups: dict[tuple[str, ...], list[dict[str, str]]] = {}
    for row in rows:
        key = tuple(row.get(field, "") for field in HEADER_FIELDS)
        groups.setdefault(key, []).append(row)
    return list(groups.values())


def _resolve_client(db: Database, name: str, contact: str) -> int | None:
    if not name:
        return None
    found = db.call_proc_row(
        "GetClientIDsByExactTx", [[{"Name": name, "Contact": contact or None}]]
    )
    return found["ClientID"] if found else None


def _resolve_staff(db: Database, nim: str) -> int | None:
    if not nim:
        return None
    found = db.call_proc_row("GetStaffIDsByNIMsTx", [[nim]])
    return found["StaffID"] if found else None


def _invoice_date(value: str) -> date | str:
    """Parse the date layouts the spreadsheet exports used; anything else passes through."""
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return value


def _create_invoice(db: Database, group: list[dict[str, str]]) -> tuple[str, int]:
    header = group[0]
    items = [
        {
            "Description": row.get("ItemDescription") or None,
            "Quantity": _number(row.get("Quantity")),
            "UnitPrice": _number(row.get("UnitPrice")),
            "PurchaseLocation": row.get("PurchaseLocation") or None,
        }
        for row in group
    ]
    created = db.call_proc_row(
        "CreateInvoiceWithItems",
        [
            header["InvoiceType"],
            _invoice_date(header["InvoiceDate"]),
            _resolve_client(db, header.get("ClientName", ""), header.get("ClientContact", "")),
            _resolve_staff(db, header.get("StaffNIM", "")),
            _number(header.get("DownPayment")),
            header.get("Status") or "Sent",
            header.get("Notes") or None,
            items,
        ],
    )
    return created["InvoiceCode"], len(items)


def load_invoices(db: Database, path: Path) -> dict[str, int]:
    counts = {"invoices": 0, "items": 0, "receipts": 0}
    for group in group_invoice_rows(read_csv(path)):
        header = group[0]
        if not header.get("InvoiceType") or not header.get("InvoiceDate"):
            logger.warning(
                "invoice_rows_skipped", reason="missing type or date", rows=len(group)
            )
            continue

        # Each group is its own transaction; a rejected one leaves nothing behind.
        try:
            code, item_count = _create_invoice(db, group)
        except (ProcedureError, ValueError) as e:
            logger.warning(
                "invoice_rows_skipped",
                reason=str(e),
                rows=len(group),
                invoice_type=header["InvoiceType"],
                invoice_date=header["InvoiceDate"],
            )
            continue
        counts["invoices"] += 1
        counts["items"] += item_count

        try:
            payment = _number(header.get("PaymentAmount"))
            if payment <= 0:
                continue
            db.call_proc_sets(
                "CreateReceiptByCodeSafe",
                [
                    code,
                    payment,
                    header.get("PaymentMethod") or "Transfer",
                    header.get("PaymentNotes") or "Migrated",
                ],
            )
        except (ProcedureError, ValueError) as e:
            logger.warning("receipt_skipped", code=code, reason=str(e))
        else:
            counts["receipts"] += 1
    return counts


def load_directory(db: Database, base: str | Path) -> dict[str, int]:
    """Import every known CSV found in ``base``; returns counts per entity."""
    base = Path(base)
    counts: dict[str, int] = {
        "clients": 0,
        "staff": 0,
        "products": 0,
        "invoices": 0,
        "items": 0,
        "receipts": 0,
    }
    loaders: list[tuple[str, Callable[[Database, Path], dict[str, int]]]] = [
        ("clients.csv", load_clients),
        ("staff.csv", load_staff),
        ("products.csv", load_products),
        ("invoices_items.csv", load_invoices),
    ]
    for filename, loader in loaders:
        path = base / filename
        if not path.is_file():
            logger.warning("csv_missing", file=str(path))
            continue
        loaded = loader(db, path)
        for key, value in loaded.items():
            counts[key] += value
        logger.info("csv_loaded", file=filename, **loaded)

    logger.info("load_complete", **counts)
    return counts
