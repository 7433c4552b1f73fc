"""Invoice header and line-item procedures."""

from typing import Any

import structlog
from sqlalchemy import Connection, func, or_, select

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
    as_quantity,
    check_status,
    clean_text,
    ensure_client,
    ensure_staff,
    invoice_by_code,
    invoice_by_id,
    invoice_totals,
    subtotal_column,
    sync_paid_status,
    total_paid_column,
    touch_invoice,
    with_financials,
)
from invoicez.db.procs.handovers import handovers_for_invoice
from invoicez.db.procs.receipts import receipts_for_invoice
from invoicez.db.schema import clients, handovers, invoice_items, invoices, products, receipts, staff
from invoicez.numbering import DEFAULT_CODE_PREFIX, allocate_invoice_code, normalize_type

logger = structlog.get_logger(__name__)

PAID_WITH_BALANCE = "Cannot set status to Paid while there is remaining balance"


def _summary_select():
    return select(
        invoices,
        clients.c.Name.label("ClientName"),
        clients.c.Contact.label("ClientContact"),
        staff.c.Name.label("StaffName"),
        staff.c.NIM.label("StaffNIM"),
        subtotal_column(),
        total_paid_column(),
    ).select_from(
        invoices.outerjoin(clients, clients.c.ClientID == invoices.c.ClientID).outerjoin(
            staff, staff.c.StaffID == invoices.c.StaffID
        )
    )


def _items_for_invoice(conn: Connection, invoice_id: int) -> ResultSet:
    stmt = (
        select(
            invoice_items,
            (invoice_items.c.Quantity * invoice_items.c.UnitPrice).label("LineTotal"),
            products.c.Name.label("ProductName"),
        )
        .select_from(
            invoice_items.outerjoin(products, products.c.ProductID == invoice_items.c.ProductID)
        )
        .where(invoice_items.c.InvoiceID == invoice_id)
        .order_by(invoice_items.c.ItemID)
    )
    items = rows(conn.execute(stmt))
    for item in items:
        item["LineTotal"] = round(float(item["LineTotal"] or 0), 2)
    return items


def _item_row(conn: Connection, item_id: int) -> Row | None:
    stmt = select(
        invoice_items,
        (invoice_items.c.Quantity * invoice_items.c.UnitPrice).label("LineTotal"),
    ).where(invoice_items.c.ItemID == item_id)
    found = conn.execute(stmt).first()
    if found is None:
        return None
    item = dict(found._mapping)
    item["LineTotal"] = round(float(item["LineTotal"] or 0), 2)
    return item


def _field(item: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if item.get(key) is not None:
            return item[key]
    return None


def _quantity(value: Any) -> float:
    if value is None:
        raise ValidationError("Quantity is required")
    quantity = as_quantity(value)
    if quantity <= 0:
        raise ValidationError("Quantity must be > 0")
    return quantity


def _unit_price(value: Any) -> float:
    if value is None:
        raise ValidationError("UnitPrice is required")
    price = as_amount(value, "UnitPrice")
    if price < 0:
        raise ValidationError("UnitPrice must be >= 0")
    return price


def _down_payment(value: Any) -> float:
    amount = as_amount(value or 0, "DownPaymentAmount")
    if amount < 0:
        raise ValidationError("DownPaymentAmount must be >= 0")
    return amount


def _check_open(invoice: Row) -> None:
    if invoice["Status"] == "Cancelled":
        raise ConflictError("Invoice is cancelled")


def _check_down_payment(conn: Connection, invoice_id: int) -> Row:
    """Reject a down payment above the subtotal once the invoice has items."""
    totals = invoice_totals(conn, invoice_id)
    has_items = (
        conn.execute(
            select(invoice_items.c.ItemID).where(invoice_items.c.InvoiceID == invoice_id).limit(1)
        ).first()
        is not None
    )
    if has_items and totals["DownPaymentAmount"] > totals["Subtotal"] + EPSILON:
        raise ValidationError("DownPaymentAmount exceeds subtotal")
    return totals


def _check_totals(conn: Connection, invoice_id: int, status: str) -> None:
    totals = _check_down_payment(conn, invoice_id)
    if status == "Paid" and totals["Balance"] > EPSILON:
        raise ConflictError(PAID_WITH_BALANCE)


def _insert_item(
    conn: Connection,
    invoice_id: int,
    description: Any,
    quantity: Any,
    unit_price: Any,
    purchase_location: Any = None,
    product_id: Any = None,
) -> int:
    product = None
    if product_id is not None:
        product_id = as_id(product_id, "productId")
        product = conn.execute(
            select(products).where(products.c.ProductID == product_id)
        ).first()
        if product is None:
            raise NotFoundError("Product not found")

    # A catalog product supplies the text and price the caller left out.
    description = clean_text(description) or (product.Name if product else None)
    if description is None:
        raise ValidationError("Description is required")
    if unit_price is None and product is not None:
        unit_price = product.UnitPrice

    result = conn.execute(
        invoice_items.insert().values(
            InvoiceID=invoice_id,
            ProductID=product_id,
            Description=description,
            Quantity=_quantity(quantity),
            UnitPrice=_unit_price(unit_price),
            PurchaseLocation=clean_text(purchase_location),
        )
    )
    return result.inserted_primary_key[0]


def _create_invoice(
    conn: Connection,
    invoice_type: Any,
    invoice_date: Any,
    client_id: Any,
    staff_id: Any,
    down_payment: Any,
    status: Any,
    notes: Any,
    items: list[dict[str, Any]] | None,
) -> list[ResultSet]:
    try:
        invoice_type = normalize_type(invoice_type)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    invoice_date = as_date(invoice_date, "invoiceDate")
    status = check_status(status)
    client_id = ensure_client(conn, client_id)
    staff_id = ensure_staff(conn, staff_id)

    prefix = conn.info.get("invoice_code_prefix", DEFAULT_CODE_PREFIX)
    code = allocate_invoice_code(conn, prefix, invoice_type, invoice_date)
    result = conn.execute(
        invoices.insert().values(
            InvoiceCode=code,
            InvoiceType=invoice_type,
            InvoiceDate=invoice_date,
            ClientID=client_id,
            StaffID=staff_id,
            DownPaymentAmount=_down_payment(down_payment),
            Status=status,
            Notes=clean_text(notes),
        )
    )
    invoice_id = result.inserted_primary_key[0]

    for item in items or []:
        if not isinstance(item, dict):
            raise ValidationError("items must be a list of objects")
        _insert_item(
            conn,
            invoice_id,
            _field(item, "Description", "description"),
            _field(item, "Quantity", "quantity"),
            _field(item, "UnitPrice", "unitPrice"),
            _field(item, "PurchaseLocation", "purchaseLocation"),
            _field(item, "ProductID", "productId"),
        )

    _check_totals(conn, invoice_id, status)
    logger.info("invoice_created", code=code, items=len(items or []))
    return [[{"InvoiceID": invoice_id, "InvoiceCode": code}]]


@procedure("CreateInvoiceWithItems")
def create_invoice_with_items(
    conn: Connection,
    invoice_type: Any,
    invoice_date: Any,
    client_id: Any = None,
    staff_id: Any = None,
    down_payment: Any = 0,
    status: Any = "Draft",
    notes: Any = None,
    items: list[dict[str, Any]] | None = None,
) -> list[ResultSet]:
    """Create an invoice and its line items; returns ``InvoiceID`` and ``InvoiceCode``."""
    return _create_invoice(
        conn, invoice_type, invoice_date, client_id, staff_id, down_payment, status, notes, items
    )


@procedure("CreateEmptyInvoice")
def create_empty_invoice(
    conn: Connection,
    invoice_type: Any,
    invoice_date: Any,
    client_id: Any = None,
    staff_id: Any = None,
    down_payment: Any = 0,
    status: Any = "Draft",
    notes: Any = None,
) -> list[ResultSet]:
    return _create_invoice(
        conn, invoice_type, invoice_date, client_id, staff_id, down_payment, status, notes, None
    )


@procedure("SearchInvoicesTx")
def search_invoices(
    conn: Connection, q: Any = None, status: Any = None, invoice_type: Any = None
) -> list[ResultSet]:
    """Invoice list with financials, newest first."""
    stmt = _summary_select().order_by(invoices.c.InvoiceDate.desc(), invoices.c.InvoiceID.desc())
    q = clean_text(q)
    if q:
        pattern = f"%{q.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(invoices.c.InvoiceCode).like(pattern),
                func.lower(func.coalesce(clients.c.Name, "")).like(pattern),
                func.lower(func.coalesce(staff.c.Name, "")).like(pattern),
                func.lower(func.coalesce(invoices.c.Notes, "")).like(pattern),
            )
        )
    if clean_text(status):
        stmt = stmt.where(invoices.c.Status == check_status(status))
    invoice_type = clean_text(invoice_type)
    if invoice_type:
        stmt = stmt.where(invoices.c.InvoiceType == invoice_type.upper())
    return [[with_financials(row) for row in rows(conn.execute(stmt))]]


@procedure("GetInvoiceByCodeTx")
def get_invoice_by_code(conn: Connection, code: Any) -> list[ResultSet]:
    """Four result sets: summary, items, receipts, handovers (all empty if unknown)."""
    code = clean_text(code)
    summary = rows(conn.execute(_summary_select().where(invoices.c.InvoiceCode == code)))
    if not summary:
        return [[], [], [], []]

    invoice_id = summary[0]["InvoiceID"]
    return [
        [with_financials(summary[0])],
        _items_for_invoice(conn, invoice_id),
        receipts_for_invoice(conn, invoice_id),
        handovers_for_invoice(conn, invoice_id),
    ]


@procedure("ListItemsByCodeTx")
def list_items_by_code(conn: Connection, code: Any) -> list[ResultSet]:
    invoice = invoice_by_code(conn, code)
    return [_items_for_invoice(conn, invoice["InvoiceID"])]


@procedure("AddInvoiceItemTx")
def add_invoice_item(
    conn: Connection,
    invoice_id: Any,
    description: Any,
    quantity: Any,
    unit_price: Any = None,
    purchase_location: Any = None,
    product_id: Any = None,
) -> list[ResultSet]:
    invoice = invoice_by_id(conn, invoice_id)
    _check_open(invoice)
    item_id = _insert_item(
        conn, invoice["InvoiceID"], description, quantity, unit_price, purchase_location, product_id
    )
    touch_invoice(conn, invoice["InvoiceID"])
    _check_down_payment(conn, invoice["InvoiceID"])
    sync_paid_status(conn, invoice["InvoiceID"])
    return [[_item_row(conn, item_id)]]


@procedure("UpdateInvoiceItemTx")
def update_invoice_item(
    conn: Connection,
    item_id: Any,
    description: Any = None,
    quantity: Any = None,
    unit_price: Any = None,
    purchase_location: Any = None,
    product_id: Any = None,
) -> list[ResultSet]:
    item_id = as_id(item_id, "itemId")
    item = _item_row(conn, item_id)
    if item is None:
        raise NotFoundError("Invoice item not found")
    invoice = invoice_by_id(conn, item["InvoiceID"])
    _check_open(invoice)

    values: dict[str, Any] = {}
    if description is not None:
        values["Description"] = clean_text(description)
        if values["Description"] is None:
            raise ValidationError("Description is required")
    if quantity is not None:
        values["Quantity"] = _quantity(quantity)
    if unit_price is not None:
        values["UnitPrice"] = _unit_price(unit_price)
    if purchase_location is not None:
        values["PurchaseLocation"] = clean_text(purchase_location)
    if product_id is not None:
        values["ProductID"] = as_id(product_id, "productId")
        found = conn.execute(
            select(products.c.ProductID).where(products.c.ProductID == values["ProductID"])
        ).first()
        if found is None:
            raise NotFoundError("Product not found")
    if values:
        conn.execute(
            invoice_items.update().where(invoice_items.c.ItemID == item_id).values(**values)
        )
        touch_invoice(conn, invoice["InvoiceID"])
        _check_down_payment(conn, invoice["InvoiceID"])
        sync_paid_status(conn, invoice["InvoiceID"])
    return [[_item_row(conn, item_id)]]


@procedure("DeleteInvoiceItemTx")
def delete_invoice_item(conn: Connection, item_id: Any) -> list[ResultSet]:
    item_id = as_id(item_id, "itemId")
    item = _item_row(conn, item_id)
    if item is None:
        raise NotFoundError("Invoice item not found")
    invoice = invoice_by_id(conn, item["InvoiceID"])
    _check_open(invoice)

    conn.execute(invoice_items.delete().where(invoice_items.c.ItemID == item_id))
    touch_invoice(conn, invoice["InvoiceID"])
    _check_down_payment(conn, invoice["InvoiceID"])
    sync_paid_status(conn, invoice["InvoiceID"])
    return [[item]]


@procedure("UpdateInvoiceHeaderByCodeTx")
def update_invoice_header(
    conn: Connection,
    code: Any,
    invoice_date: Any = None,
    client_id: Any = None,
    staff_id: Any = None,
    down_payment: Any = None,
    status: Any = None,
    notes: Any = None,
) -> list[ResultSet]:
    """Patch header fields; the code itself never changes.

    Returns the refreshed invoice as four result sets.
    """
    invoice = invoice_by_code(conn, code)
    invoice_id = invoice["InvoiceID"]

    values: dict[str, Any] = {}
    if invoice_date is not None:
        values["InvoiceDate"] = as_date(invoice_date, "invoiceDate")
    if client_id is not None:
        values["ClientID"] = ensure_client(conn, client_id)
    if staff_id is not None:
        values["StaffID"] = ensure_staff(conn, staff_id)
    if down_payment is not None:
        values["DownPaymentAmount"] = _down_payment(down_payment)
    if status is not None:
        values["Status"] = check_status(status)
    if notes is not None:
        values["Notes"] = clean_text(notes)

    if values:
        conn.execute(
            invoices.update()
            .where(invoices.c.InvoiceID == invoice_id)
            .values(UpdatedAt=func.current_timestamp(), **values)
        )
        if "Status" in values:
            _check_totals(conn, invoice_id, values["Status"])
        else:
            # A stored Paid status falls back to Sent when the patch reopens a balance.
            _check_down_payment(conn, invoice_id)
            sync_paid_status(conn, invoice_id, promote=False)

    return get_invoice_by_code(conn, invoice["InvoiceCode"])


@procedure("DeleteInvoiceByCodeTx")
def delete_invoice_by_code(conn: Connection, code: Any) -> list[ResultSet]:
    """Delete an invoice together with its items, receipts and handover letters."""
    invoice = invoice_by_code(conn, code)
    invoice_id = invoice["InvoiceID"]

    counts = {}
    for name, table in (
        ("DeletedItems", invoice_items),
        ("DeletedReceipts", receipts),
        ("DeletedHandovers", handovers),
    ):
        counts[name] = conn.execute(table.delete().where(table.c.InvoiceID == invoice_id)).rowcount
    conn.execute(invoices.delete().where(invoices.c.InvoiceID == invoice_id))

    logger.info("invoice_deleted", code=invoice["InvoiceCode"], **counts)
    return [[{"ok": True, "InvoiceCode": invoice["InvoiceCode"], **counts}]]
