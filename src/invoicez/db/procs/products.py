"""Product and service catalog procedures."""

from typing import Any

from sqlalchemy import Connection, func, or_, select

from invoicez.db.procedures import NotFoundError, ResultSet, ValidationError, procedure, rows
from invoicez.db.procs.common import as_amount, as_id, clean_text, require_text
from invoicez.db.schema import invoice_items, products


def _get(conn: Connection, product_id: int) -> ResultSet:
    return rows(conn.execute(select(products).where(products.c.ProductID == product_id)))


def _unit_price(value: Any) -> float:
    price = as_amount(value, "UnitPrice")
    if price < 0:
        raise ValidationError("UnitPrice must be >= 0")
    return price


@procedure("CreateProductTx")
def create_product(
    conn: Connection,
    name: Any,
    description: Any = None,
    unit_price: Any = None,
    category: Any = None,
    product_type: Any = None,
) -> list[ResultSet]:
    if unit_price is None:
        raise ValidationError("unitPrice is required")
    result = conn.execute(
        products.insert().values(
            Name=require_text(name, "name"),
            Description=clean_text(description),
            UnitPrice=_unit_price(unit_price),
            Category=clean_text(category),
            Type=clean_text(product_type),
        )
    )
    return [_get(conn, result.inserted_primary_key[0])]


@procedure("GetProductByIdTx")
def get_product(conn: Connection, product_id: Any) -> list[ResultSet]:
    return [_get(conn, as_id(product_id, "id"))]


@procedure("SearchProductsTx")
def search_products(
    conn: Connection, q: Any = None, category: Any = None, product_type: Any = None
) -> list[ResultSet]:
    """Filter on free text (name/description) plus exact category and type."""
    stmt = select(products).order_by(products.c.Name, products.c.ProductID)
    q = clean_text(q)
    if q:
        pattern = f"%{q.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(products.c.Name).like(pattern),
                func.lower(func.coalesce(products.c.Description, "")).like(pattern),
            )
        )
    category = clean_text(category)
    if category:
        stmt = stmt.where(func.lower(products.c.Category) == category.lower())
    product_type = clean_text(product_type)
    if product_type:
        stmt = stmt.where(func.lower(products.c.Type) == product_type.lower())
    return [rows(conn.execute(stmt))]


@procedure("UpdateProductTx")
def update_product(
    conn: Connection,
    product_id: Any,
    name: Any = None,
    description: Any = None,
    unit_price: Any = None,
    category: Any = None,
    product_type: Any = None,
) -> list[ResultSet]:
    product_id = as_id(product_id, "id")
    if not _get(conn, product_id):
        raise NotFoundError("Product not found")

    values: dict[str, Any] = {}
    if name is not None:
        values["Name"] = require_text(name, "name")
    if description is not None:
        values["Description"] = clean_text(description)
    if unit_price is not None:
        values["UnitPrice"] = _unit_price(unit_price)
    if category is not None:
        values["Category"] = clean_text(category)
    if product_type is not None:
        values["Type"] = clean_text(product_type)
    if values:
        conn.execute(products.update().where(products.c.ProductID == product_id).values(**values))
    return [_get(conn, product_id)]


@procedure("DeleteProductTx")
def delete_product(conn: Connection, product_id: Any) -> list[ResultSet]:
    """Delete a product; invoice items that referenced it keep their own text and price."""
    product_id = as_id(product_id, "id")
    existing = _get(conn, product_id)
    if not existing:
        raise NotFoundError("Product not found")

    conn.execute(
        invoice_items.update()
        .where(invoice_items.c.ProductID == product_id)
        .values(ProductID=None)
    )
    conn.execute(products.delete().where(products.c.ProductID == product_id))
    return [existing]
