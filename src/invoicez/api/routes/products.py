"""Product/service catalog routes: /api/products."""

from typing import Any

from fastapi import APIRouter, Depends

from invoicez.api.deps import get_db
from invoicez.api.schemas import ProductIn, ProductPatch
from invoicez.db import Database, NotFoundError

router = APIRouter(prefix="/products", tags=["products"])


def normalize_product(row: dict[str, Any]) -> dict[str, Any]:
    """Catalog row in the shape the frontend store expects."""
    return {
        "ID": row.get("ProductID"),
        "Name": row.get("Name") or "",
        "Description": row.get("Description"),
        "UnitPrice": float(row["UnitPrice"]) if row.get("UnitPrice") is not None else None,
        "Category": row.get("Category") or row.get("Type"),
        "Type": row.get("Type"),
    }


@router.post("", status_code=201)
def create_product(body: ProductIn, db: Database = Depends(get_db)) -> dict[str, Any]:
    return normalize_product(db.call_proc_row("CreateProductTx", body.params()))


@router.get("")
def search_products(
    q: str | None = None,
    category: str | None = None,
    type: str | None = None,
    db: Database = Depends(get_db),
) -> list[dict[str, Any]]:
    rows = db.call_proc_first("SearchProductsTx", [q, category, type])
    return [normalize_product(row) for row in rows]


@router.get("/{product_id}")
def get_product(product_id: int, db: Database = Depends(get_db)) -> dict[str, Any]:
    row = db.call_proc_row("GetProductByIdTx", [product_id])
    if row is None:
        raise NotFoundError("Product not found")
    return normalize_product(row)


@router.patch("/{product_id}")
@router.put("/{product_id}")
def update_product(
    product_id: int, body: ProductPatch, db: Database = Depends(get_db)
) -> dict[str, Any]:
    """PATCH and PUT both apply a partial update."""
    return normalize_product(db.call_proc_row("UpdateProductTx", [product_id, *body.params()]))


@router.delete("/{product_id}")
def delete_product(product_id: int, db: Database = Depends(get_db)) -> dict[str, Any]:
    return normalize_product(db.call_proc_row("DeleteProductTx", [product_id]))
