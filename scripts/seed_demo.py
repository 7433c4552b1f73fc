#!/usr/bin/env python3
"""Seed a running Invoicez API with demo data.

This script creates:
1. A handful of clients and staff members
2. A small product/service catalog
3. Invoices built from catalog items, some partly or fully paid
4. Handover letters for the delivered invoices

Usage:
    invoicez serve &
    python scripts/seed_demo.py [BASE_URL]
"""

import asyncio
import sys
from datetime import date, timedelta
from typing import Any

import structlog

from invoicez.client import InvoicezAPIError, InvoicezClient
from invoicez.config import configure_logging

logger = structlog.get_logger(__name__)

# ============================================================================
# DEMO DATA
# ============================================================================

CLIENTS = [
    {"name": "PT Maju Jaya", "contact": "finance@majujaya.co.id"},
    {"name": "CV Sinar Terang", "contact": "0812-5550-1122"},
    {"name": "Kopi Senja", "contact": "halo@kopisenja.id"},
]

STAFF = [
    {"name": "Budi Santoso", "nim": "FLK-001", "role": "Designer", "type": "Tetap"},
    {"name": "Sari Wulandari", "nim": "FLK-002", "role": "Production", "type": "Freelance"},
    {"name": "Dimas Pratama", "nim": "FLK-003", "role": "Courier"},
]

PRODUCTS = [
    {"name": "Banner 3x1m", "unitPrice": 150000, "category": "Print", "type": "Goods"},
    {"name": "Poster A2", "unitPrice": 45000, "category": "Print", "type": "Goods"},
    {"name": "Logo design", "unitPrice": 1500000, "category": "Design", "type": "Service"},
    {"name": "Booth rental (day)", "unitPrice": 750000, "category": "Rental", "type": "Service"},
]

# (type, client index, staff index, [(product index, quantity)], paid fraction)
INVOICES = [
    ("SALE", 0, 0, [(0, 2), (1, 10)], 1.0),
    ("SALE", 1, 1, [(2, 1)], 0.5),
    ("RENT", 2, 2, [(3, 3)], 0.0),
    ("SALE", 2, 0, [(1, 25)], 0.3),
]


async def create_all(rows: list[dict[str, Any]], create) -> list[dict[str, Any]]:
    """Create each row in order with ``create`` and return the stored rows."""
    created = []
    for data in rows:
        created.append(await create(data))
    return created


async def seed_invoices(
    client: InvoicezClient,
    clients: list[dict[str, Any]],
    staff: list[dict[str, Any]],
    products: list[dict[str, Any]],
) -> list[str]:
    codes = []
    today = date.today()
    for offset, (invoice_type, client_idx, staff_idx, lines, paid) in enumerate(INVOICES):
        items = [
            {"productId": products[product_idx]["ID"], "quantity": quantity}
            for product_idx, quantity in lines
        ]
        result = await client.create_invoice(
            {
                "invoiceType": invoice_type,
                "invoiceDate": (today - timedelta(days=7 * offset)).isoformat(),
                "clientId": clients[client_idx]["ClientID"],
                "staffId": staff[staff_idx]["StaffID"],
                "status": "Sent",
                "items": items,
            }
        )
        code = result["InvoiceCode"]
        codes.append(code)

        if paid > 0:
            summary = (await client.get_invoice(code))["summary"][0]
            amount = round(summary["Balance"] * paid, 2)
            await client.create_receipt(code, amount, method="Transfer", notes="Demo payment")
        if paid >= 1.0:
            await client.create_handover(code, staff[staff_idx]["NIM"], "Goods handed over")

        logger.info("invoice_seeded", code=code, paid_fraction=paid)
    return codes


async def main() -> int:
    configure_logging()
    base_url = sys.argv[1] if len(sys.argv) > 1 else None

    try:
        async with InvoicezClient(base_url=base_url) as client:
            await client.health()
            clients = await create_all(CLIENTS, client.create_client)
            staff = await create_all(STAFF, client.create_staff)
            products = await create_all(PRODUCTS, client.create_product)
            codes = await seed_invoices(client, clients, staff, products)
    except InvoicezAPIError as e:
        logger.error("seed_failed", base_url=base_url, error=str(e), status_code=e.status_code)
        return 1

    print(f"Seeded {len(clients)} clients, {len(staff)} staff, {len(products)} products")
    for code in codes:
        print(f"  {code}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
