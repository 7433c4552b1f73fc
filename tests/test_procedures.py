"""Tests for the named procedures and their business rules."""

from datetime import date

import pytest

from invoicez.db import (
    ConflictError,
    Database,
    NotFoundError,
    UnknownProcedureError,
    ValidationError,
    missing_procedures,
    pick_invoice_sets,
    registered_procedures,
)


class TestRegistry:
    """Tests for procedure registration and dispatch."""

    def test_every_required_procedure_is_registered(self):
        assert missing_procedures() == {}

    def test_registered_names_are_sorted(self):
        names = registered_procedures()

        assert names == sorted(names)
        assert "GetInvoiceByCodeTx" in names

    def test_unknown_procedure(self, db):
        with pytest.raises(UnknownProcedureError, match="NoSuchProc"):
            db.call_proc_sets("NoSuchProc", [])

    def test_pick_invoice_sets_pads_missing_sets(self):
        sets = pick_invoice_sets([[{"InvoiceID": 1}], [{"ItemID": 2}]])

        assert sets == {
            "summary": [{"InvoiceID": 1}],
            "items": [{"ItemID": 2}],
            "receipts": [],
            "handovers": [],
        }


class TestClients:
    """Tests for client procedures."""

    def test_create_and_search(self, db, make_client):
        make_client("PT Maju Jaya", "maju@example.com")
        make_client("CV Sinar", None)

        assert len(db.call_proc_first("SearchClientsTx", [None])) == 2
        found = db.call_proc_first("SearchClientsTx", ["MAJU"])
        assert [row["Name"] for row in found] == ["PT Maju Jaya"]

    def test_name_is_required(self, db):
        with pytest.raises(ValidationError, match="name is required"):
            db.call_proc_sets("CreateClientTx", ["   ", None])

    def test_update_leaves_missing_fields(self, db, make_client):
        client = make_client("PT Maju Jaya", "old")

        updated = db.call_proc_row("UpdateClientTx", [client["ClientID"], None, "new"])

        assert updated["Name"] == "PT Maju Jaya"
        assert updated["Contact"] == "new"

    def test_delete_referenced_client_conflicts(self, db, make_client, make_invoice):
        client = make_client()
        make_invoice(client_id=client["ClientID"])

        with pytest.raises(ConflictError, match="referenced"):
            db.call_proc_sets("DeleteClientTx", [client["ClientID"]])

    def test_delete_missing_client(self, db):
        with pytest.raises(NotFoundError):
            db.call_proc_sets("DeleteClientTx", [999])

    def test_ids_by_exact_pair(self, db, make_client):
        first = make_client("PT Maju Jaya", "A")
        make_client("PT Maju Jaya", "B")

        found = db.call_proc_first(
            "GetClientIDsByExactTx",
            ['[{"Name": "PT Maju Jaya", "Contact": "A"}, {"Name": "Nope", "Contact": null}]'],
        )

        assert [row["ClientID"] for row in found] == [first["ClientID"], None]


class TestStaff:
    """Tests for staff procedures."""

    def test_default_type(self, make_staff):
        assert make_staff()["Type"] == "Lainnya"

    def test_duplicate_nim_conflicts(self, db, make_staff):
        make_staff(nim="NIM001")

        with pytest.raises(ConflictError, match="NIM already exists: NIM001"):
            make_staff(name="Other", nim="NIM001")

    def test_staff_without_nim_can_repeat(self, make_staff):
        make_staff(name="A", nim=None)
        make_staff(name="B", nim=None)

    def test_delete_referenced_staff_conflicts(self, db, make_staff, make_invoice):
        member = make_staff()
        make_invoice(staff_id=member["StaffID"])

        with pytest.raises(ConflictError):
            db.call_proc_sets("DeleteStaffTx", [member["StaffID"]])

    def test_ids_by_nims(self, db, make_staff):
        member = make_staff(nim="NIM009")

        found = db.call_proc_first("GetStaffIDsByNIMsTx", [["NIM009", "missing"]])

        assert found == [
            {"NIM": "NIM009", "StaffID": member["StaffID"]},
            {"NIM": "missing", "StaffID": None},
        ]


class TestProducts:
    """Tests for product procedures."""

    def test_unit_price_required(self, db):
        with pytest.raises(ValidationError, match="unitPrice is required"):
            db.call_proc_sets("CreateProductTx", ["Banner", None, None, None, None])

    def test_negative_price_rejected(self, db):
        with pytest.raises(ValidationError):
            db.call_proc_sets("CreateProductTx", ["Banner", None, -1, None, None])

    def test_search_by_category(self, db):
        db.call_proc_sets("CreateProductTx", ["Banner", None, 75000, "Print", "Goods"])
        db.call_proc_sets("CreateProductTx", ["Logo design", None, 500000, "Design", "Service"])

        found = db.call_proc_first("SearchProductsTx", [None, "Design", None])

        assert [row["Name"] for row in found] == ["Logo design"]

    def test_item_fills_from_product(self, db, make_invoice):
        product = db.call_proc_row("CreateProductTx", ["Banner", None, 75000, "Print", None])

        created = make_invoice(items=[{"productId": product["ProductID"], "quantity": 2}])
        items = db.call_proc_first("ListItemsByCodeTx", [created["InvoiceCode"]])

        assert items[0]["Description"] == "Banner"
        assert items[0]["UnitPrice"] == 75000
        assert items[0]["LineTotal"] == 150000
        assert items[0]["ProductName"] == "Banner"

    def test_delete_product_detaches_items(self, db, make_invoice):
        product = db.call_proc_row("CreateProductTx", ["Banner", None, 75000, None, None])
        created = make_invoice(items=[{"ProductID": product["ProductID"], "Quantity": 1}])

        db.call_proc_sets("DeleteProductTx", [product["ProductID"]])

        items = db.call_proc_first("ListItemsByCodeTx", [created["InvoiceCode"]])
        assert items[0]["ProductID"] is None
        assert items[0]["Description"] == "Banner"


class TestInvoices:
    """Tests for invoice creation, financials and status rules."""

    def test_financials(self, db, make_invoice):
        created = make_invoice(
            items=[
                {"Description": "Poster", "Quantity": 2, "UnitPrice": 50000},
                {"Description": "Frame", "Quantity": 1, "UnitPrice": 25000},
            ],
            down_payment=25000,
        )

        summary = db.get_invoice(created["InvoiceCode"])["summary"][0]

        assert summary["Subtotal"] == 125000
        assert summary["TotalDue"] == 100000
        assert summary["TotalPaid"] == 0
        assert summary["Balance"] == 100000

    def test_summary_carries_client_and_staff(self, db, make_client, make_staff, make_invoice):
        client = make_client("PT Maju Jaya", "0812")
        member = make_staff("Budi", "NIM001")
        created = make_invoice(client_id=client["ClientID"], staff_id=member["StaffID"])

        summary = db.get_invoice(created["InvoiceCode"])["summary"][0]

        assert summary["ClientName"] == "PT Maju Jaya"
        assert summary["StaffNIM"] == "NIM001"

    def test_unknown_code_returns_empty_sets(self, db):
        assert db.get_invoice("FOLKS/SALE/01/999") == {
            "summary": [],
            "items": [],
            "receipts": [],
            "handovers": [],
        }

    def test_unknown_client_rejected(self, make_invoice):
        with pytest.raises(NotFoundError, match="Client not found"):
            make_invoice(client_id=404)

    def test_down_payment_cannot_exceed_subtotal(self, make_invoice):
        with pytest.raises(ValidationError, match="exceeds subtotal"):
            make_invoice(down_payment=200000)

    def test_failed_create_rolls_back(self, db, make_invoice):
        """A rejected item leaves no half-created invoice behind."""
        with pytest.raises(ValidationError, match="Quantity"):
            make_invoice(items=[{"Description": "Bad", "Quantity": 0, "UnitPrice": 1}])

        assert db.call_proc_first("SearchInvoicesTx", []) == []

    def test_paid_with_balance_conflicts(self, make_invoice):
        with pytest.raises(ConflictError, match="remaining balance"):
            make_invoice(status="Paid")

    def test_status_is_canonicalized(self, db, make_invoice):
        created = make_invoice(status="sent")

        assert db.get_invoice(created["InvoiceCode"])["summary"][0]["Status"] == "Sent"

    def test_invalid_status(self, make_invoice):
        with pytest.raises(ValidationError, match="Invalid status"):
            make_invoice(status="Overdue")

    def test_search_filters(self, db, make_invoice):
        make_invoice(status="Sent", notes="spring campaign")
        make_invoice(invoice_type="RENT")

        assert len(db.call_proc_first("SearchInvoicesTx", [None, "Sent", None])) == 1
        assert len(db.call_proc_first("SearchInvoicesTx", [None, None, "rent"])) == 1
        assert len(db.call_proc_first("SearchInvoicesTx", ["campaign", None, None])) == 1

    def test_header_update_keeps_code(self, db, make_invoice):
        created = make_invoice()

        sets = db.call_proc_sets(
            "UpdateInvoiceHeaderByCodeTx",
            [created["InvoiceCode"], date(2024, 12, 1), None, None, None, None, "moved"],
        )

        summary = pick_invoice_sets(sets)["summary"][0]
        assert summary["InvoiceCode"] == created["InvoiceCode"]
        assert summary["Notes"] == "moved"
        assert summary["InvoiceDate"] == date(2024, 12, 1)

    def test_header_update_to_paid_requires_settled_balance(self, db, make_invoice):
        created = make_invoice()

        with pytest.raises(ConflictError):
            db.call_proc_sets(
                "UpdateInvoiceHeaderByCodeTx",
                [created["InvoiceCode"], None, None, None, None, "Paid", None],
            )

    def test_add_update_delete_item(self, db, make_invoice):
        created = make_invoice()
        invoice_id = created["InvoiceID"]

        item = db.call_proc_row("AddInvoiceItemTx", [invoice_id, "Sticker", 10, 1000])
        assert item["LineTotal"] == 10000

        updated = db.call_proc_row("UpdateInvoiceItemTx", [item["ItemID"], None, 20])
        assert updated["LineTotal"] == 20000

        db.call_proc_sets("DeleteInvoiceItemTx", [item["ItemID"]])
        items = db.call_proc_first("ListItemsByCodeTx", [created["InvoiceCode"]])
        assert [row["Description"] for row in items] == ["Poster A2"]

    def test_cancelled_invoice_rejects_items(self, db, make_invoice):
        created = make_invoice(status="Cancelled")

        with pytest.raises(ConflictError, match="cancelled"):
            db.call_proc_sets("AddInvoiceItemTx", [created["InvoiceID"], "More", 1, 10])

    @pytest.mark.parametrize(
        ("quantity", "expected"), [(0.001, 0.001), (1.005, 1.005), (2.0004, 2.0)]
    )
    def test_quantity_keeps_three_decimals(self, db, make_invoice, quantity, expected):
        created = make_invoice()

        item = db.call_proc_row("AddInvoiceItemTx", [created["InvoiceID"], "Ink", quantity, 1000])

        assert item["Quantity"] == pytest.approx(expected)

    def test_item_added_to_empty_invoice_respects_down_payment(self, db):
        created = db.call_proc_row(
            "CreateEmptyInvoice", ["SALE", date(2024, 10, 5), None, None, 500000, "Draft", None]
        )

        with pytest.raises(ValidationError, match="exceeds subtotal"):
            db.call_proc_sets("AddInvoiceItemTx", [created["InvoiceID"], "Sticker", 1, 1000])

        assert db.call_proc_first("ListItemsByCodeTx", [created["InvoiceCode"]]) == []

    def test_price_cut_cannot_undercut_down_payment(self, db, make_invoice):
        created = make_invoice(
            items=[{"Description": "Banner", "Quantity": 1, "UnitPrice": 100000}],
            down_payment=90000,
        )
        item = db.call_proc_first("ListItemsByCodeTx", [created["InvoiceCode"]])[0]

        with pytest.raises(ValidationError, match="exceeds subtotal"):
            db.call_proc_sets("UpdateInvoiceItemTx", [item["ItemID"], None, None, 10])

        summary = db.get_invoice(created["InvoiceCode"])["summary"][0]
        assert summary["Subtotal"] == 100000
        assert summary["Balance"] == 10000

    def test_item_delete_cannot_undercut_down_payment(self, db, make_invoice):
        created = make_invoice(
            items=[
                {"Description": "Poster", "Quantity": 1, "UnitPrice": 50000},
                {"Description": "Frame", "Quantity": 1, "UnitPrice": 50000},
            ],
            down_payment=80000,
        )
        item = db.call_proc_first("ListItemsByCodeTx", [created["InvoiceCode"]])[0]

        with pytest.raises(ValidationError, match="exceeds subtotal"):
            db.call_proc_sets("DeleteInvoiceItemTx", [item["ItemID"]])

        assert len(db.call_proc_first("ListItemsByCodeTx", [created["InvoiceCode"]])) == 2

    def test_adding_item_reopens_paid_invoice(self, db, make_invoice):
        created = make_invoice(status="Sent")
        code = created["InvoiceCode"]
        db.call_proc_sets("CreateReceiptByCodeSafe", [code, 100000, "Cash", None])
        assert db.get_invoice(code)["summary"][0]["Status"] == "Paid"

        db.call_proc_sets("AddInvoiceItemTx", [created["InvoiceID"], "Lamination", 1, 15000])

        summary = db.get_invoice(code)["summary"][0]
        assert summary["Status"] == "Sent"
        assert summary["Balance"] == 15000

    def test_raising_price_reopens_paid_invoice(self, db, make_invoice):
        code = make_invoice(status="Sent")["InvoiceCode"]
        db.call_proc_sets("CreateReceiptByCodeSafe", [code, 100000, "Cash", None])
        item = db.call_proc_first("ListItemsByCodeTx", [code])[0]

        db.call_proc_sets("UpdateInvoiceItemTx", [item["ItemID"], None, None, 60000])

        summary = db.get_invoice(code)["summary"][0]
        assert summary["Status"] == "Sent"
        assert summary["Balance"] == 20000

    def test_lowering_down_payment_reopens_paid_invoice(self, db, make_invoice):
        """A header patch without a status moves a reopened Paid invoice back to Sent."""
        code = make_invoice(status="Sent", down_payment=20000)["InvoiceCode"]
        db.call_proc_sets("CreateReceiptByCodeSafe", [code, 80000, "Cash", None])
        assert db.get_invoice(code)["summary"][0]["Status"] == "Paid"

        sets = db.call_proc_sets(
            "UpdateInvoiceHeaderByCodeTx", [code, None, None, None, 0, None, None]
        )

        summary = pick_invoice_sets(sets)["summary"][0]
        assert summary["Status"] == "Sent"
        assert summary["Balance"] == 20000

    def test_header_patch_cannot_raise_down_payment_past_subtotal(self, db, make_invoice):
        code = make_invoice()["InvoiceCode"]

        with pytest.raises(ValidationError, match="exceeds subtotal"):
            db.call_proc_sets(
                "UpdateInvoiceHeaderByCodeTx", [code, None, None, None, 150000, None, None]
            )

    def test_delete_cascades(self, db, make_staff, make_invoice):
        make_staff(nim="NIM001")
        created = make_invoice()
        code = created["InvoiceCode"]
        db.call_proc_sets("CreateReceiptByCodeSafe", [code, 10000, "Cash", None])
        db.call_proc_sets("CreateHandoverByCodeSafe", [code, "NIM001", "Delivered"])

        result = db.call_proc_row("DeleteInvoiceByCodeTx", [code])

        assert result == {
            "ok": True,
            "InvoiceCode": code,
            "DeletedItems": 1,
            "DeletedReceipts": 1,
            "DeletedHandovers": 1,
        }
        assert db.get_invoice(code)["summary"] == []


class TestReceipts:
    """Tests for payments against an invoice's balance."""

    def test_partial_payment(self, db, make_invoice):
        code = make_invoice(status="Sent")["InvoiceCode"]

        receipt = db.call_proc_row("CreateReceiptByCodeSafe", [code, 40000, "Transfer", None])

        assert receipt["InvoiceCode"] == code
        summary = db.get_invoice(code)["summary"][0]
        assert summary["TotalPaid"] == 40000
        assert summary["Balance"] == 60000
        assert summary["Status"] == "Sent"

    def test_settling_balance_marks_paid(self, db, make_invoice):
        code = make_invoice(status="Sent")["InvoiceCode"]

        db.call_proc_sets("CreateReceiptByCodeSafe", [code, 100000, "Transfer", None])

        assert db.get_invoice(code)["summary"][0]["Status"] == "Paid"

    def test_deleting_receipt_reopens_paid_invoice(self, db, make_invoice):
        code = make_invoice(status="Sent")["InvoiceCode"]
        receipt = db.call_proc_row("CreateReceiptByCodeSafe", [code, 100000, None, None])

        db.call_proc_sets("DeleteReceiptTx", [receipt["ReceiptID"]])

        assert db.get_invoice(code)["summary"][0]["Status"] == "Sent"

    def test_overpayment_rejected(self, db, make_invoice):
        code = make_invoice()["InvoiceCode"]

        with pytest.raises(ValidationError, match="exceeds remaining balance") as exc_info:
            db.call_proc_sets("CreateReceiptByCodeSafe", [code, 100001, None, None])
        assert exc_info.value.details == {"balance": 100000}

    @pytest.mark.parametrize("amount", [0, -5, None])
    def test_non_positive_amount_rejected(self, db, make_invoice, amount):
        code = make_invoice()["InvoiceCode"]

        with pytest.raises(ValidationError, match="Amount"):
            db.call_proc_sets("CreateReceiptByCodeSafe", [code, amount, None, None])

    def test_update_amount_credits_old_amount(self, db, make_invoice):
        """Raising a receipt to the full total is allowed although it exceeds the balance."""
        created = make_invoice(status="Sent")
        receipt = db.call_proc_row(
            "CreateReceiptByIdTx", [created["InvoiceID"], 60000, None, None]
        )

        updated = db.call_proc_row("UpdateReceiptAmountTx", [receipt["ReceiptID"], 100000])

        assert updated["Amount"] == 100000
        assert db.get_invoice(created["InvoiceCode"])["summary"][0]["Status"] == "Paid"

    def test_cancelled_invoice_rejects_receipts(self, db, make_invoice):
        code = make_invoice(status="Cancelled")["InvoiceCode"]

        with pytest.raises(ConflictError, match="cancelled"):
            db.call_proc_sets("CreateReceiptByCodeSafe", [code, 1000, None, None])

    def test_receipt_date(self, db, make_invoice):
        code = make_invoice()["InvoiceCode"]

        receipt = db.call_proc_row(
            "CreateReceiptByCodeSafe", [code, 1000, None, None, "2024-10-20"]
        )

        assert receipt["ReceiptDate"] == date(2024, 10, 20)

    def test_list_all_and_by_code(self, db, make_invoice):
        first = make_invoice()["InvoiceCode"]
        second = make_invoice()["InvoiceCode"]
        db.call_proc_sets("CreateReceiptByCodeSafe", [first, 1000, None, None])
        db.call_proc_sets("CreateReceiptByCodeSafe", [second, 2000, None, None])

        assert len(db.call_proc_first("ListAllReceiptsTx")) == 2
        by_code = db.call_proc_first("ListReceiptsByCodeTx", [second])
        assert [row["Amount"] for row in by_code] == [2000]

    def test_unknown_invoice(self, db):
        with pytest.raises(NotFoundError, match="Invoice not found"):
            db.call_proc_sets("CreateReceiptByCodeSafe", ["FOLKS/SALE/01/001", 1000, None, None])


class TestHandovers:
    """Tests for handover letters."""

    def test_create_update_delete(self, db, make_staff, make_invoice):
        make_staff("Budi", "NIM001")
        make_staff("Sari", "NIM002")
        code = make_invoice()["InvoiceCode"]

        letter = db.call_proc_row(
            "CreateHandoverByCodeSafe", [code, "NIM001", "Goods delivered", "2024-10-07"]
        )
        assert letter["StaffName"] == "Budi"
        assert letter["LetterDate"] == date(2024, 10, 7)

        updated = db.call_proc_row("UpdateHandoverTx", [letter["LetterID"], None, "NIM002"])
        assert updated["StaffNIM"] == "NIM002"
        assert updated["Description"] == "Goods delivered"

        db.call_proc_sets("DeleteHandoverTx", [letter["LetterID"]])
        assert db.call_proc_row("GetHandoverByIdTx", [letter["LetterID"]]) is None

    def test_unknown_nim(self, db, make_invoice):
        code = make_invoice()["InvoiceCode"]

        with pytest.raises(NotFoundError, match="Staff not found"):
            db.call_proc_sets("CreateHandoverByCodeSafe", [code, "NOPE", None])

    def test_listed_with_invoice(self, db, make_staff, make_invoice):
        make_staff(nim="NIM001")
        code = make_invoice()["InvoiceCode"]
        db.call_proc_sets("CreateHandoverByCodeSafe", [code, "NIM001", "Delivered"])

        assert len(db.get_invoice(code)["handovers"]) == 1
        assert len(db.call_proc_first("ListHandoverByCodeTx", [code])) == 1


class TestUsers:
    """Tests for user account procedures."""

    def test_duplicate_email_conflicts(self, db):
        db.call_proc_sets("CreateUserTx", ["a@folks.id", "A", "hash", "salt"])

        with pytest.raises(ConflictError, match="Email already registered"):
            db.call_proc_sets("CreateUserTx", ["A@Folks.id", "A2", "hash", "salt"])

    def test_lookup_is_case_insensitive(self, db):
        db.call_proc_sets("CreateUserTx", ["a@folks.id", "A", "hash", "salt"])

        row = db.call_proc_row("GetUserByEmailTx", ["A@FOLKS.ID"])

        assert row["PasswordHash"] == "hash"

    def test_delete_missing_user(self, db):
        with pytest.raises(NotFoundError, match="User not found"):
            db.call_proc_sets("DeleteUserByEmailTx", ["ghost@folks.id"])


class TestIndexes:
    """Tests for comparing the live database against the schema's indexes."""

    def test_fresh_database_has_every_index(self, db):
        assert db.missing_indexes() == {}

    def test_dropped_index_is_reported_and_recreated(self, db):
        with db.engine.begin() as conn:
            conn.exec_driver_sql("DROP INDEX idx_receipts_created")
            conn.exec_driver_sql("DROP INDEX idx_staff_name")

        assert db.missing_indexes() == {
            "Staff": ["idx_staff_name"],
            "Receipts": ["idx_receipts_created"],
        }

        assert sorted(db.create_missing_indexes()) == ["idx_receipts_created", "idx_staff_name"]
        assert db.missing_indexes() == {}

    def test_absent_tables_are_skipped(self, tmp_path):
        database = Database(f"sqlite:///{tmp_path / 'empty.db'}")
        try:
            assert database.missing_indexes() == {}
        finally:
            database.dispose()
