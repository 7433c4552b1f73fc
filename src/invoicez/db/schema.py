"""Relational schema for the back-office store.

Table and column names keep the PascalCase naming of the legacy database so
that rows serialize straight into the keys the frontend already reads.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    func,
)

metadata = MetaData()

# Numeric columns come back as floats; amounts are rounded to 2 places on write.
Money = Numeric(14, 2, asdecimal=False)

INVOICE_STATUSES = ("Draft", "Sent", "Paid", "Cancelled")
DEFAULT_STAFF_TYPE = "Lainnya"


def _created_at() -> Column:
    return Column("CreatedAt", DateTime, nullable=False, server_default=func.current_timestamp())


users = Table(
    "Users",
    metadata,
    Column("UserID", Integer, primary_key=True, autoincrement=True),
    Column("Email", String(255), nullable=False),
    Column("FullName", String(255)),
    Column("PasswordHash", String(255), nullable=False),
    Column("PasswordSalt", String(255), nullable=False),
    _created_at(),
    Index("idx_users_email", "Email", unique=True),
    Index("idx_users_created_at", "CreatedAt"),
)

clients = Table(
    "Clients",
    metadata,
    Column("ClientID", Integer, primary_key=True, autoincrement=True),
    Column("Name", String(255), nullable=False),
    Column("Contact", String(255)),
    _created_at(),
    Index("idx_clients_name", "Name"),
)

staff = Table(
    "Staff",
    metadata,
    Column("StaffID", Integer, primary_key=True, autoincrement=True),
    Column("Name", String(255), nullable=False),
    Column("NIM", String(64)),
    Column("Role", String(128)),
    Column("Type", String(64), nullable=False, server_default=DEFAULT_STAFF_TYPE),
    Column("Contact", String(255)),
    _created_at(),
    Index("idx_staff_name", "Name"),
    Index("idx_staff_nim", "NIM", unique=True),
)

products = Table(
    "Products",
    metadata,
    Column("ProductID", Integer, primary_key=True, autoincrement=True),
    Column("Name", String(255), nullable=False),
    Column("Description", Text),
    Column("UnitPrice", Money, nullable=False, server_default="0"),
    Column("Category", String(128)),
    Column("Type", String(64)),
    _created_at(),
    CheckConstraint('"UnitPrice" >= 0', name="ck_products_unit_price"),
    Index("idx_products_category", "Category"),
    Index("idx_products_type", "Type"),
)

invoices = Table(
    "Invoices",
    metadata,
    Column("InvoiceID", Integer, primary_key=True, autoincrement=True),
    Column("InvoiceCode", String(64), nullable=False),
    Column("InvoiceType", String(32), nullable=False),
    Column("InvoiceDate", Date, nullable=False),
    Column("ClientID", Integer, ForeignKey("Clients.ClientID")),
    Column("StaffID", Integer, ForeignKey("Staff.StaffID")),
    Column("DownPaymentAmount", Money, nullable=False, server_default="0"),
    Column("Status", String(16), nullable=False, server_default="Draft"),
    Column("Notes", Text),
    _created_at(),
    Column("UpdatedAt", DateTime, nullable=False, server_default=func.current_timestamp()),
    CheckConstraint('"DownPaymentAmount" >= 0', name="ck_invoices_down_payment"),
    Index("idx_invoices_code", "InvoiceCode", unique=True),
    Index("idx_invoices_status_date", "Status", "InvoiceDate"),
    Index("idx_invoices_date", "InvoiceDate"),
    Index("idx_invoices_client", "ClientID"),
    Index("idx_invoices_staff", "StaffID"),
)

invoice_items = Table(
    "InvoiceItems",
    metadata,
    Column("ItemID", Integer, primary_key=True, autoincrement=True),
    Column(
        "InvoiceID",
        Integer,
        ForeignKey("Invoices.InvoiceID", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("ProductID", Integer, ForeignKey("Products.ProductID", ondelete="SET NULL")),
    Column("Description", Text, nullable=False),
    Column("Quantity", Numeric(12, 3, asdecimal=False), nullable=False),
    Column("UnitPrice", Money, nullable=False),
    Column("PurchaseLocation", String(255)),
    _created_at(),
    CheckConstraint('"Quantity" > 0', name="ck_items_quantity"),
    CheckConstraint('"UnitPrice" >= 0', name="ck_items_unit_price"),
    Index("idx_items_invoice", "InvoiceID"),
    Index("idx_items_product", "ProductID"),
)

receipts = Table(
    "Receipts",
    metadata,
    Column("ReceiptID", Integer, primary_key=True, autoincrement=True),
    Column(
        "InvoiceID",
        Integer,
        ForeignKey("Invoices.InvoiceID", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("Amount", Money, nullable=False),
    Column("Method", String(64)),
    Column("Notes", Text),
    Column("ReceiptDate", Date, nullable=False, server_default=func.current_date()),
    _created_at(),
    CheckConstraint('"Amount" > 0', name="ck_receipts_amount"),
    Index("idx_receipts_invoice", "InvoiceID"),
    Index("idx_receipts_created", "CreatedAt"),
)

handovers = Table(
    "Handovers",
    metadata,
    Column("LetterID", Integer, primary_key=True, autoincrement=True),
    Column(
        "InvoiceID",
        Integer,
        ForeignKey("Invoices.InvoiceID", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("StaffID", Integer, ForeignKey("Staff.StaffID"), nullable=False),
    Column("LetterDate", Date, nullable=False, server_default=func.current_date()),
    Column("Description", Text),
    _created_at(),
    Index("idx_handovers_invoice", "InvoiceID"),
    Index("idx_handovers_staff", "StaffID"),
    Index("idx_handovers_date", "LetterDate"),
)
