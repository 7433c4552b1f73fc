"""Request bodies.

Fields accept the camelCase keys the current frontend sends as well as the
PascalCase keys of the older sheet-backed frontend (``name``/``Name``,
``unitPrice``/``UnitPrice``).
"""

from datetime import date
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def _alias(*names: str) -> Any:
    return AliasChoices(*names)


class RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# === Auth ===


class RegisterIn(RequestModel):
    email: str
    password: str
    name: str | None = None


class LoginIn(RequestModel):
    email: str
    password: str


class DeleteUserIn(RequestModel):
    email: str


# === Clients ===


class ClientIn(RequestModel):
    name: str = Field(validation_alias=_alias("name", "Name"))
    contact: str | None = Field(default=None, validation_alias=_alias("contact", "Contact"))


class ClientPatch(RequestModel):
    name: str | None = Field(default=None, validation_alias=_alias("name", "Name"))
    contact: str | None = Field(default=None, validation_alias=_alias("contact", "Contact"))


# === Staff ===


class StaffPatch(RequestModel):
    name: str | None = Field(default=None, validation_alias=_alias("name", "Name"))
    nim: str | None = Field(default=None, validation_alias=_alias("nim", "NIM"))
    role: str | None = Field(default=None, validation_alias=_alias("role", "Role"))
    type: str | None = Field(default=None, validation_alias=_alias("type", "Type"))
    contact: str | None = Field(default=None, validation_alias=_alias("contact", "Contact"))

    def params(self) -> list[Any]:
        return [self.name, self.nim, self.role, self.type, self.contact]


class StaffIn(StaffPatch):
    name: str = Field(validation_alias=_alias("name", "Name"))


# === Products ===


class ProductPatch(RequestModel):
    name: str | None = Field(default=None, validation_alias=_alias("name", "Name"))
    description: str | None = Field(
        default=None, validation_alias=_alias("description", "Description")
    )
    unit_price: float | None = Field(
        default=None, validation_alias=_alias("unitPrice", "UnitPrice", "unit_price")
    )
    category: str | None = Field(default=None, validation_alias=_alias("category", "Category"))
    type: str | None = Field(default=None, validation_alias=_alias("type", "Type"))

    def params(self) -> list[Any]:
        return [self.name, self.description, self.unit_price, self.category, self.type]


class ProductIn(ProductPatch):
    name: str = Field(validation_alias=_alias("name", "Name"))
    unit_price: float = Field(validation_alias=_alias("unitPrice", "UnitPrice", "unit_price"))


# === Invoices ===


class InvoiceItemPatch(RequestModel):
    description: str | None = Field(
        default=None, validation_alias=_alias("description", "Description")
    )
    quantity: float | None = Field(default=None, validation_alias=_alias("quantity", "Quantity"))
    unit_price: float | None = Field(
        default=None, validation_alias=_alias("unitPrice", "UnitPrice", "unit_price")
    )
    purchase_location: str | None = Field(
        default=None,
        validation_alias=_alias("purchaseLocation", "PurchaseLocation", "purchase_location"),
    )
    product_id: int | None = Field(
        default=None, validation_alias=_alias("productId", "ProductID", "product_id")
    )

    def params(self) -> list[Any]:
        return [
            self.description,
            self.quantity,
            self.unit_price,
            self.purchase_location,
            self.product_id,
        ]


class InvoiceItemIn(InvoiceItemPatch):
    """One line item. Description and price may come from ``productId``."""

    quantity: float = Field(validation_alias=_alias("quantity", "Quantity"))

    def to_row(self) -> dict[str, Any]:
        return {
            "Description": self.description,
            "Quantity": self.quantity,
            "UnitPrice": self.unit_price,
            "PurchaseLocation": self.purchase_location,
            "ProductID": self.product_id,
        }


class InvoiceHeaderPatch(RequestModel):
    invoice_date: date | None = Field(
        default=None, validation_alias=_alias("invoiceDate", "InvoiceDate", "Date")
    )
    client_id: int | None = Field(
        default=None, validation_alias=_alias("clientId", "ClientID", "client_id")
    )
    staff_id: int | None = Field(
        default=None, validation_alias=_alias("staffId", "StaffID", "staff_id")
    )
    down_payment_amount: float | None = Field(
        default=None,
        validation_alias=_alias("downPaymentAmount", "DownPaymentAmount", "down_payment_amount"),
    )
    status: str | None = Field(default=None, validation_alias=_alias("status", "Status"))
    notes: str | None = Field(default=None, validation_alias=_alias("notes", "Notes"))

    def params(self) -> list[Any]:
        return [
            self.invoice_date,
            self.client_id,
            self.staff_id,
            self.down_payment_amount,
            self.status,
            self.notes,
        ]


class InvoiceIn(RequestModel):
    invoice_type: str = Field(
        validation_alias=_alias("invoiceType", "InvoiceType", "invoice_type")
    )
    invoice_date: date = Field(validation_alias=_alias("invoiceDate", "InvoiceDate", "Date"))
    client_id: int | None = Field(
        default=None, validation_alias=_alias("clientId", "ClientID", "client_id")
    )
    staff_id: int | None = Field(
        default=None, validation_alias=_alias("staffId", "StaffID", "staff_id")
    )
    down_payment_amount: float = Field(
        default=0,
        validation_alias=_alias("downPaymentAmount", "DownPaymentAmount", "down_payment_amount"),
    )
    status: str = Field(default="Draft", validation_alias=_alias("status", "Status"))
    notes: str | None = Field(default=None, validation_alias=_alias("notes", "Notes"))
    items: list[InvoiceItemIn] | None = None

    def header_params(self) -> list[Any]:
        return [
            self.invoice_type,
            self.invoice_date,
            self.client_id,
            self.staff_id,
            self.down_payment_amount,
            self.status,
            self.notes,
        ]


# === Receipts ===


class ReceiptIn(RequestModel):
    amount: float = Field(validation_alias=_alias("amount", "Amount"))
    method: str | None = Field(default=None, validation_alias=_alias("method", "Method"))
    notes: str | None = Field(default=None, validation_alias=_alias("notes", "Notes"))
    receipt_date: date | None = Field(
        default=None, validation_alias=_alias("receiptDate", "ReceiptDate", "receipt_date")
    )


class ReceiptByCodeIn(ReceiptIn):
    invoice_code: str = Field(
        validation_alias=_alias("invoiceCode", "InvoiceCode", "invoice_code")
    )


class ReceiptPatch(RequestModel):
    amount: float = Field(validation_alias=_alias("amount", "Amount"))
    method: str | None = Field(default=None, validation_alias=_alias("method", "Method"))
    notes: str | None = Field(default=None, validation_alias=_alias("notes", "Notes"))


# === Handovers ===


class HandoverPatch(RequestModel):
    letter_date: date | None = Field(
        default=None, validation_alias=_alias("letterDate", "LetterDate", "letter_date")
    )
    staff_nim: str | None = Field(
        default=None, validation_alias=_alias("staffNIM", "StaffNIM", "staffNim", "staff_nim")
    )
    description: str | None = Field(
        default=None, validation_alias=_alias("description", "Description")
    )


class HandoverIn(HandoverPatch):
    invoice_code: str = Field(
        validation_alias=_alias("invoiceCode", "InvoiceCode", "invoice_code")
    )
    staff_nim: str = Field(
        validation_alias=_alias("staffNIM", "StaffNIM", "staffNim", "staff_nim")
    )
