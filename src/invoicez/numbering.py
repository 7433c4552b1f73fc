"""Sequential invoice codes of the form ``PREFIX/TYPE/MM/NNN``.

``NNN`` is one more than the highest numeric suffix already issued under the
same ``PREFIX/TYPE/MM/`` prefix, zero-padded to at least three digits. The
scan and the insert that uses its result must run in the same write
transaction; the unique index on ``InvoiceCode`` rejects any duplicate that
slips through on engines without writer serialization.
"""

from collections.abc import Iterable
from datetime import date
from typing import NamedTuple

from sqlalchemy import Connection, select

DEFAULT_CODE_PREFIX = "FOLKS"
SUFFIX_WIDTH = 3


class InvoiceCode(NamedTuple):
    prefix: str
    invoice_type: str
    month: int
    sequence: int

    def __str__(self) -> str:
        return format_invoice_code(self.prefix, self.invoice_type, self.month, self.sequence)


def normalize_type(invoice_type: str) -> str:
    """Upper-case and trim an invoice type so it can sit inside a code."""
    normalized = (invoice_type or "").strip().upper()
    if not normalized:
        raise ValueError("invoiceType is required")
    if "/" in normalized:
        raise ValueError("invoiceType must not contain '/'")
    return normalized


def code_prefix(prefix: str, invoice_type: str, invoice_date: date) -> str:
    """The ``PREFIX/TYPE/MM/`` part shared by one month's codes."""
    return f"{prefix}/{normalize_type(invoice_type)}/{invoice_date.month:02d}/"


def format_invoice_code(prefix: str, invoice_type: str, month: int, sequence: int) -> str:
    return f"{prefix}/{normalize_type(invoice_type)}/{month:02d}/{sequence:0{SUFFIX_WIDTH}d}"


def parse_invoice_code(code: str) -> InvoiceCode:
    """Split a code into its parts; raises ``ValueError`` on malformed input."""
    parts = (code or "").split("/")
    if len(parts) != 4:
        raise ValueError(f"Malformed invoice code: {code!r}")
    prefix, invoice_type, month, sequence = parts
    if not (prefix and invoice_type and month.isdigit() and sequence.isdigit()):
        raise ValueError(f"Malformed invoice code: {code!r}")
    if not 1 <= int(month) <= 12:
        raise ValueError(f"Malformed invoice code: {code!r}")
    return InvoiceCode(prefix, invoice_type, int(month), int(sequence))


def next_suffix(existing_codes: Iterable[str], prefix: str) -> int:
    """Highest numeric suffix under ``prefix`` plus one (1 when none match)."""
    highest = 0
    for code in existing_codes:
        if not code or not code.startswith(prefix):
            continue
        suffix = code[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest + 1


def allocate_invoice_code(
    conn: Connection, prefix: str, invoice_type: str, invoice_date: date
) -> str:
    """Compute the next free code inside the caller's write transaction."""
    from invoicez.db.schema import invoices

    head = code_prefix(prefix, invoice_type, invoice_date)
    # LIKE treats '_' and '%' as wildcards; startswith() in next_suffix re-checks.
    existing = conn.execute(
        select(invoices.c.InvoiceCode).where(invoices.c.InvoiceCode.like(f"{head}%"))
    ).scalars()
    return f"{head}{next_suffix(existing, head):0{SUFFIX_WIDTH}d}"
