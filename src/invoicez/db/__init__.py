"""Relational store: schema, procedure registry and database handle."""

from invoicez.db.procedures import (
    ConflictError,
    Database,
    NotFoundError,
    ProcedureError,
    UnknownProcedureError,
    ValidationError,
    missing_procedures,
    pick_invoice_sets,
    procedure,
    registered_procedures,
)

__all__ = [
    "Database",
    "ProcedureError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "UnknownProcedureError",
    "procedure",
    "registered_procedures",
    "missing_procedures",
    "pick_invoice_sets",
]
