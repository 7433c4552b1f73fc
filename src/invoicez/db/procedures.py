"""Named transactional procedures and the database handle that invokes them.

Route handlers never issue SQL directly. They call a procedure by name with a
positional parameter list, the same way the frontend-facing API used to call
stored procedures, and get back a list of result sets (each a list of row
dicts). Every call runs inside exactly one transaction.
"""

from collections.abc import Callable, Iterable, Sequence
from typing import Any

import structlog
from sqlalchemy import Connection, Engine, create_engine, event, inspect
from sqlalchemy.exc import IntegrityError

from invoicez.numbering import DEFAULT_CODE_PREFIX

logger = structlog.get_logger(__name__)

Row = dict[str, Any]
ResultSet = list[Row]
Procedure = Callable[..., list[ResultSet]]


class ProcedureError(Exception):
    """Base exception for business-rule failures raised by a procedure."""

    status_code = 500

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ProcedureError):
    """Input rejected by a business rule."""

    status_code = 400


class NotFoundError(ProcedureError):
    """Referenced record does not exist."""

    status_code = 404


class ConflictError(ProcedureError):
    """Uniqueness, reference or state conflict."""

    status_code = 409


class UnknownProcedureError(ProcedureError):
    """No procedure registered under the requested name."""

    status_code = 500


_REGISTRY: dict[str, Procedure] = {}


def procedure(name: str) -> Callable[[Procedure], Procedure]:
    """Register ``fn(conn, *params)`` under ``name``."""

    def decorator(fn: Procedure) -> Procedure:
        if name in _REGISTRY and _REGISTRY[name] is not fn:
            raise ValueError(f"Procedure already registered: {name}")
        _REGISTRY[name] = fn
        return fn

    return decorator


def registered_procedures() -> list[str]:
    """Names of every registered procedure, sorted."""
    _load_procedures()
    return sorted(_REGISTRY)


# Procedures the HTTP API and the loader depend on, grouped by area.
REQUIRED_PROCEDURES: dict[str, tuple[str, ...]] = {
    "users": ("CreateUserTx", "GetUserByEmailTx", "DeleteUserByEmailTx"),
    "clients": (
        "SearchClientsTx",
        "GetClientByIdTx",
        "CreateClientTx",
        "UpdateClientTx",
        "DeleteClientTx",
    ),
    "staff": (
        "SearchStaffTx",
        "GetStaffByIdTx",
        "CreateStaffTx",
        "UpdateStaffTx",
        "DeleteStaffTx",
    ),
    "products": (
        "CreateProductTx",
        "GetProductByIdTx",
        "SearchProductsTx",
        "UpdateProductTx",
        "DeleteProductTx",
    ),
    "receipts": (
        "ListReceiptsByCodeTx",
        "ListAllReceiptsTx",
        "CreateReceiptByIdTx",
        "UpdateReceiptAmountTx",
        "DeleteReceiptTx",
        "CreateReceiptByCodeSafe",
    ),
    "handovers": (
        "ListHandoverByCodeTx",
        "CreateHandoverByCodeSafe",
        "UpdateHandoverTx",
        "DeleteHandoverTx",
        "GetHandoverByIdTx",
    ),
    "invoices": (
        "SearchInvoicesTx",
        "GetInvoiceByCodeTx",
        "ListItemsByCodeTx",
        "CreateInvoiceWithItems",
        "CreateEmptyInvoice",
        "AddInvoiceItemTx",
        "UpdateInvoiceItemTx",
        "DeleteInvoiceItemTx",
        "UpdateInvoiceHeaderByCodeTx",
        "DeleteInvoiceByCodeTx",
    ),
    "loaderHelpers": ("GetClientIDsByExactTx", "GetStaffIDsByNIMsTx"),
}


def missing_procedures() -> dict[str, list[str]]:
    """Return ``{group: [missing names]}`` for groups with gaps."""
    _load_procedures()
    missing: dict[str, list[str]] = {}
    for group, names in REQUIRED_PROCEDURES.items():
        absent = [name for name in names if name not in _REGISTRY]
        if absent:
            missing[group] = absent
    return missing


def _load_procedures() -> None:
    # Importing the package runs every @procedure decorator.
    import invoicez.db.procs  # noqa: F401


def pick_invoice_sets(sets: Sequence[ResultSet]) -> dict[str, ResultSet]:
    """Name the result sets returned by ``GetInvoiceByCodeTx``."""
    return {
        "summary": sets[0] if len(sets) > 0 else [],
        "items": sets[1] if len(sets) > 1 else [],
        "receipts": sets[2] if len(sets) > 2 else [],
        "handovers": sets[3] if len(sets) > 3 else [],
    }


def rows(result: Iterable[Any]) -> ResultSet:
    """Convert SQLAlchemy rows into plain dicts."""
    return [dict(row._mapping) for row in result]


def _configure_sqlite(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        # Let SQLAlchemy emit BEGIN itself so the lock mode below applies.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.execute("PRAGMA busy_timeout = 5000")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Connection) -> None:
        # Writers are serialized; invoice-code allocation relies on this.
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Handle to the relational store that invokes procedures by name."""

    def __init__(self, url: str, echo: bool = False, code_prefix: str = DEFAULT_CODE_PREFIX):
        self.url = url
        self.code_prefix = code_prefix
        connect_args: dict[str, Any] = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(url, echo=echo, connect_args=connect_args)
        if self.engine.dialect.name == "sqlite":
            _configure_sqlite(self.engine)
        _load_procedures()

    def create_all(self) -> None:
        """Create every table and index that does not exist yet."""
        from invoicez.db.schema import metadata

        metadata.create_all(self.engine)
        logger.info("schema_ready", url=self.engine.url.render_as_string(hide_password=True))

    def missing_indexes(self) -> dict[str, list[str]]:
        """Named schema indexes absent from the live database, keyed by table.

        ``create_all`` only builds indexes together with a new table, so a
        database created by an older release can lack some of them. Tables
        that do not exist yet are skipped.
        """
        from invoicez.db.schema import metadata

        inspector = inspect(self.engine)
        tables = set(inspector.get_table_names())
        missing: dict[str, list[str]] = {}
        for table in metadata.sorted_tables:
            if table.name not in tables:
                logger.warning("table_missing", table=table.name)
                continue
            present = {index["name"] for index in inspector.get_indexes(table.name)}
            names = sorted(index.name for index in table.indexes if index.name not in present)
            if names:
                missing[table.name] = names
        return missing

    def create_missing_indexes(self) -> list[str]:
        """Create whatever ``missing_indexes`` reports; returns the created names."""
        from invoicez.db.schema import metadata

        missing = self.missing_indexes()
        created = []
        for table in metadata.sorted_tables:
            for index in table.indexes:
                if index.name in missing.get(table.name, ()):
                    index.create(self.engine)
                    created.append(index.name)
        if created:
            logger.info("indexes_created", indexes=created)
        return created

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()

    def call_proc_sets(self, name: str, params: Sequence[Any] = ()) -> list[ResultSet]:
        """Run procedure ``name`` in its own transaction and return all result sets."""
        fn = _REGISTRY.get(name)
        if fn is None:
            raise UnknownProcedureError(f"Unknown procedure: {name}")

        try:
            with self.engine.begin() as conn:
                conn.info["invoice_code_prefix"] = self.code_prefix
                sets = fn(conn, *params)
        except ProcedureError as e:
            logger.info("procedure_rejected", procedure=name, error=e.message)
            raise
        except IntegrityError as e:
            logger.warning("procedure_integrity_error", procedure=name, error=str(e.orig))
            raise ConflictError(f"Integrity constraint violated: {e.orig}") from e

        logger.debug("procedure_called", procedure=name, result_sets=len(sets))
        return sets

    def call_proc_first(self, name: str, params: Sequence[Any] = ()) -> ResultSet:
        """Return only the first result set (empty list if there is none)."""
        sets = self.call_proc_sets(name, params)
        return sets[0] if sets else []

    def call_proc_row(self, name: str, params: Sequence[Any] = ()) -> Row | None:
        """Return the first row of the first result set, or ``None``."""
        first = self.call_proc_first(name, params)
        return first[0] if first else None

    def get_invoice(self, code: str) -> dict[str, ResultSet]:
        """Aggregate an invoice's summary, items, receipts and handovers."""
        return pick_invoice_sets(self.call_proc_sets("GetInvoiceByCodeTx", [code]))

    @classmethod
    def from_settings(cls, settings: Any = None) -> "Database":
        """Build a handle from application settings."""
        if settings is None:
            from invoicez.config import get_settings

            settings = get_settings()
        return cls(
            settings.database_url,
            echo=settings.database_echo,
            code_prefix=settings.invoice_code_prefix,
        )
