"""User account procedures. Password hashing happens in the caller."""

from typing import Any

from sqlalchemy import Connection, func, select

from invoicez.db.procedures import ConflictError, NotFoundError, ResultSet, procedure, rows
from invoicez.db.procs.common import clean_text, require_text
from invoicez.db.schema import users


def _normalize_email(email: Any) -> str:
    return require_text(email, "email").lower()


@procedure("CreateUserTx")
def create_user(
    conn: Connection, email: Any, full_name: Any, password_hash: str, password_salt: str
) -> list[ResultSet]:
    email = _normalize_email(email)
    taken = conn.execute(select(users.c.UserID).where(func.lower(users.c.Email) == email)).first()
    if taken is not None:
        raise ConflictError("Email already registered")

    result = conn.execute(
        users.insert().values(
            Email=email,
            FullName=clean_text(full_name),
            PasswordHash=password_hash,
            PasswordSalt=password_salt,
        )
    )
    created = conn.execute(
        select(users.c.UserID, users.c.Email, users.c.FullName, users.c.CreatedAt).where(
            users.c.UserID == result.inserted_primary_key[0]
        )
    )
    return [rows(created)]


@procedure("GetUserByEmailTx")
def get_user_by_email(conn: Connection, email: Any) -> list[ResultSet]:
    """Includes ``PasswordHash`` and ``PasswordSalt`` for verification."""
    email = _normalize_email(email)
    return [rows(conn.execute(select(users).where(func.lower(users.c.Email) == email)))]


@procedure("DeleteUserByEmailTx")
def delete_user_by_email(conn: Connection, email: Any) -> list[ResultSet]:
    email = _normalize_email(email)
    deleted = conn.execute(users.delete().where(func.lower(users.c.Email) == email)).rowcount
    if not deleted:
        raise NotFoundError("User not found")
    return [[{"ok": True, "Email": email}]]
