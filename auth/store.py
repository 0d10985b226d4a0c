"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
Route code never touches SQL directly.

This is the "find / create / update user" collaborator the credential code
relies on. It stores exactly what the auth flows need; profile, presence and
other product data live elsewhere.

Security:
  All queries use bound parameters. No f-strings in SQL.

  email and username are normalized (trimmed, lowercased) on the way in, so
  the UNIQUE constraints are effectively case-insensitive and lookups never
  need lower() in SQL.

DB path: auth/livestation_auth.db unless AUTH_DB_URL is set.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.tokens import normalize_identifier

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'livestation_auth.db'}"

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class UserExistsError(Exception):
    """create_user() collided with an existing email or username."""

    def __init__(self, field: str) -> None:
        super().__init__(f"{field} already exists")
        self.field = field  # "email" or "username"


class UserNotFoundError(LookupError):
    pass


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("username", String(64), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),  # "<salt-hex>:<key-hex>"
    Column("display_name", String(255)),
    Column("avatar_data_url", Text),  # "data:image/..." or NULL
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        store.create_user("a@b.com", "abc", hash_password("secret123"))
        user = store.find_by_email("A@B.com")
        store.close()
    """

    def __init__(self, db_url: str = "") -> None:
        db_url = db_url or _DEFAULT_DB_URL
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_identifier(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_username(self, username: str) -> User | None:
        """Look up a user by username (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where(_users.c.username == normalize_identifier(username))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(self, email: str, username: str, password_hash: str) -> User:
        """Insert a new user and return it.

        Raises UserExistsError if the email or username is taken. The pre-checks
        name the colliding field; the IntegrityError catch covers the race where
        a concurrent request inserts between the check and the insert.
        """
        email = normalize_identifier(email)
        username = normalize_identifier(username)
        if self.find_by_email(email) is not None:
            raise UserExistsError("email")
        if self.find_by_username(username) is not None:
            raise UserExistsError("username")

        created_at = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=email,
                        username=username,
                        password_hash=password_hash,
                        display_name=username,
                        created_at=created_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            # Lost the race. Report whichever field the winner actually took.
            field = "email" if self.find_by_email(email) is not None else "username"
            raise UserExistsError(field) from exc
        return User(
            id=result.inserted_primary_key[0],
            email=email,
            username=username,
            password_hash=password_hash,
            display_name=username,
            created_at=created_at,
        )

    def update_password(self, email: str, password_hash: str) -> None:
        """Replace the stored password record. Raises UserNotFoundError if no such user."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.email == normalize_identifier(email))
                .values(password_hash=password_hash)
            )
            conn.commit()
        if result.rowcount == 0:
            raise UserNotFoundError(email)

    def update_avatar(self, email: str, avatar_data_url: str | None) -> User:
        """Set or clear (None) the avatar and return the updated user.

        Raises UserNotFoundError if no such user.
        """
        email = normalize_identifier(email)
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.email == email).values(avatar_data_url=avatar_data_url)
            )
            conn.commit()
        if result.rowcount == 0:
            raise UserNotFoundError(email)
        return self.find_by_email(email)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        username=row.username,
        password_hash=row.password_hash,
        display_name=row.display_name or row.username,
        avatar_data_url=row.avatar_data_url,
        created_at=row.created_at,
    )
