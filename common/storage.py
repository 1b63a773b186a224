"""
SQLite record store for users, inventory and orders.

Provides init_db(), user/inventory/order operations, and a transaction()
context manager for multi-statement work. Every inventory mutation is a
single conditional UPDATE, and the CHECK constraints enforce
0 <= reserved <= quantity_on_hand. Uses WAL mode and parameterized queries.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from common.ids import now_iso
from common.models import InventoryItem, Order, OrderStatus, User

BUSY_TIMEOUT_SECONDS = 10.0


def init_db(db_path: str) -> None:
    """
    Create database and tables if they do not exist.
    Enables WAL mode for better concurrency.

    Tables:
    - users(user_id, email, name, role, created_at)
    - inventory(product_id, name, price, quantity_on_hand, reserved, updated_at)
    - orders(order_id, user_id, status, payload_json, created_at, updated_at)
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with _connection(db_path) as conn:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                email TEXT NOT NULL UNIQUE,
                name TEXT NOT NULL,
                role TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS inventory (
                product_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                price REAL NOT NULL CHECK (price >= 0),
                quantity_on_hand INTEGER NOT NULL CHECK (quantity_on_hand >= 0),
                reserved INTEGER NOT NULL DEFAULT 0 CHECK (reserved >= 0),
                updated_at TEXT NOT NULL,
                CHECK (reserved <= quantity_on_hand)
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS orders (
                order_id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                status TEXT NOT NULL,
                payload_json TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_orders_user_created ON orders (user_id, created_at)"
        )


@contextmanager
def _connection(db_path: str):
    """Context manager for a SQLite connection (auto-commit on exit, rollback on error)."""
    conn = sqlite3.connect(db_path, timeout=BUSY_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def transaction(db_path: str) -> Iterator[sqlite3.Connection]:
    """
    Run the block in one BEGIN IMMEDIATE transaction.

    The write lock is taken up front so reads inside the block cannot go
    stale before the writes that depend on them. Commits on normal exit,
    rolls back if the block raises.
    """
    conn = sqlite3.connect(db_path, timeout=BUSY_TIMEOUT_SECONDS, isolation_level=None)
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
    finally:
        conn.close()


@contextmanager
def savepoint(conn: sqlite3.Connection, name: str = "sp") -> Iterator[None]:
    """Nested rollback scope inside a transaction(): undone if the block raises."""
    conn.execute(f"SAVEPOINT {name}")
    try:
        yield
    except BaseException:
        conn.execute(f"ROLLBACK TO {name}")
        conn.execute(f"RELEASE {name}")
        raise
    conn.execute(f"RELEASE {name}")


def clear_all(db_path: str) -> None:
    """Delete every user, inventory row and order. Used by the seed script."""
    with _connection(db_path) as conn:
        conn.execute("DELETE FROM orders")
        conn.execute("DELETE FROM inventory")
        conn.execute("DELETE FROM users")


# -----------------------------------------------------------------------------
# Users
# -----------------------------------------------------------------------------


def _row_to_user(row: sqlite3.Row) -> User:
    return User(user_id=row["user_id"], email=row["email"], name=row["name"], role=row["role"])


def save_user(db_path: str, user: User) -> None:
    """Persist a user. Overwrites if user_id already exists."""
    with _connection(db_path) as conn:
        conn.execute(
            """
            INSERT OR REPLACE INTO users (user_id, email, name, role, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (user.user_id, user.email, user.name, user.role, now_iso()),
        )


def get_user(db_path: str, user_id: str) -> User | None:
    with _connection(db_path) as conn:
        row = conn.execute(
            "SELECT user_id, email, name, role FROM users WHERE user_id = ?",
            (user_id,),
        ).fetchone()
    return _row_to_user(row) if row is not None else None


def get_user_by_email(db_path: str, email: str) -> User | None:
    with _connection(db_path) as conn:
        row = conn.execute(
            "SELECT user_id, email, name, role FROM users WHERE email = ?",
            (email,),
        ).fetchone()
    return _row_to_user(row) if row is not None else None


# -----------------------------------------------------------------------------
# Inventory
# -----------------------------------------------------------------------------


def _row_to_inventory(row: sqlite3.Row) -> InventoryItem:
    return InventoryItem(
        product_id=row["product_id"],
        name=row["name"],
        price=row["price"],
        quantity_on_hand=row["quantity_on_hand"],
        reserved=row["reserved"],
    )


def try_create_inventory_item(db_path: str, item: InventoryItem) -> bool:
    """
    Insert an inventory row if none exists for the product.
    Returns True if inserted, False if product_id already existed.

    >>> import tempfile
    >>> db = tempfile.mktemp(suffix=".db")
    >>> init_db(db)
    >>> item = InventoryItem(product_id="p1", name="Lamp", price=5.0, quantity_on_hand=3)
    >>> try_create_inventory_item(db, item)
    True
    >>> try_create_inventory_item(db, item)
    False
    """
    with _connection(db_path) as conn:
        try:
            conn.execute(
                """
                INSERT INTO inventory (product_id, name, price, quantity_on_hand, reserved, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    item.product_id,
                    item.name,
                    item.price,
                    item.quantity_on_hand,
                    item.reserved,
                    now_iso(),
                ),
            )
            return True
        except sqlite3.IntegrityError:
            return False


def fetch_inventory_item(conn: sqlite3.Connection, product_id: str) -> InventoryItem | None:
    row = conn.execute(
        """
        SELECT product_id, name, price, quantity_on_hand, reserved
        FROM inventory WHERE product_id = ?
        """,
        (product_id,),
    ).fetchone()
    return _row_to_inventory(row) if row is not None else None


def get_inventory_item(db_path: str, product_id: str) -> InventoryItem | None:
    with _connection(db_path) as conn:
        return fetch_inventory_item(conn, product_id)


def try_reserve(conn: sqlite3.Connection, product_id: str, quantity: int) -> bool:
    """Hold `quantity` units if that many are available. Returns False otherwise."""
    cur = conn.execute(
        """
        UPDATE inventory
        SET reserved = reserved + ?, updated_at = ?
        WHERE product_id = ? AND quantity_on_hand - reserved >= ?
        """,
        (quantity, now_iso(), product_id, quantity),
    )
    return cur.rowcount == 1


def try_debit(conn: sqlite3.Connection, product_id: str, quantity: int) -> bool:
    """Remove `quantity` units from stock and release the matching hold, together."""
    cur = conn.execute(
        """
        UPDATE inventory
        SET quantity_on_hand = quantity_on_hand - ?, reserved = reserved - ?, updated_at = ?
        WHERE product_id = ? AND quantity_on_hand >= ? AND reserved >= ?
        """,
        (quantity, quantity, now_iso(), product_id, quantity, quantity),
    )
    return cur.rowcount == 1


def release_reserved(conn: sqlite3.Connection, product_id: str, quantity: int) -> bool:
    """Drop up to `quantity` units of hold (never below zero). False if the row is gone."""
    cur = conn.execute(
        """
        UPDATE inventory
        SET reserved = MAX(reserved - ?, 0), updated_at = ?
        WHERE product_id = ?
        """,
        (quantity, now_iso(), product_id),
    )
    return cur.rowcount == 1


def set_quantity_on_hand(db_path: str, product_id: str, quantity: int) -> bool:
    """Set on-hand stock unless it would drop below the current hold."""
    with _connection(db_path) as conn:
        cur = conn.execute(
            """
            UPDATE inventory
            SET quantity_on_hand = ?, updated_at = ?
            WHERE product_id = ? AND reserved <= ?
            """,
            (quantity, now_iso(), product_id, quantity),
        )
        return cur.rowcount == 1


# -----------------------------------------------------------------------------
# Orders
# -----------------------------------------------------------------------------


def save_order(db_path: str, order: Order) -> None:
    """Insert a new order. Raises sqlite3.IntegrityError if order_id exists."""
    with _connection(db_path) as conn:
        conn.execute(
            """
            INSERT INTO orders (order_id, user_id, status, payload_json, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                order.order_id,
                order.user_id,
                order.status.value,
                order.model_dump_json(),
                order.created_at,
                order.updated_at,
            ),
        )


def fetch_order(conn: sqlite3.Connection, order_id: str) -> Order | None:
    row = conn.execute(
        "SELECT payload_json FROM orders WHERE order_id = ?",
        (order_id,),
    ).fetchone()
    if row is None:
        return None
    return Order.model_validate_json(row["payload_json"])


def get_order(db_path: str, order_id: str) -> Order | None:
    """
    Return the Order for the given order_id, or None if not found.

    >>> import tempfile
    >>> from common.models import OrderItem, PaymentMethod, ShippingAddress
    >>> db = tempfile.mktemp(suffix=".db")
    >>> init_db(db)
    >>> addr = ShippingAddress(street="1 Main St", city="Austin", state="TX", zip_code="78701", country="USA")
    >>> item = OrderItem(product_id="p1", name="Lamp", quantity=1, price=5.0)
    >>> o = Order.create("o1", "u1", [item], addr, PaymentMethod.PAYPAL)
    >>> save_order(db, o)
    >>> got = get_order(db, "o1")
    >>> got is not None and got.order_id == "o1" and got.status == OrderStatus.PENDING
    True
    """
    with _connection(db_path) as conn:
        return fetch_order(conn, order_id)


def try_finalize_order(conn: sqlite3.Connection, order: Order) -> bool:
    """
    Write a terminal order over its Pending row.
    Returns False if the stored order is no longer Pending.
    """
    cur = conn.execute(
        """
        UPDATE orders SET status = ?, payload_json = ?, updated_at = ?
        WHERE order_id = ? AND status = ?
        """,
        (
            order.status.value,
            order.model_dump_json(),
            order.updated_at,
            order.order_id,
            OrderStatus.PENDING.value,
        ),
    )
    return cur.rowcount == 1


def list_orders_for_user(
    db_path: str,
    user_id: str,
    skip: int,
    limit: int,
) -> tuple[list[Order], int]:
    """Return (orders newest first, total count) for one owner."""
    with _connection(db_path) as conn:
        rows = conn.execute(
            """
            SELECT payload_json FROM orders
            WHERE user_id = ?
            ORDER BY created_at DESC, order_id DESC
            LIMIT ? OFFSET ?
            """,
            (user_id, limit, skip),
        ).fetchall()
        total = conn.execute(
            "SELECT COUNT(*) FROM orders WHERE user_id = ?",
            (user_id,),
        ).fetchone()[0]
    return [Order.model_validate_json(row["payload_json"]) for row in rows], total
