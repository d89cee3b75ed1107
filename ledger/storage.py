from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from .errors import AccountNotFoundError
from .models import Account


_COLUMNS = "id, name, credits, referral_code, referral_count"


def referral_code_key(code: str) -> str:
    """Lookup key for a referral code. SQLite's lower() and NOCASE only fold ASCII."""
    return code.strip().lower()


class SqliteUserStore:
    """
    SQLite-backed store for the `users` table.

    A single connection is shared by every request thread. Mutations go
    through `transaction()`, which holds a process-level lock and an
    immediate SQLite write lock for its whole duration, so a read-check-write
    sequence on an account can't interleave with another writer.
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._lock = threading.RLock()
        self._depth = 0
        self._conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._ensure_table()

    @property
    def db_path(self) -> str:
        return self._db_path

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _ensure_table(self) -> None:
        with self.transaction():
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    credits INTEGER NOT NULL CHECK (credits >= 0),
                    referral_code TEXT NOT NULL UNIQUE,
                    referral_code_key TEXT NOT NULL UNIQUE,
                    referral_count INTEGER NOT NULL DEFAULT 0
                )
                """
            )

    @contextmanager
    def transaction(self) -> Iterator["SqliteUserStore"]:
        """Run the enclosed statements atomically. Nested calls join the outer transaction."""
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self._conn.execute("BEGIN IMMEDIATE")
            self._depth += 1
            committed = False
            try:
                yield self
                committed = True
            finally:
                self._depth -= 1
                if outermost:
                    self._conn.execute("COMMIT" if committed else "ROLLBACK")

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> Account:
        return Account(
            id=int(row["id"]),
            name=row["name"],
            credits=int(row["credits"]),
            referral_code=row["referral_code"],
            referral_count=int(row["referral_count"]),
        )

    def _fetch_one(self, query: str, params: tuple) -> Optional[Account]:
        with self._lock:
            row = self._conn.execute(query, params).fetchone()
        if not row:
            return None
        return self._to_domain(row)

    def _require(self, account_id: int) -> Account:
        account = self.get_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} not found")
        return account

    def get_by_id(self, account_id: int) -> Optional[Account]:
        return self._fetch_one(f"SELECT {_COLUMNS} FROM users WHERE id = ?", (account_id,))

    def get_by_name(self, name: str) -> Optional[Account]:
        return self._fetch_one(f"SELECT {_COLUMNS} FROM users WHERE name = ?", (name,))

    def get_by_referral_code(self, code: str) -> Optional[Account]:
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM users WHERE referral_code_key = ?",
            (referral_code_key(code),),
        )

    def referral_code_exists(self, code: str) -> bool:
        return self.get_by_referral_code(code) is not None

    def insert(self, name: str, credits: int, referral_code: str) -> Account:
        with self.transaction():
            cur = self._conn.execute(
                """
                INSERT INTO users (name, credits, referral_code, referral_code_key)
                VALUES (?, ?, ?, ?)
                """,
                (name, credits, referral_code, referral_code_key(referral_code)),
            )
            return self._require(cur.lastrowid)

    def set_credits(self, account_id: int, credits: int) -> Account:
        with self.transaction():
            self._conn.execute("UPDATE users SET credits = ? WHERE id = ?", (credits, account_id))
            return self._require(account_id)

    def adjust_credits(self, account_id: int, delta: int) -> Account:
        with self.transaction():
            self._conn.execute(
                "UPDATE users SET credits = credits + ? WHERE id = ?",
                (delta, account_id),
            )
            return self._require(account_id)

    def record_referral(self, account_id: int, bonus: int) -> Account:
        with self.transaction():
            self._conn.execute(
                """
                UPDATE users
                SET credits = credits + ?, referral_count = referral_count + 1
                WHERE id = ?
                """,
                (bonus, account_id),
            )
            return self._require(account_id)
