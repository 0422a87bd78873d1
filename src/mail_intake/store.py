# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Record store for validated email submissions.

The intake handler only depends on the :class:`EmailStore` protocol: an
``insert`` coroutine that returns the identifier assigned to the new record
or raises :class:`~mail_intake.errors.StoreError`. :class:`SqliteEmailStore`
is the default implementation, backed by aiosqlite.

Example:
    Basic usage of the SQLite store::

        store = SqliteEmailStore("/data/mail_intake.db")
        await store.init_db()

        email_id = await store.insert(NewEmail(
            subject="Hi",
            sender="a@b.com",
            recipients=["c@d.com"],
            body="hello",
        ))
        record = await store.get_email(email_id)
"""

from __future__ import annotations

import json
import uuid
from typing import Any, List, Optional, Protocol

import aiosqlite

from .errors import StoreError
from .logger import get_logger
from .models import EmailRecord, NewEmail

logger = get_logger("EmailStore")


class EmailStore(Protocol):
    """Persistence contract consumed by the submission handler."""

    async def insert(self, email: NewEmail) -> str:
        """Persist ``email`` atomically and return its new identifier."""
        ...


class SqliteEmailStore:
    """Async SQLite store for validated emails.

    Each operation opens and closes its own connection, making it safe for
    concurrent use from request handlers.

    Attributes:
        db_path: Path to the SQLite database file, or ":memory:".
    """

    def __init__(self, db_path: str = "mail_intake.db"):
        self.db_path = db_path or ":memory:"

    async def init_db(self) -> None:
        """Create the ``emails`` table if it does not exist."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS emails (
                    id TEXT PRIMARY KEY,
                    subject TEXT NOT NULL,
                    sender TEXT NOT NULL,
                    recipients TEXT NOT NULL,
                    cc TEXT NOT NULL DEFAULT '[]',
                    bcc TEXT NOT NULL DEFAULT '[]',
                    body TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            await db.commit()

    async def insert(self, email: NewEmail) -> str:
        """Insert a validated email and return its generated identifier.

        Raises:
            StoreError: If the database rejects the insert.
        """
        email_id = uuid.uuid4().hex
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    """
                    INSERT INTO emails (id, subject, sender, recipients, cc, bcc, body)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        email_id,
                        email.subject,
                        email.sender,
                        json.dumps(email.recipients),
                        json.dumps(email.cc),
                        json.dumps(email.bcc),
                        email.body,
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(str(exc)) from exc
        logger.debug("Stored email %s from %s", email_id, email.sender)
        return email_id

    async def get_email(self, email_id: str) -> Optional[EmailRecord]:
        """Return the stored email with ``email_id``, or None."""
        try:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                async with db.execute("SELECT * FROM emails WHERE id = ?", (email_id,)) as cur:
                    row = await cur.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(str(exc)) from exc
        return self._to_record(row) if row else None

    async def list_emails(self, limit: int = 50) -> List[EmailRecord]:
        """Return the most recent emails, newest first."""
        try:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                async with db.execute(
                    "SELECT * FROM emails ORDER BY created_at DESC, rowid DESC LIMIT ?",
                    (limit,),
                ) as cur:
                    rows = await cur.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(str(exc)) from exc
        return [self._to_record(row) for row in rows]

    async def count_emails(self) -> int:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                async with db.execute("SELECT COUNT(*) FROM emails") as cur:
                    row = await cur.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(str(exc)) from exc
        return int(row[0]) if row else 0

    @staticmethod
    def _to_record(row: Any) -> EmailRecord:
        data = dict(row)
        for key in ("recipients", "cc", "bcc"):
            data[key] = json.loads(data[key]) if data.get(key) else []
        return EmailRecord(**data)
