# === sql_review_agent/sql_review/history.py ===

import json
import logging
import os
import sqlite3
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sql_review.models import CheckResult, normalize_engine

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
PREVIEW_LENGTH = 200


class HistoryNotFound(LookupError):
    """Raised when a history id does not exist."""


@dataclass
class HistoryItem:
    id: int
    request_id: str
    engine: str
    source: str
    file_name: str
    created_at: str
    summary: Dict[str, int]
    sql_preview: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "requestId": self.request_id,
            "engine": self.engine,
            "source": self.source,
            "fileName": self.file_name,
            "createdAt": self.created_at,
            "summary": self.summary,
            "sqlPreview": self.sql_preview,
        }


@dataclass
class HistoryDetail:
    id: int
    request_id: str
    engine: str
    source: str
    file_name: str
    created_at: str
    sql_text: str
    disabled_rules: List[str] = field(default_factory=list)
    check_result: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "requestId": self.request_id,
            "engine": self.engine,
            "source": self.source,
            "fileName": self.file_name,
            "createdAt": self.created_at,
            "sqlText": self.sql_text,
            "disabledRules": self.disabled_rules,
            "checkResult": self.check_result,
        }


def new_request_id() -> str:
    return f"req-{time.time_ns()}"


def build_preview(sql_text: str) -> str:
    flat = sql_text.replace("\r", " ").replace("\n", " ")
    if len(flat) > PREVIEW_LENGTH:
        return flat[:PREVIEW_LENGTH] + "..."
    return flat


class HistoryStore:
    def __init__(self, db_path: str, logger=None):
        """
        Connect to (or create) the review history database at db_path.
        """
        self.logger = logger or logging.getLogger(__name__)
        self.db_path = db_path
        parent = os.path.dirname(db_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path)
        self._ensure_tables()

    def _ensure_tables(self):
        c = self.conn.cursor()
        c.execute("""
            CREATE TABLE IF NOT EXISTS review_history (
                id                  INTEGER PRIMARY KEY AUTOINCREMENT,
                request_id          TEXT NOT NULL,
                engine              TEXT NOT NULL DEFAULT 'mysql',
                source              TEXT NOT NULL,
                file_name           TEXT NOT NULL DEFAULT '',
                sql_text            TEXT NOT NULL,
                disabled_rules_json TEXT NOT NULL,
                result_json         TEXT NOT NULL,
                statement_count     INTEGER NOT NULL,
                error_count         INTEGER NOT NULL,
                warning_count       INTEGER NOT NULL,
                info_count          INTEGER NOT NULL,
                created_at          TEXT NOT NULL
            )
        """)
        c.execute(
            "CREATE INDEX IF NOT EXISTS idx_review_history_created_at ON review_history(created_at DESC)"
        )
        self.conn.commit()

    def save(
        self,
        result: CheckResult,
        sql_text: str,
        source: str = "cli",
        file_name: str = "",
        request_id: Optional[str] = None,
    ) -> int:
        """
        Store one review and return its id.
        """
        c = self.conn.cursor()
        now = datetime.now(timezone.utc).isoformat()
        summary = result.summary
        c.execute(
            """
            INSERT INTO review_history (
                request_id, engine, source, file_name, sql_text,
                disabled_rules_json, result_json,
                statement_count, error_count, warning_count, info_count, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                request_id or new_request_id(),
                result.engine.value,
                source,
                file_name,
                sql_text,
                json.dumps(list(result.disabled_rules)),
                json.dumps(result.to_dict(), ensure_ascii=False),
                summary.statement_count,
                summary.error_count,
                summary.warning_count,
                summary.info_count,
                now,
            ),
        )
        self.conn.commit()
        self.logger.debug(f"Saved review #{c.lastrowid} ({result.engine.value}, {file_name or source})")
        return c.lastrowid

    def list(self, limit: int = DEFAULT_LIMIT, offset: int = 0) -> Tuple[List[HistoryItem], int]:
        """
        Newest reviews first, plus the total number of stored reviews.
        """
        if limit <= 0:
            limit = DEFAULT_LIMIT
        limit = min(limit, MAX_LIMIT)
        offset = max(offset, 0)

        c = self.conn.cursor()
        c.execute(
            """
            SELECT id, request_id, engine, source, file_name, created_at,
                   statement_count, error_count, warning_count, info_count, sql_text
            FROM review_history
            ORDER BY id DESC
            LIMIT ? OFFSET ?
            """,
            (limit, offset),
        )
        items = [
            HistoryItem(
                id=r[0],
                request_id=r[1],
                engine=normalize_engine(r[2]).value,
                source=r[3],
                file_name=r[4],
                created_at=r[5],
                summary={
                    "statementCount": r[6],
                    "errorCount": r[7],
                    "warningCount": r[8],
                    "infoCount": r[9],
                },
                sql_preview=build_preview(r[10]),
            )
            for r in c.fetchall()
        ]
        c.execute("SELECT COUNT(1) FROM review_history")
        total = c.fetchone()[0]
        return items, total

    def get(self, history_id: int) -> HistoryDetail:
        c = self.conn.cursor()
        c.execute(
            """
            SELECT id, request_id, engine, source, file_name, created_at,
                   sql_text, disabled_rules_json, result_json
            FROM review_history
            WHERE id = ?
            """,
            (history_id,),
        )
        row = c.fetchone()
        if not row:
            raise HistoryNotFound(f"History #{history_id} not found")
        disabled = json.loads(row[7]) if row[7].strip() else []
        return HistoryDetail(
            id=row[0],
            request_id=row[1],
            engine=normalize_engine(row[2]).value,
            source=row[3],
            file_name=row[4],
            created_at=row[5],
            sql_text=row[6],
            disabled_rules=disabled,
            check_result=json.loads(row[8]),
        )

    def delete(self, ids: Iterable[int]) -> int:
        """
        Delete the given ids; duplicates and non-positive ids are ignored.
        Returns how many rows were removed.
        """
        unique_ids = sorted({int(i) for i in ids if int(i) > 0})
        if not unique_ids:
            return 0
        placeholders = ", ".join("?" for _ in unique_ids)
        c = self.conn.cursor()
        c.execute(f"DELETE FROM review_history WHERE id IN ({placeholders})", unique_ids)
        self.conn.commit()
        self.logger.debug(f"Deleted {c.rowcount} review(s)")
        return c.rowcount

    def close(self):
        self.conn.close()
