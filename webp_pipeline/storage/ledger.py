"""SQLite ledger of offline conversions (measured byte counts)."""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..core.models import ConversionRecord


class ConversionLedger:
    """Stores one row per converted source file in SQLite."""

    def __init__(self, db_path: str | Path = "data/conversions.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Create the conversions table if it doesn't exist."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS conversions (
                    source TEXT PRIMARY KEY,
                    output TEXT NOT NULL,
                    original_size INTEGER NOT NULL,
                    webp_size INTEGER NOT NULL,
                    quality INTEGER NOT NULL,
                    converted_at TEXT
                )
            """)
            conn.commit()

    def add_record(self, record: ConversionRecord) -> None:
        """Insert or replace the record for a source file."""
        if record.converted_at is None:
            record.converted_at = datetime.now()
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                INSERT OR REPLACE INTO conversions
                    (source, output, original_size, webp_size, quality, converted_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                record.source,
                record.output,
                record.original_size,
                record.webp_size,
                record.quality,
                record.converted_at.isoformat(),
            ))
            conn.commit()

    def _row_to_record(self, row) -> ConversionRecord:
        converted_at = datetime.fromisoformat(row[5]) if row[5] else None
        return ConversionRecord(
            source=row[0],
            output=row[1],
            original_size=row[2],
            webp_size=row[3],
            quality=row[4],
            converted_at=converted_at,
        )

    def get_by_source(self, source: str) -> Optional[ConversionRecord]:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "SELECT source, output, original_size, webp_size, quality, converted_at "
                "FROM conversions WHERE source = ?",
                (source,)
            )
            row = cursor.fetchone()
            if row:
                return self._row_to_record(row)
            return None

    def list_all(self) -> list[ConversionRecord]:
        """List all conversions, oldest first."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "SELECT source, output, original_size, webp_size, quality, converted_at "
                "FROM conversions ORDER BY converted_at, source"
            )
            return [self._row_to_record(row) for row in cursor.fetchall()]

    def delete_by_source(self, source: str) -> bool:
        """Delete the record of a source file. Returns True if deleted."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM conversions WHERE source = ?", (source,))
            conn.commit()
            return cursor.rowcount > 0

    def count(self) -> int:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute("SELECT COUNT(*) FROM conversions")
            return cursor.fetchone()[0]

    def totals(self) -> tuple[int, int]:
        """Return (original bytes, webp bytes) summed over all conversions."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "SELECT COALESCE(SUM(original_size), 0), COALESCE(SUM(webp_size), 0) "
                "FROM conversions"
            )
            original, webp = cursor.fetchone()
            return int(original), int(webp)
