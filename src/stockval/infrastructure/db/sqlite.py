"""SQLite persistence for per-user watchlists."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

DEFAULT_USER = "default"


class WatchlistRepository:
    """Lightweight gateway for reading and writing watchlist entries."""

    def __init__(self, database_uri: str, *, echo: bool = False) -> None:
        self._engine: Engine = create_engine(database_uri, echo=echo, future=True)
        self._ensure_schema()

    @property
    def engine(self) -> Engine:
        return self._engine

    # -----------------
    # Schema management
    # -----------------
    def _ensure_schema(self) -> None:
        ddl = [
            """
            CREATE TABLE IF NOT EXISTS watchlist (
              user_id TEXT NOT NULL,
              ticker TEXT NOT NULL,
              note TEXT,
              target_price REAL,
              added_at DATETIME DEFAULT CURRENT_TIMESTAMP,
              PRIMARY KEY (user_id, ticker)
            );
            """,
            """CREATE INDEX IF NOT EXISTS idx_watchlist_user ON watchlist(user_id);""",
            # Last computed verdict per ticker, refreshed by `analyze --save`.
            """
            CREATE TABLE IF NOT EXISTS valuation_snapshots (
              ticker TEXT PRIMARY KEY,
              price REAL,
              fair_value REAL,
              upside REAL,
              verdict TEXT,
              updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
            """,
        ]
        with self._engine.begin() as conn:
            for statement in ddl:
                conn.execute(text(statement))

    # ---------------
    # Watchlist CRUD
    # ---------------
    def add(
        self,
        ticker: str,
        *,
        user_id: str = DEFAULT_USER,
        note: Optional[str] = None,
        target_price: Optional[float] = None,
    ) -> None:
        stmt = text(
            """
            INSERT INTO watchlist (user_id, ticker, note, target_price, added_at)
            VALUES (:user_id, :ticker, :note, :target_price, CURRENT_TIMESTAMP)
            ON CONFLICT(user_id, ticker) DO UPDATE SET
              note=COALESCE(excluded.note, watchlist.note),
              target_price=COALESCE(excluded.target_price, watchlist.target_price)
            """
        )
        with self._engine.begin() as conn:
            conn.execute(
                stmt,
                {
                    "user_id": user_id,
                    "ticker": ticker.strip().upper(),
                    "note": note,
                    "target_price": target_price,
                },
            )

    def remove(self, ticker: str, *, user_id: str = DEFAULT_USER) -> bool:
        """Delete a ticker; returns False when it was not on the list."""
        stmt = text("DELETE FROM watchlist WHERE user_id = :user_id AND ticker = :ticker")
        with self._engine.begin() as conn:
            result = conn.execute(stmt, {"user_id": user_id, "ticker": ticker.strip().upper()})
            return result.rowcount > 0

    def entries(self, *, user_id: str = DEFAULT_USER) -> List[Dict[str, Any]]:
        query = text(
            """
            SELECT w.ticker, w.note, w.target_price, w.added_at,
                   s.price, s.fair_value, s.upside, s.verdict, s.updated_at
            FROM watchlist w
            LEFT JOIN valuation_snapshots s ON s.ticker = w.ticker
            WHERE w.user_id = :user_id
            ORDER BY w.ticker
            """
        )
        with self._engine.connect() as conn:
            rows = conn.execute(query, {"user_id": user_id}).mappings()
            return [dict(r) for r in rows]

    def contains(self, ticker: str, *, user_id: str = DEFAULT_USER) -> bool:
        query = text("SELECT 1 FROM watchlist WHERE user_id = :user_id AND ticker = :ticker LIMIT 1")
        with self._engine.connect() as conn:
            return conn.execute(query, {"user_id": user_id, "ticker": ticker.strip().upper()}).first() is not None

    # -------------------
    # Valuation snapshots
    # -------------------
    def upsert_snapshot(
        self,
        ticker: str,
        *,
        price: float,
        fair_value: float,
        upside: float,
        verdict: str,
    ) -> None:
        stmt = text(
            """
            INSERT INTO valuation_snapshots (ticker, price, fair_value, upside, verdict, updated_at)
            VALUES (:ticker, :price, :fair_value, :upside, :verdict, CURRENT_TIMESTAMP)
            ON CONFLICT(ticker) DO UPDATE SET
              price=excluded.price,
              fair_value=excluded.fair_value,
              upside=excluded.upside,
              verdict=excluded.verdict,
              updated_at=CURRENT_TIMESTAMP
            """
        )
        with self._engine.begin() as conn:
            conn.execute(
                stmt,
                {
                    "ticker": ticker.strip().upper(),
                    "price": price,
                    "fair_value": fair_value,
                    "upside": upside,
                    "verdict": verdict,
                },
            )

    def fetch_snapshot(self, ticker: str) -> Optional[Dict[str, Any]]:
        query = text(
            """
            SELECT ticker, price, fair_value, upside, verdict, updated_at
            FROM valuation_snapshots
            WHERE ticker = :ticker
            LIMIT 1
            """
        )
        with self._engine.connect() as conn:
            row = conn.execute(query, {"ticker": ticker.strip().upper()}).mappings().first()
            return dict(row) if row else None

    def close(self) -> None:
        self._engine.dispose()
