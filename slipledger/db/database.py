"""SQLite database for the bet ledger."""

import json
import logging
import secrets
import sqlite3
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .models import BetRecord, LeagueRecord, UserRecord

logger = logging.getLogger(__name__)

REQUIRED_BET_FIELDS = ("date", "capper", "league", "market", "play")

# Columns a caller may write on a bet row
BET_COLUMNS = (
    "date", "capper", "league", "sport_key", "league_key", "market", "play",
    "selection", "line", "odds", "units", "opponent", "status", "result",
    "final_score", "notes", "book", "slip_ref", "ai_meta",
)


class LedgerValidationError(ValueError):
    """A write would break a ledger invariant; nothing was written."""


def validate_bet(bet: BetRecord) -> None:
    """Check required fields and the FINAL/result invariant."""
    missing = [f for f in REQUIRED_BET_FIELDS if not str(getattr(bet, f) or "").strip()]
    if missing:
        raise LedgerValidationError(f"Missing required bet field(s): {', '.join(missing)}")
    if bet.status not in ("OPEN", "FINAL"):
        raise LedgerValidationError(f"Invalid status: {bet.status}")
    if bet.result not in ("OPEN", "WIN", "LOSS", "PUSH", "VOID", "CASHOUT"):
        raise LedgerValidationError(f"Invalid result: {bet.result}")
    if bet.status == "FINAL" and bet.result == "OPEN":
        raise LedgerValidationError("A FINAL bet must have a result other than OPEN")


class Database:
    """SQLite database for ledger rows, owners and league registry.

    Every bet and league query is scoped by ``user_id``.
    """

    def __init__(self, db_path: str = "data/ledger.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        """Initialize database schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT UNIQUE NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS api_tokens (
                    token TEXT PRIMARY KEY,
                    user_id INTEGER NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (user_id) REFERENCES users(id)
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS bets (
                    id TEXT PRIMARY KEY,
                    user_id INTEGER NOT NULL,
                    created_at TEXT,
                    date TEXT NOT NULL,
                    capper TEXT NOT NULL,

                    -- League classification
                    league TEXT NOT NULL,
                    sport_key TEXT,
                    league_key TEXT,

                    -- Wager
                    market TEXT NOT NULL,
                    play TEXT NOT NULL,
                    selection TEXT,
                    line REAL,
                    odds REAL,
                    units REAL,
                    opponent TEXT,

                    -- Settlement
                    status TEXT NOT NULL DEFAULT 'OPEN',
                    result TEXT NOT NULL DEFAULT 'OPEN',
                    final_score TEXT,

                    notes TEXT,
                    book TEXT,
                    slip_ref TEXT,
                    ai_meta TEXT DEFAULT '{}',

                    FOREIGN KEY (user_id) REFERENCES users(id)
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_bets_user_status ON bets(user_id, status)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_bets_user_slip ON bets(user_id, slip_ref)")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS league_registry (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    sport_key TEXT NOT NULL,
                    league_key TEXT NOT NULL,
                    league_abbrev TEXT,
                    league_name TEXT,
                    aliases TEXT DEFAULT '[]',
                    UNIQUE(user_id, sport_key, league_key)
                )
            """)

            conn.commit()

    # ===== Users & tokens =====

    def create_user(self, username: str) -> UserRecord:
        """Create a ledger owner. Raises sqlite3.IntegrityError on duplicates."""
        with self._connect() as conn:
            cursor = conn.execute("INSERT INTO users (username) VALUES (?)", (username,))
            conn.commit()
            row = conn.execute("SELECT * FROM users WHERE id = ?", (cursor.lastrowid,)).fetchone()
            return UserRecord(id=row["id"], username=row["username"], created_at=row["created_at"])

    def get_user_by_name(self, username: str) -> Optional[UserRecord]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
            if not row:
                return None
            return UserRecord(id=row["id"], username=row["username"], created_at=row["created_at"])

    def issue_token(self, user_id: int) -> str:
        """Issue a new bearer token for a user."""
        token = secrets.token_urlsafe(32)
        with self._connect() as conn:
            conn.execute("INSERT INTO api_tokens (token, user_id) VALUES (?, ?)", (token, user_id))
            conn.commit()
        return token

    def user_for_token(self, token: str) -> Optional[UserRecord]:
        """Look up the owner of a bearer token."""
        if not token:
            return None
        with self._connect() as conn:
            row = conn.execute("""
                SELECT u.* FROM api_tokens t
                JOIN users u ON u.id = t.user_id
                WHERE t.token = ?
            """, (token,)).fetchone()
            if not row:
                return None
            return UserRecord(id=row["id"], username=row["username"], created_at=row["created_at"])

    # ===== Bets =====

    def list_bets(
        self,
        user_id: int,
        status: Optional[str] = None,
        slip_ref: Optional[str] = None,
        book: Optional[str] = None,
    ) -> list[BetRecord]:
        """List a user's bets, newest first, with optional filters."""
        query = "SELECT * FROM bets WHERE user_id = ?"
        params: list[Any] = [user_id]
        if status:
            query += " AND status = ?"
            params.append(status.upper())
        if slip_ref:
            query += " AND slip_ref = ?"
            params.append(slip_ref)
        if book:
            query += " AND lower(book) LIKE ?"
            params.append(f"%{book.lower()}%")
        query += " ORDER BY date DESC, created_at DESC"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_bet(row) for row in rows]

    def get_bet(self, user_id: int, bet_id: str) -> Optional[BetRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM bets WHERE id = ? AND user_id = ?", (bet_id, user_id)
            ).fetchone()
            return self._row_to_bet(row) if row else None

    def insert_bet(self, user_id: int, bet: BetRecord) -> BetRecord:
        """Validate and insert a bet. Returns the stored row."""
        validate_bet(bet)
        stored = replace(
            bet,
            id=bet.id or str(uuid.uuid4()),
            user_id=user_id,
            created_at=bet.created_at or datetime.now(timezone.utc).isoformat(),
        )
        values = self._bet_values(stored)

        with self._connect() as conn:
            conn.execute(f"""
                INSERT INTO bets (id, user_id, created_at, {", ".join(BET_COLUMNS)})
                VALUES (?, ?, ?, {", ".join("?" for _ in BET_COLUMNS)})
            """, (stored.id, user_id, stored.created_at, *values))
            conn.commit()

        logger.debug("Inserted bet %s for user %s", stored.id, user_id)
        return stored

    def update_bet(
        self,
        user_id: int,
        bet_id: str,
        changes: dict[str, Any],
        require_status: Optional[str] = None,
    ) -> Optional[BetRecord]:
        """Apply changes to one bet.

        The merged row is validated before writing. With ``require_status``
        the row is only touched while it still has that status. Returns the
        updated row, or None if nothing matched.
        """
        unknown = set(changes) - set(BET_COLUMNS)
        if unknown:
            raise LedgerValidationError(f"Unknown bet field(s): {', '.join(sorted(unknown))}")

        current = self.get_bet(user_id, bet_id)
        if current is None:
            return None
        if require_status and current.status != require_status:
            return None

        merged = replace(current, **changes)
        validate_bet(merged)

        columns = list(changes)
        merged_values = dict(zip(BET_COLUMNS, self._bet_values(merged)))
        query = f"UPDATE bets SET {', '.join(f'{c} = ?' for c in columns)} WHERE id = ? AND user_id = ?"
        params: list[Any] = [merged_values[c] for c in columns] + [bet_id, user_id]
        if require_status:
            query += " AND status = ?"
            params.append(require_status)

        with self._connect() as conn:
            cursor = conn.execute(query, params)
            conn.commit()
            if cursor.rowcount == 0:
                return None

        return merged

    def delete_bet(self, user_id: int, bet_id: str) -> bool:
        """Hard-delete a bet. Returns True if a row was removed."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM bets WHERE id = ? AND user_id = ?", (bet_id, user_id))
            conn.commit()
            return cursor.rowcount > 0

    # ===== League registry =====

    def list_leagues(self, user_id: int) -> list[LeagueRecord]:
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT * FROM league_registry
                WHERE user_id = ?
                ORDER BY sport_key, league_key
            """, (user_id,)).fetchall()
            return [self._row_to_league(row) for row in rows]

    def upsert_league(self, user_id: int, league: LeagueRecord) -> LeagueRecord:
        """Insert or update a registry entry, merging aliases."""
        with self._connect() as conn:
            existing = conn.execute("""
                SELECT aliases FROM league_registry
                WHERE user_id = ? AND sport_key = ? AND league_key = ?
            """, (user_id, league.sport_key, league.league_key)).fetchone()

            merged = json.loads(existing["aliases"] or "[]") if existing else []
            for alias in league.aliases:
                if alias not in merged:
                    merged.append(alias)

            conn.execute("""
                INSERT INTO league_registry (
                    user_id, sport_key, league_key, league_abbrev, league_name, aliases
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, sport_key, league_key) DO UPDATE SET
                    league_abbrev = excluded.league_abbrev,
                    league_name = excluded.league_name,
                    aliases = excluded.aliases
            """, (user_id, league.sport_key, league.league_key, league.league_abbrev,
                  league.league_name, json.dumps(merged)))
            conn.commit()

            row = conn.execute("""
                SELECT * FROM league_registry
                WHERE user_id = ? AND sport_key = ? AND league_key = ?
            """, (user_id, league.sport_key, league.league_key)).fetchone()
            return self._row_to_league(row)

    # ===== Row mapping =====

    def _bet_values(self, bet: BetRecord) -> tuple:
        values = []
        for col in BET_COLUMNS:
            value = getattr(bet, col)
            if col == "ai_meta":
                value = json.dumps(value or {})
            values.append(value)
        return tuple(values)

    def _row_to_bet(self, row: sqlite3.Row) -> BetRecord:
        """Convert a database row to a BetRecord."""
        try:
            ai_meta = json.loads(row["ai_meta"] or "{}")
        except json.JSONDecodeError:
            ai_meta = {}

        return BetRecord(
            id=row["id"],
            user_id=row["user_id"],
            created_at=row["created_at"],
            date=row["date"],
            capper=row["capper"],
            league=row["league"],
            sport_key=row["sport_key"],
            league_key=row["league_key"],
            market=row["market"],
            play=row["play"],
            selection=row["selection"],
            line=row["line"],
            odds=row["odds"],
            units=row["units"],
            opponent=row["opponent"],
            status=row["status"],
            result=row["result"],
            final_score=row["final_score"],
            notes=row["notes"],
            book=row["book"],
            slip_ref=row["slip_ref"],
            ai_meta=ai_meta if isinstance(ai_meta, dict) else {},
        )

    def _row_to_league(self, row: sqlite3.Row) -> LeagueRecord:
        try:
            aliases = json.loads(row["aliases"] or "[]")
        except json.JSONDecodeError:
            aliases = []
        return LeagueRecord(
            id=row["id"],
            user_id=row["user_id"],
            sport_key=row["sport_key"],
            league_key=row["league_key"],
            league_abbrev=row["league_abbrev"],
            league_name=row["league_name"],
            aliases=[str(a) for a in aliases] if isinstance(aliases, list) else [],
        )


# Singleton instance
_db: Optional[Database] = None


def get_db(db_path: str = "data/ledger.db") -> Database:
    """Get database instance (singleton)."""
    global _db
    if _db is None:
        _db = Database(db_path)
    return _db
