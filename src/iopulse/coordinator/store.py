"""
SQLite persistence for strategies, recommendations and notifications.

Holds the state around the advisory workflow: strategies to advise on,
issued recommendations (at most one active per strategy), the strategy's
notification feed and an append-only activity history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import orjson

from iopulse.exceptions import StrategyNotFoundError
from iopulse.logging import get_logger
from iopulse.types import Recommendation, StrategyInput, generate_id, utc_now

logger = get_logger(__name__)

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS strategies (
        id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT NOT NULL,
        coin TEXT NOT NULL,
        amount TEXT NOT NULL,
        last_obeyed_recommendation_id TEXT,
        last_obeyed_at TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS recommendations (
        id TEXT PRIMARY KEY,
        strategy_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        recommendation TEXT NOT NULL,
        explanation TEXT NOT NULL,
        action TEXT NOT NULL,
        confidence INTEGER NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        status TEXT NOT NULL DEFAULT 'pending',
        metadata TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notifications (
        id TEXT PRIMARY KEY,
        strategy_id TEXT NOT NULL,
        message TEXT NOT NULL,
        action TEXT NOT NULL,
        confidence INTEGER NOT NULL,
        price_at_recommendation REAL NOT NULL DEFAULT 0,
        user_response TEXT NOT NULL DEFAULT 'pending',
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS history (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        strategy_id TEXT,
        action TEXT NOT NULL,
        details TEXT,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_rec_strategy ON recommendations(strategy_id, is_active)",
    "CREATE INDEX IF NOT EXISTS idx_notif_strategy ON notifications(strategy_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_history_user ON history(user_id, created_at)",
]

DEFAULT_CONFIDENCE = 85


@dataclass
class StrategyRecord:
    id: str
    owner_id: str
    name: str
    description: str
    coin: str
    amount: str
    created_at: datetime
    last_obeyed_recommendation_id: str | None = None
    last_obeyed_at: datetime | None = None

    def to_input(self) -> StrategyInput:
        return StrategyInput(
            name=self.name,
            description=self.description,
            coin=self.coin.upper(),
            amount=self.amount,
        )


@dataclass
class RecommendationRecord:
    id: str
    strategy_id: str
    user_id: str
    recommendation: str
    explanation: str
    action: str
    confidence: int
    is_active: bool
    status: str
    created_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "strategy_id": self.strategy_id,
            "recommendation": self.recommendation,
            "explanation": self.explanation,
            "action": self.action,
            "confidence": self.confidence,
            "is_active": self.is_active,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class NotificationRecord:
    id: str
    strategy_id: str
    message: str
    action: str
    confidence: int
    price_at_recommendation: float
    user_response: str
    created_at: datetime


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class AdvisoryStore:
    """aiosqlite-backed store for the advisory workflow's collaborators."""

    def __init__(self, db_path: str | Path) -> None:
        """Initialize the store.

        Args:
            db_path: SQLite file path, or ":memory:".
        """
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Open the connection and create tables."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        for statement in _SCHEMA:
            await self._db.execute(statement)
        await self._db.commit()

        logger.info("Advisory store initialized", db_path=str(self.db_path))

    async def close(self) -> None:
        """Close the database connection."""
        if self._db:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> AdvisoryStore:
        await self.init()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    @property
    def db(self) -> aiosqlite.Connection:
        if not self._db:
            raise RuntimeError("AdvisoryStore not initialized. Call init() first.")
        return self._db

    # ----- strategies -----

    async def create_strategy(
        self,
        owner_id: str,
        name: str,
        description: str,
        coin: str,
        amount: str,
    ) -> StrategyRecord:
        record = StrategyRecord(
            id=generate_id("strat"),
            owner_id=owner_id,
            name=name,
            description=description,
            coin=coin.upper().strip(),
            amount=str(amount),
            created_at=utc_now(),
        )
        await self.db.execute(
            """
            INSERT INTO strategies (id, owner_id, name, description, coin, amount, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.owner_id,
                record.name,
                record.description,
                record.coin,
                record.amount,
                record.created_at.isoformat(),
            ),
        )
        await self.db.commit()
        return record

    async def get_strategy(self, strategy_id: str, owner_id: str) -> StrategyRecord:
        """Fetch a strategy owned by `owner_id`.

        Raises:
            StrategyNotFoundError: If it does not exist or belongs to another owner.
        """
        async with self.db.execute(
            "SELECT * FROM strategies WHERE id = ? AND owner_id = ?",
            (strategy_id, owner_id),
        ) as cursor:
            row = await cursor.fetchone()

        if not row:
            raise StrategyNotFoundError(
                "Strategy not found or unauthorized",
                context={"strategy_id": strategy_id},
            )
        return StrategyRecord(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            description=row["description"],
            coin=row["coin"],
            amount=row["amount"],
            created_at=datetime.fromisoformat(row["created_at"]),
            last_obeyed_recommendation_id=row["last_obeyed_recommendation_id"],
            last_obeyed_at=_dt(row["last_obeyed_at"]),
        )

    # ----- recommendations -----

    async def save_recommendation(
        self,
        strategy_id: str,
        user_id: str,
        recommendation: Recommendation,
        metadata: dict[str, Any] | None = None,
        confidence: int = DEFAULT_CONFIDENCE,
    ) -> RecommendationRecord:
        """Persist a recommendation as the strategy's only active one.

        Previously active recommendations are deactivated in the same
        transaction as the insert.
        """
        record = RecommendationRecord(
            id=generate_id("rec"),
            strategy_id=strategy_id,
            user_id=user_id,
            recommendation=recommendation.recommendation,
            explanation=recommendation.explanation,
            action=recommendation.action,
            confidence=confidence,
            is_active=True,
            status="pending",
            created_at=utc_now(),
            metadata=metadata or {},
        )

        try:
            await self.db.execute(
                "UPDATE recommendations SET is_active = 0 WHERE strategy_id = ? AND is_active = 1",
                (strategy_id,),
            )
            await self.db.execute(
                """
                INSERT INTO recommendations (
                    id, strategy_id, user_id, recommendation, explanation,
                    action, confidence, is_active, status, metadata, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?, ?, ?)
                """,
                (
                    record.id,
                    record.strategy_id,
                    record.user_id,
                    record.recommendation,
                    record.explanation,
                    record.action,
                    record.confidence,
                    record.status,
                    orjson.dumps(record.metadata, default=str).decode(),
                    record.created_at.isoformat(),
                ),
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Recommendation saved",
            strategy_id=strategy_id,
            recommendation_id=record.id,
            action=record.action,
        )
        return record

    def _recommendation_from_row(self, row: aiosqlite.Row) -> RecommendationRecord:
        return RecommendationRecord(
            id=row["id"],
            strategy_id=row["strategy_id"],
            user_id=row["user_id"],
            recommendation=row["recommendation"],
            explanation=row["explanation"],
            action=row["action"],
            confidence=row["confidence"],
            is_active=bool(row["is_active"]),
            status=row["status"],
            created_at=datetime.fromisoformat(row["created_at"]),
            metadata=orjson.loads(row["metadata"]) if row["metadata"] else {},
        )

    async def get_recommendation(self, recommendation_id: str) -> RecommendationRecord | None:
        async with self.db.execute(
            "SELECT * FROM recommendations WHERE id = ?", (recommendation_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return self._recommendation_from_row(row) if row else None

    async def get_active_recommendation(self, strategy_id: str) -> RecommendationRecord | None:
        async with self.db.execute(
            "SELECT * FROM recommendations WHERE strategy_id = ? AND is_active = 1",
            (strategy_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return self._recommendation_from_row(row) if row else None

    async def list_recommendations(self, strategy_id: str) -> list[RecommendationRecord]:
        """All recommendations for a strategy, newest first."""
        async with self.db.execute(
            "SELECT * FROM recommendations WHERE strategy_id = ? ORDER BY created_at DESC, rowid DESC",
            (strategy_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._recommendation_from_row(row) for row in rows]

    async def mark_obeyed(self, strategy_id: str, recommendation_id: str) -> None:
        """Record that the user acted on a recommendation."""
        now = utc_now().isoformat()
        await self.db.execute(
            "UPDATE recommendations SET status = 'accepted' WHERE id = ? AND strategy_id = ?",
            (recommendation_id, strategy_id),
        )
        await self.db.execute(
            """
            UPDATE strategies
            SET last_obeyed_recommendation_id = ?, last_obeyed_at = ?
            WHERE id = ?
            """,
            (recommendation_id, now, strategy_id),
        )
        await self.db.commit()

    # ----- notifications -----

    async def add_notification(
        self,
        strategy_id: str,
        message: str,
        action: str,
        confidence: int = DEFAULT_CONFIDENCE,
        price_at_recommendation: float = 0.0,
    ) -> NotificationRecord:
        record = NotificationRecord(
            id=generate_id("notif"),
            strategy_id=strategy_id,
            message=message,
            action=action.lower(),
            confidence=confidence,
            price_at_recommendation=price_at_recommendation,
            user_response="pending",
            created_at=utc_now(),
        )
        await self.db.execute(
            """
            INSERT INTO notifications (
                id, strategy_id, message, action, confidence,
                price_at_recommendation, user_response, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.strategy_id,
                record.message,
                record.action,
                record.confidence,
                record.price_at_recommendation,
                record.user_response,
                record.created_at.isoformat(),
            ),
        )
        await self.db.commit()
        return record

    async def latest_notification(self, strategy_id: str) -> NotificationRecord | None:
        async with self.db.execute(
            """
            SELECT * FROM notifications WHERE strategy_id = ?
            ORDER BY created_at DESC, rowid DESC LIMIT 1
            """,
            (strategy_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if not row:
            return None
        return NotificationRecord(
            id=row["id"],
            strategy_id=row["strategy_id"],
            message=row["message"],
            action=row["action"],
            confidence=row["confidence"],
            price_at_recommendation=row["price_at_recommendation"],
            user_response=row["user_response"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # ----- history -----

    async def log_history(
        self,
        user_id: str,
        action: str,
        details: dict[str, Any] | None = None,
        strategy_id: str | None = None,
    ) -> None:
        """Append an activity entry."""
        await self.db.execute(
            """
            INSERT INTO history (id, user_id, strategy_id, action, details, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                generate_id("hist"),
                user_id,
                strategy_id,
                action,
                orjson.dumps(details or {}, default=str).decode(),
                utc_now().isoformat(),
            ),
        )
        await self.db.commit()

    async def list_history(self, user_id: str, limit: int = 50) -> list[dict[str, Any]]:
        async with self.db.execute(
            "SELECT * FROM history WHERE user_id = ? ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (user_id, limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [
            {
                "id": row["id"],
                "strategy_id": row["strategy_id"],
                "action": row["action"],
                "details": orjson.loads(row["details"]) if row["details"] else {},
                "created_at": row["created_at"],
            }
            for row in rows
        ]
