"""Buffer local de eventos para escenarios offline / reintento.

Persiste en SQLite (vía SQLAlchemy Core) los eventos que no se pudieron
publicar. Cada evento fallido reprograma su siguiente intento según la
lista de delays configurada; al superar `max_retries` se descarta.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from sqlalchemy import (
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    func,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..config.models import BufferConfig

logger = logging.getLogger(__name__)

metadata = MetaData()

events_table = Table(
    "events",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("event_type", String(32), nullable=False),
    Column("payload", Text, nullable=False),
    Column("created_at", Integer, nullable=False),
    Column("retry_count", Integer, nullable=False, default=0),
    Column("next_retry_at", Integer),
    Column("last_error", Text),
    Index("idx_next_retry", "next_retry_at"),
)


@dataclass
class BufferedEvent:
    """Evento pendiente de reenvío."""
    id: int
    event_type: str
    payload: dict
    retry_count: int


def build_engine(path: str) -> Engine:
    """Engine SQLite; ':memory:' comparte una única conexión entre hilos."""
    if path == ":memory:":
        return create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )
    return create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False},
        future=True,
    )


class EventBuffer:
    """Persistencia local de eventos no publicados.

    Thread-safe: un lock serializa el acceso a la BD.
    """

    def __init__(
        self,
        config: Optional[BufferConfig] = None,
        engine: Optional[Engine] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config or BufferConfig()
        self.max_retries = self._config.max_retries
        self.retry_delays_ms: Sequence[int] = list(self._config.retry_delay_ms)
        self.max_buffer_size = self._config.max_buffer_size
        self._clock = clock
        self._lock = threading.Lock()

        self._engine = engine or build_engine(self._config.path)
        metadata.create_all(self._engine)
        logger.info("[BUFFER] Database initialized (%s)", self._engine.url)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def add(self, event_type: str, payload: dict) -> bool:
        """Añade un evento; recorta los más antiguos si se supera el máximo."""
        now = self._now_ms()
        try:
            with self._lock, self._engine.begin() as conn:
                conn.execute(
                    events_table.insert().values(
                        event_type=event_type,
                        payload=json.dumps(payload),
                        created_at=now,
                        retry_count=0,
                        next_retry_at=now,
                    )
                )
                count = conn.execute(select(func.count()).select_from(events_table)).scalar_one()
                if count > self.max_buffer_size:
                    logger.warning(
                        "[BUFFER] Buffer size %d exceeds max %d, deleting oldest",
                        count, self.max_buffer_size,
                    )
                    self._delete_oldest(conn, count - self.max_buffer_size)
            return True
        except SQLAlchemyError as e:
            logger.error("[BUFFER] Error adding event: %s", e)
            return False

    def get_ready_events(self, limit: int = 100) -> List[BufferedEvent]:
        """Eventos cuyo siguiente intento ya venció, del más antiguo al más nuevo."""
        query = (
            select(
                events_table.c.id,
                events_table.c.event_type,
                events_table.c.payload,
                events_table.c.retry_count,
            )
            .where(events_table.c.next_retry_at <= self._now_ms())
            .order_by(events_table.c.created_at.asc(), events_table.c.id.asc())
            .limit(limit)
        )
        try:
            with self._lock, self._engine.connect() as conn:
                rows = conn.execute(query).fetchall()
        except SQLAlchemyError as e:
            logger.error("[BUFFER] Error getting ready events: %s", e)
            return []

        return [
            BufferedEvent(
                id=row.id,
                event_type=row.event_type,
                payload=json.loads(row.payload),
                retry_count=row.retry_count,
            )
            for row in rows
        ]

    def mark_success(self, event_id: int) -> bool:
        """Evento enviado: se elimina del buffer."""
        try:
            with self._lock, self._engine.begin() as conn:
                conn.execute(delete(events_table).where(events_table.c.id == event_id))
            return True
        except SQLAlchemyError as e:
            logger.error("[BUFFER] Error marking success: %s", e)
            return False

    def mark_failed(self, event_id: int, error: str) -> bool:
        """Incrementa reintentos y reprograma con backoff.

        Returns:
            True si el evento sigue en el buffer, False si se descartó
        """
        try:
            with self._lock, self._engine.begin() as conn:
                retry_count = conn.execute(
                    select(events_table.c.retry_count).where(events_table.c.id == event_id)
                ).scalar_one_or_none()
                if retry_count is None:
                    return False

                if retry_count >= self.max_retries:
                    logger.error("[BUFFER] Event %s exceeded max retries, deleting", event_id)
                    conn.execute(delete(events_table).where(events_table.c.id == event_id))
                    return False

                delay = self.retry_delays_ms[min(retry_count, len(self.retry_delays_ms) - 1)]
                conn.execute(
                    update(events_table)
                    .where(events_table.c.id == event_id)
                    .values(
                        retry_count=retry_count + 1,
                        next_retry_at=self._now_ms() + delay,
                        last_error=str(error)[:1000],
                    )
                )
            return True
        except SQLAlchemyError as e:
            logger.error("[BUFFER] Error marking failed: %s", e)
            return False

    def get_stats(self) -> dict:
        try:
            with self._lock, self._engine.connect() as conn:
                total = conn.execute(select(func.count()).select_from(events_table)).scalar_one()
                oldest = conn.execute(select(func.min(events_table.c.created_at))).scalar_one()
                by_type = conn.execute(
                    select(events_table.c.event_type, func.count()).group_by(events_table.c.event_type)
                ).fetchall()
        except SQLAlchemyError as e:
            logger.error("[BUFFER] Error getting stats: %s", e)
            return {"total": 0, "oldest_timestamp": None, "by_type": {}}

        return {
            "total": total,
            "oldest_timestamp": oldest,
            "by_type": {event_type: count for event_type, count in by_type},
        }

    def count(self) -> int:
        try:
            with self._lock, self._engine.connect() as conn:
                return conn.execute(select(func.count()).select_from(events_table)).scalar_one()
        except SQLAlchemyError as e:
            logger.error("[BUFFER] Error counting events: %s", e)
            return 0

    def delete_oldest(self, n: int) -> None:
        try:
            with self._lock, self._engine.begin() as conn:
                self._delete_oldest(conn, n)
        except SQLAlchemyError as e:
            logger.error("[BUFFER] Error deleting oldest: %s", e)

    @staticmethod
    def _delete_oldest(conn, n: int) -> None:
        oldest_ids = (
            select(events_table.c.id)
            .order_by(events_table.c.created_at.asc(), events_table.c.id.asc())
            .limit(n)
        )
        conn.execute(delete(events_table).where(events_table.c.id.in_(oldest_ids)))

    def clear(self) -> None:
        with self._lock, self._engine.begin() as conn:
            conn.execute(delete(events_table))
        logger.info("[BUFFER] Cleared all events")

    def close(self) -> None:
        self._engine.dispose()
        logger.info("[BUFFER] Database closed")
