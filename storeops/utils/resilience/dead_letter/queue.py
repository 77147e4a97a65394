from __future__ import annotations

import asyncio
import traceback
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storeops.core.config import settings
from storeops.models.dead_letter import DeadLetterRecord, ResolutionType
from storeops.utils.logger import add_dlq_context, get_logger

from ..errors import DeadLetterError

logger = get_logger(__name__)

SessionFactory = Callable[[], Session]


def describe_error(error: BaseException) -> Dict[str, Optional[str]]:
    """Message, formatted stack and optional `code` attribute of `error`."""
    code = getattr(error, "code", None)
    return {
        "error_message": str(error) or type(error).__name__,
        "error_stack": "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        ),
        "error_code": str(code) if code is not None else None,
    }


class DeadLetterQueue:
    """
    SQL-backed Dead Letter Queue implementation.

    Stores terminally failed work in the `dead_letter_queue` table. Writes are
    best effort: storage errors are logged and reported as "no id", never
    raised into the caller's failure path. Blocking SQL runs in a worker
    thread so the event loop keeps serving other callers.
    """

    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        enabled: Optional[bool] = None,
    ) -> None:
        self._session_factory = session_factory
        self.enabled = settings.DLQ_ENABLED if enabled is None else enabled

    def _session(self) -> Session:
        if self._session_factory is None:
            from storeops.db.session import SessionLocal

            self._session_factory = SessionLocal
        try:
            return self._session_factory()
        except Exception as exc:
            raise DeadLetterError(f"DLQ session unavailable: {exc}") from exc

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Context manager for write transactions"""
        db = self._session()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise DeadLetterError(f"DLQ storage error: {exc}") from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @contextmanager
    def reading(self) -> Iterator[Session]:
        """Read-only session; loaded rows stay usable after close."""
        db = self._session()
        try:
            yield db
        except SQLAlchemyError as exc:
            raise DeadLetterError(f"DLQ storage error: {exc}") from exc
        finally:
            db.close()

    # -- write path --------------------------------------------------------

    def _insert(self, values: Dict[str, Any]) -> str:
        with self.transaction() as db:
            record = DeadLetterRecord(**values)
            db.add(record)
            db.flush()  # Get ID without committing
            return record.id

    async def add_to_dlq(
        self,
        source_queue: str,
        payload: Any,
        error: BaseException,
        attempts: int,
        max_attempts: int,
        original_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        """
        Record one terminal failure. Returns the new record id, or None when the
        DLQ is disabled or the write failed.
        """
        if not self.enabled:
            logger.warning(
                "dlq_disabled_record_dropped",
                queue=source_queue,
                original_id=original_id,
                error=str(error),
            )
            return None

        values = {
            "source_queue": source_queue,
            "original_id": original_id,
            "payload": payload,
            "attempts": attempts,
            "max_attempts": max_attempts,
            "extra_metadata": metadata or {},
            **describe_error(error),
        }
        try:
            dlq_id = await asyncio.to_thread(self._insert, values)
        except Exception as exc:  # noqa: BLE001 - DLQ is best-effort durability
            logger.error(
                "dlq_write_failed",
                queue=source_queue,
                original_id=original_id,
                error=str(exc),
                original_error=str(error),
            )
            return None

        logger.warning(
            "dlq_record_created",
            **add_dlq_context(dlq_id, source_queue),
            original_id=original_id,
            attempts=attempts,
            max_attempts=max_attempts,
            error=str(error),
        )
        return dlq_id

    # -- read path ---------------------------------------------------------

    def _select_pending(self, source_queue: Optional[str], limit: int) -> List[DeadLetterRecord]:
        with self.reading() as db:
            query = db.query(DeadLetterRecord).filter(DeadLetterRecord.resolved_at.is_(None))
            if source_queue:
                query = query.filter(DeadLetterRecord.source_queue == source_queue)
            return query.order_by(DeadLetterRecord.created_at.desc()).limit(limit).all()

    async def get_dlq_items(
        self, source_queue: Optional[str] = None, limit: Optional[int] = None
    ) -> List[DeadLetterRecord]:
        """Pending records, newest first, optionally for one source."""
        limit = settings.DLQ_DEFAULT_LIMIT if limit is None else limit
        try:
            return await asyncio.to_thread(self._select_pending, source_queue, limit)
        except Exception as exc:  # noqa: BLE001
            logger.error("dlq_read_failed", queue=source_queue, error=str(exc))
            return []

    def _select_one(self, dlq_id: str, pending_only: bool) -> Optional[DeadLetterRecord]:
        with self.reading() as db:
            query = db.query(DeadLetterRecord).filter(DeadLetterRecord.id == dlq_id)
            if pending_only:
                query = query.filter(DeadLetterRecord.resolved_at.is_(None))
            return query.one_or_none()

    async def get_dlq_item(
        self, dlq_id: str, pending_only: bool = True
    ) -> Optional[DeadLetterRecord]:
        try:
            return await asyncio.to_thread(self._select_one, dlq_id, pending_only)
        except Exception as exc:  # noqa: BLE001
            logger.error("dlq_read_failed", **add_dlq_context(dlq_id), error=str(exc))
            return None

    # -- resolution path ---------------------------------------------------

    def _mark_resolved(self, dlq_id: str, values: Dict[str, Any]) -> int:
        with self.transaction() as db:
            return (
                db.query(DeadLetterRecord)
                .filter(
                    DeadLetterRecord.id == dlq_id,
                    DeadLetterRecord.resolved_at.is_(None),
                )
                .update(values, synchronize_session=False)
            )

    async def resolve_dlq_item(
        self,
        dlq_id: str,
        resolved_by: str,
        resolution_type: ResolutionType | str,
        notes: Optional[str] = None,
    ) -> bool:
        """
        Resolve a pending record.

        Guarded by "still unresolved": a second resolution is a logged no-op
        returning False, never an error.
        """
        kind = ResolutionType(resolution_type)
        values = {
            "resolved_at": datetime.now(timezone.utc),
            "resolved_by": resolved_by,
            "resolution_type": kind.value,
            "resolution_notes": notes,
        }
        try:
            updated = await asyncio.to_thread(self._mark_resolved, dlq_id, values)
        except Exception as exc:  # noqa: BLE001
            logger.error("dlq_resolve_failed", **add_dlq_context(dlq_id), error=str(exc))
            return False

        if not updated:
            logger.info(
                "dlq_resolve_noop",
                **add_dlq_context(dlq_id),
                resolution_type=kind.value,
            )
            return False

        logger.info(
            "dlq_record_resolved",
            **add_dlq_context(dlq_id),
            resolution_type=kind.value,
            resolved_by=resolved_by,
        )
        return True

    # -- aggregates --------------------------------------------------------

    def _aggregate(self) -> Dict[str, Dict[str, int]]:
        pending = func.sum(case((DeadLetterRecord.resolved_at.is_(None), 1), else_=0))
        with self.reading() as db:
            rows = (
                db.query(
                    DeadLetterRecord.source_queue,
                    pending,
                    func.count(DeadLetterRecord.id),
                )
                .group_by(DeadLetterRecord.source_queue)
                .all()
            )
        stats: Dict[str, Dict[str, int]] = {}
        for source_queue, pending_count, total in rows:
            pending_count = int(pending_count or 0)
            stats[source_queue] = {
                "pending": pending_count,
                "resolved": int(total) - pending_count,
            }
        return stats

    async def read_stats(self) -> Dict[str, Dict[str, int]]:
        """Strict variant of `get_dlq_stats`: raises `DeadLetterError` on storage failure."""
        return await asyncio.to_thread(self._aggregate)

    async def get_dlq_stats(self) -> Dict[str, Dict[str, int]]:
        """{source_queue: {"pending": n, "resolved": m}} over all records."""
        try:
            return await self.read_stats()
        except Exception as exc:  # noqa: BLE001
            logger.error("dlq_stats_failed", error=str(exc))
            return {}

    async def pending_count(self) -> int:
        """Total pending backlog. Raises `DeadLetterError` on storage failure."""
        stats = await self.read_stats()
        return sum(entry["pending"] for entry in stats.values())
