"""Fire-and-forget delivery of order update notifications.

Comments are committed before anything is submitted here. Work runs on a
bounded thread pool; when too many tasks are outstanding, new notices are
dropped with a warning instead of queueing without limit.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from typing import Callable

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.db.session import SessionLocal
from app.services import notification_service
from app.services.notification_service import OrderUpdateNotice
from app.services.order_errors import NotificationError

logger = logging.getLogger(__name__)

NoticeHandler = Callable[[Session, OrderUpdateNotice], object]


class NotificationDispatcher:
    def __init__(
        self,
        max_workers: int = 4,
        max_pending: int = 100,
        session_factory: Callable[[], Session] = SessionLocal,
        handler: NoticeHandler | None = None,
    ) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=max(max_workers, 1),
            thread_name_prefix="order-notify",
        )
        self._slots = threading.BoundedSemaphore(max(max_pending, 1))
        self._session_factory = session_factory
        self._handler = handler or notification_service.notify_order_update
        self._futures: set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, notice: OrderUpdateNotice) -> bool:
        """
        Queue a notice for delivery. Never raises and never blocks.

        Returns False when the notice was dropped (pool saturated or shut down).
        """
        log_extra = build_log_context(user_id=notice.actor_user_id, order_id=notice.order_id)
        if self._closed:
            logger.warning("Notification dropped: dispatcher shut down", extra=log_extra)
            return False
        if not self._slots.acquire(blocking=False):
            logger.warning("Notification dropped: too many pending sends", extra=log_extra)
            return False
        try:
            future = self._executor.submit(self._run, notice)
        except RuntimeError:
            self._slots.release()
            logger.warning("Notification dropped: executor unavailable", extra=log_extra)
            return False

        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._on_done)
        return True

    def _on_done(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)
        self._slots.release()

    def _run(self, notice: OrderUpdateNotice) -> None:
        log_extra = build_log_context(user_id=notice.actor_user_id, order_id=notice.order_id)
        db = self._session_factory()
        try:
            self._handler(db, notice)
        except NotificationError as exc:
            logger.warning("Order update email failed: %s", exc, extra=log_extra)
        except Exception:
            # Task boundary: delivery problems never reach the poster
            logger.exception("Order update notification crashed", extra=log_extra)
        finally:
            db.close()

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._futures)

    def drain(self, timeout: float | None = None) -> None:
        """Block until every submitted task has finished (tests, shutdown)."""
        with self._lock:
            futures = list(self._futures)
        if futures:
            wait_futures(futures, timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait)


_dispatcher: NotificationDispatcher | None = None
_dispatcher_lock = threading.Lock()


def get_dispatcher() -> NotificationDispatcher:
    """Process-wide dispatcher, created on first use."""
    global _dispatcher
    if _dispatcher is None:
        with _dispatcher_lock:
            if _dispatcher is None:
                _dispatcher = NotificationDispatcher(
                    max_workers=settings.NOTIFY_MAX_WORKERS,
                    max_pending=settings.NOTIFY_MAX_PENDING,
                )
    return _dispatcher


def shutdown_dispatcher() -> None:
    """Wait for in-flight sends and release the pool (app shutdown)."""
    global _dispatcher
    with _dispatcher_lock:
        dispatcher, _dispatcher = _dispatcher, None
    if dispatcher is not None:
        dispatcher.shutdown(wait=True)
