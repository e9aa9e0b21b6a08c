"""
Live query views.

A ``LiveQuery`` wraps a read against the store together with the names of
the tables it reads. Subscribers get the current result straight away and a
fresh result after every committed transaction that wrote to one of those
tables. The store calls ``QueryNotifier.notify`` after each commit; nothing
here depends on the storage engine.
"""
import asyncio
import logging
import threading
from typing import Callable, Generic, Iterable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription:
    """Handle returned by ``LiveQuery.subscribe``; call ``cancel()`` to stop updates."""

    def __init__(
        self,
        query: "LiveQuery",
        callback: Callable,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.query = query
        self.callback = callback
        self.on_error = on_error
        self.active = True

    def refresh(self, initial: bool = False) -> None:
        """Re-run the query and push the result."""
        if not self.active:
            return
        try:
            value = self.query.current()
        except Exception as e:
            if self.on_error is not None:
                self.on_error(e)
            elif initial:
                raise
            else:
                logger.exception(f"Live query on {sorted(self.query.tables)} failed")
            return

        if value is None and self.query.skip_none:
            return
        self.callback(value)

    def cancel(self) -> None:
        self.active = False
        self.query.db.notifier.unregister(self)


class QueryNotifier:
    """Registry of live subscriptions keyed by table name."""

    def __init__(self):
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._lock = threading.Lock()

    def register(self, tables: Iterable[str], subscription: Subscription) -> None:
        with self._lock:
            for table in tables:
                self._subscriptions.setdefault(table, []).append(subscription)

    def unregister(self, subscription: Subscription) -> None:
        with self._lock:
            for subscribers in self._subscriptions.values():
                if subscription in subscribers:
                    subscribers.remove(subscription)

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(table, []))

    def notify(self, tables: Iterable[str]) -> None:
        """Re-evaluate every subscription reading one of ``tables``, once each."""
        with self._lock:
            pending = {}
            for table in tables:
                for subscription in self._subscriptions.get(table, []):
                    pending[id(subscription)] = subscription

        logger.debug(f"Notifying {len(pending)} live queries of writes to {sorted(tables)}")
        for subscription in pending.values():
            subscription.refresh()


class LiveQuery(Generic[T]):
    """
    A continuously-updating view over a store query.

    Args:
        db: Store exposing ``session()`` and ``notifier``
        tables: Tables the query reads
        fetch: Function running the query on a session
        skip_none: Do not emit while the result is ``None`` (single-row views)
    """

    def __init__(self, db, tables: Iterable[str], fetch: Callable, skip_none: bool = False):
        self.db = db
        self.tables = frozenset(tables)
        self.fetch = fetch
        self.skip_none = skip_none

    def current(self) -> T:
        """Evaluate the query now."""
        with self.db.session() as session:
            return self.fetch(session)

    def subscribe(
        self,
        callback: Callable[[T], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> Subscription:
        """
        Push the current result to ``callback`` and again after every relevant commit.

        Errors from the initial evaluation are raised unless ``on_error`` is given.
        """
        subscription = Subscription(self, callback, on_error)
        self.db.notifier.register(self.tables, subscription)
        try:
            subscription.refresh(initial=True)
        except Exception:
            subscription.cancel()
            raise
        return subscription

    async def __aiter__(self):
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()

        def deliver(value):
            loop.call_soon_threadsafe(queue.put_nowait, (value, None))

        def fail(error):
            loop.call_soon_threadsafe(queue.put_nowait, (None, error))

        subscription = self.subscribe(deliver, fail)
        try:
            while True:
                value, error = await queue.get()
                if error is not None:
                    raise error
                yield value
        finally:
            subscription.cancel()

    async def first(self) -> T:
        """Wait for the first available value."""
        stream = self.__aiter__()
        try:
            return await stream.__anext__()
        finally:
            await stream.aclose()
