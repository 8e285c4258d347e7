"""
Offline mutation queue
Holds reservation mutations while the backend is unreachable and replays
them in order once connectivity returns.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

from tracking import t

from infrastructure.constants import (
    QUEUE_ITEM_DELAY_SECONDS,
    QUEUE_MAX_RETRIES,
    QUEUE_MAX_SIZE,
    QUEUE_RETRY_DELAY_SECONDS,
    QUEUE_STORAGE_KEY,
)
from reservations.errors import (
    MutationFailure,
    QueueCapacityError,
    StorageCapacityError,
    ValidationError,
)
from reservations.interfaces import DurableStore, MutationAPI
from reservations.models import decode_patch, encode_patch
from reservations.network import NetworkStatus
from .operations import (
    QueueItemStatus,
    QueueOperation,
    QueueOperationKind,
    QueuePassSummary,
    QueueStats,
    QueueStatus,
    QueuedMutation,
)
from .transitions import mark_completed, record_failure, revive

QueueListener = Callable[[QueueStatus], None]


class OfflineMutationQueue:
    """Durable FIFO dispatcher for reservation mutations."""

    def __init__(
        self,
        mutation_api: MutationAPI,
        store: DurableStore,
        *,
        network: Optional[NetworkStatus] = None,
        storage_key: str = QUEUE_STORAGE_KEY,
        max_size: int = QUEUE_MAX_SIZE,
        max_retries: int = QUEUE_MAX_RETRIES,
        item_delay: float = QUEUE_ITEM_DELAY_SECONDS,
        retry_delay: float = QUEUE_RETRY_DELAY_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Any = None,
    ) -> None:
        t('reservations.queue.offline_queue.OfflineMutationQueue.__init__')
        self.api = mutation_api
        self.store = store
        self.network = network
        self.storage_key = storage_key
        self.max_size = max_size
        self.max_retries = max_retries
        self.item_delay = item_delay
        self.retry_delay = retry_delay
        self.clock = clock or datetime.now
        self.logger = logger or logging.getLogger('OfflineMutationQueue')

        self.stats = QueueStats()
        self._online = network.is_online if network is not None else True
        self._processing = False
        self._retry_scheduled = False
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[QueueListener] = []
        self._items: List[QueueOperation] = self._load()
        self._trim_failed()
        self._unsubscribe_network = network.subscribe(self.set_online) if network is not None else None

        self.logger.info(f"""OFFLINE QUEUE INITIALIZED
        Storage key: {self.storage_key}
        Restored items: {len(self._items)}
        Online: {self._online}
        Max size: {self.max_size}, max retries: {self.max_retries}
        """)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _load(self) -> List[QueueOperation]:
        t('reservations.queue.offline_queue.OfflineMutationQueue._load')
        raw = self.store.get(self.storage_key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            self.logger.warning(
                "Invalid queue format under %s; expected list, received %s",
                self.storage_key,
                type(raw).__name__,
            )
            return []

        items: List[QueueOperation] = []
        for entry in raw:
            try:
                item = QueueOperation.from_payload(entry)
            except (KeyError, TypeError, ValueError) as exc:
                self.logger.error("Dropping unreadable queue entry %r: %s", entry, exc)
                continue
            if item.status is not QueueItemStatus.COMPLETED:
                items.append(item)
        return items

    def _persist(self) -> bool:
        """Write the item list, pruning completed items and retrying once when full."""
        t('reservations.queue.offline_queue.OfflineMutationQueue._persist')
        try:
            self.store.set(self.storage_key, [item.to_payload() for item in self._items])
            return True
        except StorageCapacityError as exc:
            self.logger.warning("Queue store is full (%s); pruning completed items", exc)
        except OSError as exc:
            self.logger.error("Failed to save queue under %s: %s", self.storage_key, exc)
            return False

        self._prune_completed()
        try:
            self.store.set(self.storage_key, [item.to_payload() for item in self._items])
            return True
        except (StorageCapacityError, OSError) as exc:
            self.logger.error(
                "Failed to save queue under %s after pruning (%s items): %s",
                self.storage_key,
                len(self._items),
                exc,
            )
            return False

    def _prune_completed(self) -> int:
        before = len(self._items)
        self._items = [item for item in self._items if item.status is not QueueItemStatus.COMPLETED]
        return before - len(self._items)

    def _trim_failed(self) -> int:
        """Keep at most ``max_size`` failed items, dropping the oldest."""
        failed = [item for item in self._items if item.status is QueueItemStatus.FAILED]
        excess = len(failed) - self.max_size
        if excess <= 0:
            return 0
        dropped = {item.id for item in failed[:excess]}
        self._items = [item for item in self._items if item.id not in dropped]
        self.logger.warning("Dropped %s oldest permanently failed operations", excess)
        return excess

    # ------------------------------------------------------------------
    # Enqueueing
    # ------------------------------------------------------------------
    def enqueue(self, operation: QueuedMutation) -> str:
        """Append ``operation`` and return its queue id.

        Raises ``ValidationError`` for malformed operations and
        ``QueueCapacityError`` when ``max_size`` items are already pending.
        Permanently failed items do not count.
        """
        t('reservations.queue.offline_queue.OfflineMutationQueue.enqueue')
        errors = operation.validate()
        if errors:
            raise ValidationError(errors)

        if self._pending_count() >= self.max_size:
            self.logger.warning("Refusing %s operation: queue is full", operation.kind.value)
            raise QueueCapacityError(self.max_size)

        item = QueueOperation(
            id=uuid.uuid4().hex,
            timestamp=self.clock(),
            operation=operation,
        )
        self._items.append(item)
        self.stats.enqueued += 1
        self._persist()

        self.logger.info(f"""OPERATION QUEUED
        Queue ID: {item.id}
        Kind: {operation.kind.value}
        Reservation ID: {operation.reservation_id or 'new'}
        Queue size: {len(self._items)}
        Online: {self._online}
        """)
        self._notify()

        if self._online and not self._processing:
            self._schedule_processing()
        return item.id

    def queue_create(self, data: Mapping[str, Any]) -> str:
        t('reservations.queue.offline_queue.OfflineMutationQueue.queue_create')
        return self.enqueue(QueuedMutation(kind=QueueOperationKind.CREATE, data=encode_patch(data)))

    def queue_update(self, reservation_id: str, patch: Mapping[str, Any]) -> str:
        t('reservations.queue.offline_queue.OfflineMutationQueue.queue_update')
        return self.enqueue(QueuedMutation(
            kind=QueueOperationKind.UPDATE,
            reservation_id=reservation_id,
            data=encode_patch(patch),
        ))

    def queue_delete(self, reservation_id: str) -> str:
        t('reservations.queue.offline_queue.OfflineMutationQueue.queue_delete')
        return self.enqueue(QueuedMutation(kind=QueueOperationKind.DELETE, reservation_id=reservation_id))

    def queue_toggle_field(self, reservation_id: str, field: str) -> str:
        t('reservations.queue.offline_queue.OfflineMutationQueue.queue_toggle_field')
        return self.enqueue(QueuedMutation(
            kind=QueueOperationKind.TOGGLE_FIELD,
            reservation_id=reservation_id,
            field=field,
        ))

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------
    def _schedule_processing(self, delay: float = 0.0) -> None:
        """Start a processing pass on the running loop after ``delay`` seconds."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.debug("No running event loop; processing deferred")
            return

        if delay > 0:
            if self._retry_scheduled:
                return
            self._retry_scheduled = True

        task = loop.create_task(self._process_after(delay))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _process_after(self, delay: float) -> None:
        if delay > 0:
            try:
                await asyncio.sleep(delay)
            finally:
                self._retry_scheduled = False
        await self.process_queue()

    async def _dispatch(self, operation: QueuedMutation) -> None:
        t('reservations.queue.offline_queue.OfflineMutationQueue._dispatch')
        if operation.kind is QueueOperationKind.CREATE:
            await self.api.create(decode_patch(operation.data))
        elif operation.kind is QueueOperationKind.UPDATE:
            await self.api.update(operation.reservation_id, decode_patch(operation.data))
        elif operation.kind is QueueOperationKind.DELETE:
            deleted = await self.api.delete(operation.reservation_id)
            if not deleted:
                raise MutationFailure(f"Backend refused to delete reservation {operation.reservation_id}")
        else:
            await self.api.toggle_field(operation.reservation_id, operation.field)

    async def process_queue(self) -> QueuePassSummary:
        """Dispatch every pending item once, in enqueue order.

        Only one pass runs at a time; a call made while a pass is active, or
        while offline, returns a skipped summary.
        """
        t('reservations.queue.offline_queue.OfflineMutationQueue.process_queue')
        if self._processing:
            return QueuePassSummary(skipped=True, remaining=self._pending_count())
        if not self._online:
            self.logger.debug("Offline; queue processing suppressed")
            return QueuePassSummary(skipped=True, remaining=self._pending_count())

        pending = [item for item in self._items if item.is_pending]
        if not pending:
            return QueuePassSummary()

        self._processing = True
        self.stats.passes += 1
        self._notify()
        self.logger.info("Processing %s queued operations", len(pending))

        attempted = succeeded = retried = failed = 0
        try:
            for index, item in enumerate(pending):
                if item not in self._items or not item.is_pending:
                    continue

                attempted += 1
                try:
                    await self._dispatch(item.operation)
                except Exception as exc:
                    exhausted = record_failure(item, exc, self.max_retries)
                    self.stats.record_failure(exhausted)
                    if exhausted:
                        failed += 1
                        self.logger.error(f"""QUEUED OPERATION FAILED PERMANENTLY
        Queue ID: {item.id}
        Kind: {item.operation.kind.value}
        Reservation ID: {item.operation.reservation_id or 'new'}
        Attempts: {item.retries}
        Last error: {item.error}
        """)
                    else:
                        retried += 1
                        self.logger.warning(
                            "Queued %s %s failed (attempt %s/%s): %s",
                            item.operation.kind.value,
                            item.id,
                            item.retries,
                            self.max_retries,
                            item.error,
                        )
                else:
                    mark_completed(item, self.clock())
                    self.stats.record_success()
                    succeeded += 1
                    self.logger.debug("Queued %s %s completed", item.operation.kind.value, item.id)

                self._persist()
                self._notify()

                if index < len(pending) - 1 and self.item_delay > 0:
                    await asyncio.sleep(self.item_delay)
        finally:
            self._processing = False

        self._prune_completed()
        self._trim_failed()
        self._persist()
        remaining = self._pending_count()

        self.logger.info(f"""QUEUE PASS COMPLETE
        Attempted: {attempted}
        Succeeded: {succeeded}
        Will retry: {retried}
        Failed permanently: {failed}
        Remaining: {remaining}
        """)
        self._notify()

        if remaining and self._online:
            self._schedule_processing(self.retry_delay * 2)

        return QueuePassSummary(
            attempted=attempted,
            succeeded=succeeded,
            retried=retried,
            failed=failed,
            remaining=remaining,
        )

    async def wait_idle(self) -> None:
        """Wait until every scheduled processing pass has finished."""
        t('reservations.queue.offline_queue.OfflineMutationQueue.wait_idle')
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Connectivity and manual control
    # ------------------------------------------------------------------
    def set_online(self, online: bool) -> None:
        """Going online starts a pass; going offline only stops new passes."""
        t('reservations.queue.offline_queue.OfflineMutationQueue.set_online')
        online = bool(online)
        was_online = self._online
        self._online = online
        if online == was_online:
            return

        self.logger.info("Queue is now %s", "online" if online else "offline")
        self._notify()
        if online and self._pending_count():
            self._schedule_processing()

    def trigger_processing(self) -> bool:
        """Schedule a pass when online, idle and holding pending items."""
        t('reservations.queue.offline_queue.OfflineMutationQueue.trigger_processing')
        if not self._online or self._processing or not self._pending_count():
            return False
        self._schedule_processing()
        return True

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def is_processing(self) -> bool:
        return self._processing

    def retry_failed_items(self) -> int:
        """Reset retries on retried and failed items, then trigger processing."""
        t('reservations.queue.offline_queue.OfflineMutationQueue.retry_failed_items')
        revived = sum(1 for item in self._items if revive(item))
        if not revived:
            return 0

        self._persist()
        self.logger.info("Reset %s queued operations for retry", revived)
        self._notify()
        if self._online and not self._processing:
            self._schedule_processing()
        return revived

    def get_item(self, queue_id: str) -> Optional[QueueOperation]:
        for item in self._items:
            if item.id == queue_id:
                return item.copy()
        return None

    def remove_item(self, queue_id: str) -> bool:
        t('reservations.queue.offline_queue.OfflineMutationQueue.remove_item')
        for index, item in enumerate(self._items):
            if item.id == queue_id:
                del self._items[index]
                self._persist()
                self.logger.info("Removed queued operation %s", queue_id)
                self._notify()
                return True
        self.logger.warning("Queued operation %s not found", queue_id)
        return False

    def clear(self, completed_only: bool = False) -> int:
        """Drop completed items, or every item, and return how many were removed."""
        t('reservations.queue.offline_queue.OfflineMutationQueue.clear')
        if completed_only:
            removed = self._prune_completed()
        else:
            removed = len(self._items)
            self._items = []
        self._persist()
        self.logger.info("Cleared %s queued operations", removed)
        self._notify()
        return removed

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------
    def _pending_count(self) -> int:
        return sum(1 for item in self._items if item.is_pending)

    def get_status(self) -> QueueStatus:
        t('reservations.queue.offline_queue.OfflineMutationQueue.get_status')
        counts: Dict[QueueItemStatus, int] = {status: 0 for status in QueueItemStatus}
        retrying = 0
        for item in self._items:
            counts[item.status] += 1
            if item.is_pending and item.retries > 0:
                retrying += 1

        return QueueStatus(
            is_online=self._online,
            is_processing=self._processing,
            pending_count=counts[QueueItemStatus.PENDING],
            retrying_count=retrying,
            failed_count=counts[QueueItemStatus.FAILED],
            completed_count=self.stats.completed,
            items=tuple(item.copy() for item in self._items),
        )

    def subscribe(self, listener: QueueListener) -> Callable[[], None]:
        t('reservations.queue.offline_queue.OfflineMutationQueue.subscribe')
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        status = self.get_status()
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as exc:
                self.logger.error("Queue listener failed: %s", exc, exc_info=True)

    async def close(self) -> None:
        """Cancel scheduled passes, detach from the network signal and persist."""
        t('reservations.queue.offline_queue.OfflineMutationQueue.close')
        if self._unsubscribe_network is not None:
            self._unsubscribe_network()
            self._unsubscribe_network = None

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._retry_scheduled = False
        self._persist()
        self.logger.info("Offline queue closed\n%s", self.stats.format_report())
