"""Dependency container wiring the reservation core together."""

from __future__ import annotations
from tracking import t

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from infrastructure.settings import AppSettings
from logging_config import setup_logging
from reservations.interfaces import DurableStore, MutationAPI
from reservations.network import NetworkStatus
from reservations.queue import JsonFileStore, OfflineMutationQueue
from reservations.registry import ResourceRegistry
from reservations.services import ReservationService
from reservations.state import ReservationStateManager


@dataclass(frozen=True)
class ReservationDependencies:
    """Concrete dependency snapshot for the reservation runtime."""

    settings: AppSettings
    network: NetworkStatus
    registry: ResourceRegistry
    store: DurableStore
    state_manager: ReservationStateManager
    offline_queue: OfflineMutationQueue
    reservation_service: ReservationService

    def as_dict(self) -> Dict[str, Any]:
        """Return dependencies as a mapping keyed by attribute name."""
        t('bootstrap.container.ReservationDependencies.as_dict')

        return {
            'settings': self.settings,
            'network': self.network,
            'registry': self.registry,
            'store': self.store,
            'state_manager': self.state_manager,
            'offline_queue': self.offline_queue,
            'reservation_service': self.reservation_service,
        }


class ReservationContainer:
    """Lazy dependency container with optional override support.

    Every long-lived object is built once on first access and shared by
    reference. ``start()`` and ``close()`` bracket the runtime.
    """

    def __init__(
        self,
        settings: AppSettings,
        mutation_api: MutationAPI,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> None:
        t('bootstrap.container.ReservationContainer.__init__')
        self.settings = settings
        self.mutation_api = mutation_api
        self.logger = logging.getLogger('ReservationContainer')
        self._cache: Dict[str, Any] = {}
        self._started = False
        if overrides:
            self._cache.update(overrides)

    # ------------------------------------------------------------------
    # Internal helpers
    def _resolve(self, key: str, factory: Callable[[], Any]) -> Any:
        t('bootstrap.container.ReservationContainer._resolve')
        if key not in self._cache:
            self._cache[key] = factory()
        return self._cache[key]

    # ------------------------------------------------------------------
    # Core dependencies
    @property
    def network(self) -> NetworkStatus:
        t('bootstrap.container.ReservationContainer.network')
        return self._resolve('network', NetworkStatus)

    @property
    def registry(self) -> ResourceRegistry:
        t('bootstrap.container.ReservationContainer.registry')

        def factory() -> ResourceRegistry:
            return ResourceRegistry.from_file(self.settings.resources_file)

        return self._resolve('registry', factory)

    @property
    def store(self) -> DurableStore:
        t('bootstrap.container.ReservationContainer.store')

        def factory() -> DurableStore:
            return JsonFileStore(
                self.settings.queue_store_directory,
                max_bytes=self.settings.queue_store_max_bytes,
            )

        return self._resolve('store', factory)

    @property
    def state_manager(self) -> ReservationStateManager:
        t('bootstrap.container.ReservationContainer.state_manager')

        def factory() -> ReservationStateManager:
            return ReservationStateManager(
                self.mutation_api,
                registry=self.registry,
                history_limit=self.settings.operation_history_limit,
                actor=self.settings.change_actor,
            )

        return self._resolve('state_manager', factory)

    @property
    def offline_queue(self) -> OfflineMutationQueue:
        t('bootstrap.container.ReservationContainer.offline_queue')

        def factory() -> OfflineMutationQueue:
            return OfflineMutationQueue(
                self.mutation_api,
                self.store,
                network=self.network,
                storage_key=self.settings.queue_storage_key,
                max_size=self.settings.queue_max_size,
                max_retries=self.settings.queue_max_retries,
                item_delay=self.settings.queue_item_delay_seconds,
                retry_delay=self.settings.queue_retry_delay_seconds,
            )

        return self._resolve('offline_queue', factory)

    @property
    def reservation_service(self) -> ReservationService:
        t('bootstrap.container.ReservationContainer.reservation_service')

        def factory() -> ReservationService:
            return ReservationService(
                self.state_manager,
                self.offline_queue,
                registry=self.registry,
                network=self.network,
                timezone=self.settings.timezone,
            )

        return self._resolve('reservation_service', factory)

    # ------------------------------------------------------------------
    def build_dependencies(self) -> ReservationDependencies:
        """Materialise and return all core dependencies."""
        t('bootstrap.container.ReservationContainer.build_dependencies')

        return ReservationDependencies(
            settings=self.settings,
            network=self.network,
            registry=self.registry,
            store=self.store,
            state_manager=self.state_manager,
            offline_queue=self.offline_queue,
            reservation_service=self.reservation_service,
        )

    @property
    def started(self) -> bool:
        return self._started

    async def start(self, *, configure_logging: bool = False) -> ReservationDependencies:
        """Build everything and resume any queued work left from a previous run."""
        t('bootstrap.container.ReservationContainer.start')
        if configure_logging and not self._started:
            setup_logging(self.settings.log_directory, self.settings.production_mode)
        dependencies = self.build_dependencies()
        if not self._started:
            self._started = True
            resumed = dependencies.offline_queue.trigger_processing()
            self.logger.info(f"""RESERVATION CORE STARTED
        Resources: {len(dependencies.registry)}
        Queued operations: {dependencies.offline_queue.get_status().pending_count}
        Resumed processing: {resumed}
        """)
        return dependencies

    async def close(self) -> None:
        t('bootstrap.container.ReservationContainer.close')
        if not self._started:
            return
        queue = self._cache.get('offline_queue')
        if queue is not None:
            await queue.close()
        self._started = False
        self.logger.info("Reservation core stopped")


__all__ = ['ReservationDependencies', 'ReservationContainer']
