"""Connectivity flag with change notifications."""

from __future__ import annotations

import logging
from typing import Any, Callable, List

from tracking import t

NetworkListener = Callable[[bool], None]


class NetworkStatus:
    """Holds the current online flag and notifies listeners on transitions."""

    def __init__(self, online: bool = True, *, logger: Any = None) -> None:
        t('reservations.network.NetworkStatus.__init__')
        self._online = online
        self._listeners: List[NetworkListener] = []
        self.logger = logger or logging.getLogger('NetworkStatus')

    @property
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """Update the flag; listeners only hear about actual transitions."""
        t('reservations.network.NetworkStatus.set_online')
        online = bool(online)
        if online == self._online:
            return
        self._online = online
        self.logger.info("Network is now %s", "online" if online else "offline")
        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception as exc:
                self.logger.error("Network listener failed: %s", exc, exc_info=True)

    def subscribe(self, listener: NetworkListener) -> Callable[[], None]:
        t('reservations.network.NetworkStatus.subscribe')
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
