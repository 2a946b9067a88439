# checkout/services/connectivity.py
from __future__ import annotations

import logging
from typing import Callable

from django.core.cache import cache

from checkout.services.persistence_client import PersistenceClient

logger = logging.getLogger(__name__)

ReconnectListener = Callable[[], object]


class ConnectivityMonitor:
    """
    Online/offline signal shared by every request in the station.

    - unknown state counts as online (first checkout tries the network)
    - an offline -> online transition fires the reconnect listeners once
    """

    def __init__(self, *, client: PersistenceClient | None = None, cache_key: str = "pos_connectivity_online"):
        self.client = client
        self.cache_key = cache_key
        self._listeners: list[ReconnectListener] = []

    def on_reconnect(self, listener: ReconnectListener) -> None:
        self._listeners.append(listener)

    def is_online(self) -> bool:
        return bool(cache.get(self.cache_key, True))

    def mark_offline(self) -> None:
        if self.is_online():
            logger.warning("Station is offline; sales will be queued")
        cache.set(self.cache_key, False, None)

    def mark_online(self) -> bool:
        """Returns True when this call was a reconnect."""
        was_online = self.is_online()
        cache.set(self.cache_key, True, None)
        if was_online:
            return False

        logger.info("Station reconnected", extra={"listeners": len(self._listeners)})
        for listener in self._listeners:
            try:
                listener()
            except Exception:
                logger.exception("Reconnect listener failed")
        return True

    def set_online(self, online: bool) -> bool:
        if online:
            return self.mark_online()
        self.mark_offline()
        return False

    def probe(self) -> bool:
        if self.client is None:
            return self.is_online()
        online = self.client.ping()
        self.set_online(online)
        return online
