"""Connectivity signal for short-circuiting calls while offline.

Usage example:
    from debt_tracker_client.infrastructure.connectivity import ConnectivityMonitor

    monitor = ConnectivityMonitor()
    unsubscribe = monitor.subscribe(lambda online: print("online" if online else "offline"))
    monitor.update(False)
    unsubscribe()
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import override

from ..observability import get_logger
from ..protocols import ConnectivitySignal

logger = get_logger("debt_tracker_client.infrastructure.connectivity")


class ConnectivityMonitor(ConnectivitySignal):
    """Holds the last known connectivity state and notifies on change.

    The platform layer feeds it through `update`; it assumes online until told
    otherwise.
    """

    def __init__(self, *, online: bool = True) -> None:
        self._online = online
        self._listeners: list[Callable[[bool], None]] = []
        self._lock = threading.Lock()

    @property
    @override
    def is_online(self) -> bool:
        with self._lock:
            return self._online

    def update(self, online: bool) -> None:
        with self._lock:
            if self._online == online:
                return
            self._online = online
            listeners = list(self._listeners)
        logger.info("Network status changed: %s", "online" if online else "offline")
        for listener in listeners:
            try:
                listener(online)
            except Exception:
                logger.exception("Connectivity listener failed")

    @override
    def subscribe(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
