"""
Connectivity observers - tell the sync engine when the network comes and goes.

Two implementations:
- ManualConnectivity: the host pushes state (e.g. the UI forwards its
  browser "online"/"offline" events to the API).
- HttpProbeConnectivity: a background thread probes a health URL.

Usage:
    observer = ManualConnectivity(initial=False)
    unsubscribe = observer.subscribe(lambda online: print("online" if online else "offline"))
    observer.set_online(True)   # fires the callback
    unsubscribe()
"""

import logging
import threading
from typing import Callable, List

import requests

logger = logging.getLogger("smartcrm.sync.connectivity")

DEFAULT_PROBE_INTERVAL = 10
DEFAULT_PROBE_TIMEOUT = 5


class ConnectivityObserver:
    """Tracks online state and notifies subscribers on transitions."""

    def __init__(self, initial: bool = True):
        self._online = initial
        self._subscribers: List[Callable[[bool], None]] = []
        self._lock = threading.Lock()

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        """Register a callback; returns a function that removes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _update(self, online: bool):
        with self._lock:
            if online == self._online:
                return
            self._online = online
            callbacks = list(self._subscribers)

        for callback in callbacks:
            try:
                callback(online)
            except Exception as e:
                logger.error("Connectivity subscriber failed: %s", e)


class ManualConnectivity(ConnectivityObserver):
    """Connectivity driven explicitly by the host application."""

    def set_online(self, online: bool):
        self._update(bool(online))


class HttpProbeConnectivity(ConnectivityObserver):
    """Polls a health URL; any response below 500 counts as online."""

    def __init__(self, url: str, interval: float = DEFAULT_PROBE_INTERVAL,
                 timeout: float = DEFAULT_PROBE_TIMEOUT, session: requests.Session = None,
                 initial: bool = True):
        super().__init__(initial=initial)
        self.url = url
        self.interval = interval
        self.timeout = timeout
        self.session = session or requests.Session()
        self._stop_event = threading.Event()
        self._thread = None

    def probe(self) -> bool:
        """Run one probe and publish the result."""
        try:
            resp = self.session.get(self.url, timeout=self.timeout)
            online = resp.status_code < 500
        except requests.RequestException as e:
            logger.debug("Connectivity probe failed: %s", e)
            online = False
        self._update(online)
        return online

    def _run(self):
        logger.info("Probing %s (every %ss)", self.url, self.interval)
        while not self._stop_event.is_set():
            self.probe()
            self._stop_event.wait(self.interval)
        logger.info("Connectivity probe stopped")

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, daemon=True, name="connectivity-probe",
        )
        self._thread.start()

    def stop(self):
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=self.timeout + 1)
            self._thread = None
