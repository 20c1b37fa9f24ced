"""Display-path invalidation signals.

Actions collect the paths whose rendered views went stale and the invalidator
publishes them once the transaction has committed. Nothing is cached here;
listeners (a page renderer, a CDN purger, a test) decide what to do.
"""
import logging
from typing import Callable, Iterable

logger = logging.getLogger("prodflow-core.cache")

Listener = Callable[[str], None]


class CacheInvalidator:
    def __init__(self):
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def revalidate(self, path: str) -> None:
        logger.debug(f"Revalidating {path}")
        for listener in list(self._listeners):
            listener(path)

    def revalidate_many(self, paths: Iterable[str]) -> None:
        seen = set()
        for path in paths:
            if path in seen:
                continue
            seen.add(path)
            self.revalidate(path)


class RecordingInvalidator(CacheInvalidator):
    """Invalidator that remembers every published path, in order."""

    def __init__(self):
        super().__init__()
        self.paths: list[str] = []
        self.subscribe(self.paths.append)
