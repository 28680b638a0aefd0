from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

Loader = Callable[[], Any]
Callback = Callable[[Any], None]
Unsubscribe = Callable[[], None]


@dataclass
class _Subscription:
    topic: str
    loader: Loader
    callback: Callback


def document_topic(collection: str, doc_id: str) -> str:
    return f"{collection}/{doc_id}"


class ChangeFeed:
    """Realtime snapshot delivery for collections and single documents.

    A subscriber gets the loader's current snapshot right away and again
    after every committed write that touched its topic.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subs: dict[int, _Subscription] = {}
        self._next_id = 0

    def subscribe(self, topic: str, loader: Loader, callback: Callback) -> Unsubscribe:
        with self._lock:
            sub_id = self._next_id
            self._next_id += 1
            sub = _Subscription(topic=topic, loader=loader, callback=callback)
            self._subs[sub_id] = sub
        self._deliver(sub)

        def unsubscribe() -> None:
            with self._lock:
                self._subs.pop(sub_id, None)

        return unsubscribe

    def publish(self, topics: Iterable[str]) -> None:
        touched = set(topics)
        if not touched:
            return
        with self._lock:
            targets = [s for s in self._subs.values() if s.topic in touched]
        for sub in targets:
            self._deliver(sub)

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)

    def _deliver(self, sub: _Subscription) -> None:
        try:
            sub.callback(sub.loader())
        except Exception:
            logger.exception("change feed delivery failed topic=%s", sub.topic)
