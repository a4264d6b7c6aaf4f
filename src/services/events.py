from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, DefaultDict, List

from loguru import logger

Callback = Callable[[Any], None]

CHANNELS = ("pois", "loading", "progress", "area_name", "search", "filter", "position")


class EventBus:
    """Explicit publish/subscribe channels.

    Callbacks run synchronously, in subscription order, on the publisher's
    context. A failing subscriber is logged and the rest still receive the event.
    """

    def __init__(self) -> None:
        self._subs: DefaultDict[str, List[Callback]] = defaultdict(list)

    def subscribe(self, channel: str, callback: Callback) -> Callable[[], None]:
        if channel not in CHANNELS:
            raise ValueError(f"unknown channel: {channel}")
        self._subs[channel].append(callback)

        def unsubscribe() -> None:
            try:
                self._subs[channel].remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, channel: str, payload: Any = None) -> None:
        for callback in list(self._subs.get(channel, ())):
            try:
                callback(payload)
            except Exception as exc:
                logger.exception("subscriber failed on channel={}: {}", channel, exc)
