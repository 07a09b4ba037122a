"""
EventBus - Synchronous notifications for resolver collaborators.
EventBus：面向协作组件（看板、编排器）的同步通知总线。

Collaborators subscribe to an event kind (or to every kind) instead of
polling resolver state. Callbacks run synchronously, in subscription order,
after the mutation that produced the event has finished.
协作组件订阅某类事件（或全部事件），而不是轮询解析器状态。
回调按订阅顺序同步执行，且在产生事件的变更完成之后才执行。
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from schema import EventKind, TaskEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[TaskEvent], None]


class EventBus:
    """Ordered list of (kind, callback) subscriptions. 有序的 (事件类型, 回调) 订阅列表。"""

    def __init__(self):
        # kind=None means "every event" / kind 为 None 表示订阅全部事件
        self._subscribers: list[tuple[EventKind | None, EventCallback]] = []

    def subscribe(self, kind: EventKind | str, callback: EventCallback) -> Callable[[], None]:
        """
        Subscribe to one event kind. Returns a function that unsubscribes.
        订阅某一类事件，返回取消订阅的函数。
        """
        entry = (EventKind(kind), callback)
        self._subscribers.append(entry)
        return lambda: self._unsubscribe(entry)

    def subscribe_all(self, callback: EventCallback) -> Callable[[], None]:
        entry = (None, callback)
        self._subscribers.append(entry)
        return lambda: self._unsubscribe(entry)

    def _unsubscribe(self, entry: tuple[EventKind | None, EventCallback]) -> None:
        if entry in self._subscribers:
            self._subscribers.remove(entry)

    def publish(self, events: Iterable[TaskEvent]) -> None:
        """
        Deliver events in order to every matching subscriber.
        按顺序将事件投递给所有匹配的订阅者。

        A failing subscriber is logged and skipped; it never breaks the
        resolver or the remaining subscribers.
        订阅者抛出的异常会被记录并跳过，不会影响解析器或其他订阅者。
        """
        for event in events:
            kind = EventKind(event.kind)
            for sub_kind, callback in list(self._subscribers):
                if sub_kind is not None and sub_kind != kind:
                    continue
                try:
                    callback(event)
                except Exception:
                    logger.exception("[Events] Subscriber failed on %s", kind.value)
