"""
EventBus: async publish/subscribe for domain events.

Purpose
-------
Decouples the progression engine from whoever reacts to its state changes
(notifications, analytics, achievements). Services publish events only after
their transaction has committed, so a listener never observes state that is
later rolled back.

Responsibilities
----------------
- Register/unregister listeners with priorities
- Publish events to every matching listener (exact + wildcard patterns)
- Execute listeners according to a tiered concurrency model:
  * CRITICAL / HIGH: sequential, ordered, awaited with timeout
  * NORMAL: concurrent (gather), awaited
  * LOW: fire-and-forget background tasks
- Error isolation: a failing listener is logged and never affects the
  publisher or the other listeners

Design Decisions
----------------
- Instance-based: one bus per ServiceContainer; tests build their own.
- Wildcards: `*` matches any run of characters, so `"cosmetics.*"` and
  `"*.level_up"` both work.
- Listener timeout comes from ConfigManager (`events.listener_timeout_seconds`).
"""

from __future__ import annotations

import asyncio
import inspect
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from zdefense.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from zdefense.core.logging.logger import get_logger

if TYPE_CHECKING:
    from zdefense.core.config.manager import ConfigManager

logger = get_logger(__name__)


def matches(event_name: str, pattern: str) -> bool:
    """
    Check whether an event name matches a wildcard pattern.

    >>> matches("progression.level_up", "progression.*")
    True
    >>> matches("progression.level_up", "*.level_up")
    True
    >>> matches("progression.level_up", "cosmetics.*")
    False
    """
    if pattern == "*":
        return True

    if "*" not in pattern:
        return event_name == pattern

    while "**" in pattern:
        pattern = pattern.replace("**", "*")

    parts = pattern.split("*")

    if parts[0] and not event_name.startswith(parts[0]):
        return False
    if parts[-1] and not event_name.endswith(parts[-1]):
        return False
    if len(event_name) < len(parts[0]) + len(parts[-1]):
        return False

    idx = len(parts[0])
    end = len(event_name) - len(parts[-1])
    for mid in parts[1:-1]:
        if not mid:
            continue
        next_idx = event_name.find(mid, idx, end)
        if next_idx == -1:
            return False
        idx = next_idx + len(mid)

    return True


class EventBus:
    """
    Async EventBus with tiered listener execution.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("progression.level_up", on_level_up)
    >>> await bus.publish("progression.level_up", {"player_id": 1, "new_level": 2})
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        *,
        listener_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._listeners: Dict[str, List[EventListener]] = {}
        self._background_tasks: set[asyncio.Task[Any]] = set()

        if listener_timeout_seconds is not None:
            self._timeout = float(listener_timeout_seconds)
        elif config_manager is not None:
            self._timeout = config_manager.get_float(
                "events.listener_timeout_seconds", 5.0
            )
        else:
            self._timeout = 5.0

        self.published_count = 0
        self.error_count = 0

        logger.debug(
            "EventBus initialized",
            extra={"listener_timeout_seconds": self._timeout},
        )

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        """Reject callbacks that cannot take exactly one payload argument."""
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        params = [
            p
            for p in sig.parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]
        if len(params) != 1:
            callback_name = getattr(callback, "__qualname__", repr(callback))
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{callback_name}'"
            )

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns the listener identifier, for `unsubscribe()`. Registering the
        same identifier twice for one pattern is a no-op.
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

        bucket = self._listeners.setdefault(event_name, [])
        if any(existing.identifier == listener.identifier for existing in bucket):
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
            return listener.identifier

        bucket.append(listener)
        bucket.sort(key=lambda lst: lst.priority.value)

        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
                "once": listener.once,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        bucket = self._listeners.get(event_name, [])
        remaining = [lst for lst in bucket if lst.identifier != identifier]
        removed = len(remaining) != len(bucket)

        if remaining:
            self._listeners[event_name] = remaining
        else:
            self._listeners.pop(event_name, None)

        return removed

    def clear(self) -> None:
        self._listeners.clear()

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return sum(len(bucket) for bucket in self._listeners.values())
        return len(self._collect(event_name, prune_once=False))

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    def _collect(self, event_name: str, *, prune_once: bool) -> List[EventListener]:
        selected: List[EventListener] = []
        for pattern, bucket in list(self._listeners.items()):
            if not matches(event_name, pattern):
                continue
            selected.extend(bucket)
            if prune_once and any(lst.once for lst in bucket):
                kept = [lst for lst in bucket if not lst.once]
                if kept:
                    self._listeners[pattern] = kept
                else:
                    self._listeners.pop(pattern, None)

        selected.sort(key=lambda lst: lst.priority.value)
        return selected

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Publish an event to all subscribed listeners.

        Returns results from CRITICAL/HIGH/NORMAL listeners; LOW listeners run
        in the background and are not included.
        """
        self.published_count += 1
        listeners = self._collect(event_name, prune_once=True)

        logger.debug(
            "EventBus: publishing event",
            extra={
                "event_name": event_name,
                "payload_keys": list(data.keys()),
                "listener_count": len(listeners),
            },
        )

        if not listeners:
            return []

        results: list[Any] = []

        for listener in listeners:
            if listener.priority in (ListenerPriority.CRITICAL, ListenerPriority.HIGH):
                results.append(
                    await self._run_with_timeout(listener, event_name, data)
                )

        normal = [
            lst for lst in listeners if lst.priority == ListenerPriority.NORMAL
        ]
        if normal:
            results.extend(
                await asyncio.gather(
                    *[self._run_listener(lst, event_name, data) for lst in normal]
                )
            )

        for listener in listeners:
            if listener.priority != ListenerPriority.LOW:
                continue
            task = asyncio.get_running_loop().create_task(
                self._run_listener(listener, event_name, data),
                name=f"eventbus-low-{event_name}-{listener.identifier}",
            )
            self._background_tasks.add(task)
            task.add_done_callback(self._background_tasks.discard)

        return results

    async def drain(self) -> None:
        """Wait for outstanding LOW-priority listeners to finish."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks))

    async def _run_with_timeout(
        self, listener: EventListener, event_name: str, payload: EventPayload
    ) -> Any:
        if self._timeout <= 0:
            return await self._run_listener(listener, event_name, payload)

        try:
            return await asyncio.wait_for(
                self._run_listener(listener, event_name, payload),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            self.error_count += 1
            logger.error(
                "EventBus listener timeout",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "timeout_seconds": self._timeout,
                },
            )
            return None

    async def _run_listener(
        self, listener: EventListener, event_name: str, payload: EventPayload
    ) -> Any:
        try:
            if inspect.iscoroutinefunction(listener.callback):
                return await listener.callback(payload)

            result = listener.callback(payload)
            if inspect.isawaitable(result):
                return await result
            return result

        except Exception as exc:
            self.error_count += 1
            logger.error(
                "EventBus listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return None
