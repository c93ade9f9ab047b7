"""Ordered listener registry used for event fan-out and state notifications."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any, Generic, TypeVar

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], Any]


class ListenerRegistry(Generic[T]):
    """Ordered collection of listeners that all receive the same value.

    Listeners are called in registration order. A listener that raises is
    logged and skipped; later listeners still run. A listener returning a
    coroutine has it scheduled as a task on the running loop.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: list[Listener[T]] = []
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._listeners)

    def add_listener(self, listener: Listener[T]) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            self.remove_listener(listener)

        return _remove

    def remove_listener(self, listener: Listener[T]) -> bool:
        """Remove the first registration of ``listener``.

        Returns:
            True if the listener was registered
        """
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    def clear(self) -> None:
        self._listeners.clear()

    def cancel_pending(self) -> int:
        """Cancel tasks still running for coroutine listeners.

        Returns:
            Number of tasks cancelled
        """
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        return len(tasks)

    def dispatch(self, value: T) -> int:
        """Deliver ``value`` to every listener.

        Returns:
            Number of listeners that completed without raising
        """
        delivered = 0
        # Snapshot so listeners may add or remove registrations while running
        for listener in list(self._listeners):
            try:
                result = listener(value)
            except Exception as err:
                _LOGGER.exception("%s listener error: %s", self._name, err)
                continue
            if inspect.iscoroutine(result):
                task = asyncio.get_running_loop().create_task(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)
            delivered += 1
        return delivered

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        err = task.exception()
        if err is not None:
            _LOGGER.error("%s listener task failed: %s", self._name, err)
