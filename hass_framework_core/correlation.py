"""Correlation of command ids to callers awaiting a result frame."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .errors import HassTimeout

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PendingRequest:
    """Track one outstanding correlated request."""

    id: int
    created_at: float
    future: asyncio.Future[Any]
    sent: bool = False
    timeout_handle: asyncio.TimerHandle | None = None


class CorrelationTable:
    """Map message ids to pending requests.

    Ids come from a single counter that is never reset, so an id is never
    reused for the lifetime of the table. Each entry is resolved at most once:
    it is removed from the table before its future is completed.
    """

    def __init__(self, on_discard: Callable[[int], None] | None = None) -> None:
        """Initialize table.

        Args:
            on_discard: Called with the id of an entry dropped without a
                result (timeout or caller cancellation)
        """
        self._pending: dict[int, PendingRequest] = {}
        self._last_id = 0
        self._on_discard = on_discard

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, msg_id: object) -> bool:
        return msg_id in self._pending

    @property
    def last_id(self) -> int:
        return self._last_id

    def next_id(self) -> int:
        """Allocate the next message id."""
        self._last_id += 1
        return self._last_id

    def get(self, msg_id: int) -> PendingRequest | None:
        return self._pending.get(msg_id)

    def register(self, msg_id: int, *, timeout: float | None = None) -> asyncio.Future[Any]:
        """Register a pending request and return the future it resolves.

        Args:
            msg_id: Id allocated with :meth:`next_id`
            timeout: Seconds before the future fails with HassTimeout
        """
        if msg_id in self._pending:
            raise ValueError(f"Message id {msg_id} is already pending")

        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        entry = PendingRequest(id=msg_id, created_at=time.monotonic(), future=future)
        if timeout is not None:
            entry.timeout_handle = loop.call_later(timeout, self._expire, msg_id)
        self._pending[msg_id] = entry
        future.add_done_callback(lambda fut: self._on_future_done(msg_id, fut))
        return future

    def mark_sent(self, msg_id: int) -> None:
        entry = self._pending.get(msg_id)
        if entry is not None:
            entry.sent = True

    def resolve(self, msg_id: int, result: Any) -> bool:
        """Complete a pending request with ``result``.

        Returns:
            False if no request with that id is pending
        """
        entry = self._pop(msg_id)
        if entry is None:
            return False
        entry.future.set_result(result)
        return True

    def reject(self, msg_id: int, err: BaseException) -> bool:
        """Fail a pending request with ``err``."""
        entry = self._pop(msg_id)
        if entry is None:
            return False
        entry.future.set_exception(err)
        return True

    def fail_sent(self, err: BaseException) -> int:
        """Fail every request already written to the transport.

        Requests still waiting in the outbound queue stay pending.

        Returns:
            Number of requests failed
        """
        sent_ids = [msg_id for msg_id, entry in self._pending.items() if entry.sent]
        for msg_id in sent_ids:
            self.reject(msg_id, err)
        return len(sent_ids)

    def fail_all(self, err: BaseException) -> int:
        """Fail every pending request."""
        ids = list(self._pending)
        for msg_id in ids:
            self.reject(msg_id, err)
        return len(ids)

    def _pop(self, msg_id: int) -> PendingRequest | None:
        entry = self._pending.pop(msg_id, None)
        if entry is None:
            return None
        if entry.timeout_handle is not None:
            entry.timeout_handle.cancel()
        if entry.future.done():
            # Cancelled by the caller; the done callback already ran or will
            # find the entry gone
            return None
        return entry

    def _expire(self, msg_id: int) -> None:
        entry = self._pop(msg_id)
        if entry is None:
            return
        waited = time.monotonic() - entry.created_at
        _LOGGER.debug("Request id=%d timed out after %.1fs", msg_id, waited)
        entry.future.set_exception(HassTimeout(f"No result for request {msg_id}"))
        if self._on_discard is not None:
            self._on_discard(msg_id)

    def _on_future_done(self, msg_id: int, future: asyncio.Future[Any]) -> None:
        if not future.cancelled():
            return
        entry = self._pending.pop(msg_id, None)
        if entry is None:
            return
        if entry.timeout_handle is not None:
            entry.timeout_handle.cancel()
        _LOGGER.debug("Request id=%d cancelled by caller", msg_id)
        if self._on_discard is not None:
            self._on_discard(msg_id)
