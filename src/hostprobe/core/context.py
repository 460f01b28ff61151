"""Cooperative cancellation shared by a test run and all of its probes.

A [CancelScope][hostprobe.core.context.CancelScope] combines an explicit
cancel signal with an optional absolute deadline. Scopes form a tree: the
manager owns a root scope for its lifetime, every test call derives a
child carrying the per-call deadline, and cancelling any scope cancels all
of its descendants. Each pipeline stage runs under
[CancelScope.run()][hostprobe.core.context.CancelScope.run], so a shutdown
or an expired deadline interrupts the stage that is in flight instead of
waiting for its network I/O to finish.

Examples:
    ```python
    root = CancelScope()
    call = root.child(timeout=30)

    settings = await call.run(provider.query_settings(transport), timeout=10)

    root.cancel("manager shutting down")   # call.cancelled is now True
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import time
import weakref
from typing import TYPE_CHECKING, TypeVar

from .exceptions import ProbeCancelledError


if TYPE_CHECKING:
    from collections.abc import Awaitable


T = TypeVar("T")


class CancelScope:
    """A cancel signal plus an optional deadline, propagated to child scopes.

    Attributes:
        deadline: Absolute ``time.monotonic()`` value after which work under
            this scope times out, or ``None`` for no deadline. A child never
            outlives its parent's deadline.
    """

    def __init__(self, *, timeout: float | None = None, parent: CancelScope | None = None) -> None:
        self._event = asyncio.Event()
        self._reason = ""
        self._children: weakref.WeakSet[CancelScope] = weakref.WeakSet()

        deadline = time.monotonic() + timeout if timeout is not None else None
        if parent is not None:
            if parent.deadline is not None:
                deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
            parent._children.add(self)
            if parent.cancelled:
                self.cancel(parent.reason)
        self.deadline = deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        """Why the scope was cancelled; empty while it is still live."""
        return self._reason

    def child(self, timeout: float | None = None) -> CancelScope:
        """Derive a scope that is cancelled with this one and bounded by its deadline."""
        return CancelScope(timeout=timeout, parent=self)

    def cancel(self, reason: str = "cancelled") -> None:
        """Cancel this scope and every descendant. Idempotent."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        for child in list(self._children):
            child.cancel(reason)

    def remaining(self) -> float | None:
        """Seconds left before the deadline (never negative), or ``None``."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    async def run(self, aw: Awaitable[T], *, timeout: float | None = None) -> T:
        """Await *aw* unless the scope is cancelled or a deadline passes first.

        Args:
            aw: The stage to run. It is cancelled (and awaited) if it loses
                the race.
            timeout: Optional per-stage limit, further bounded by the
                scope's own deadline.

        Raises:
            ProbeCancelledError: If the scope was cancelled before or while
                *aw* ran.
            TimeoutError: If the stage limit or the scope deadline elapsed.
        """
        task = asyncio.ensure_future(aw)
        if self.cancelled:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            raise ProbeCancelledError(self._reason)

        budget = self.remaining()
        if timeout is not None:
            budget = timeout if budget is None else min(budget, timeout)

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, timeout=budget, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        if task in done:
            return task.result()
        if self.cancelled:
            raise ProbeCancelledError(self._reason)
        raise TimeoutError(f"timed out after {budget:.1f}s")
