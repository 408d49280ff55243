"""Background work owned by the service.

Two kinds of tasks live here:

- loops, started under a unique name with ``start``. Each receives an
  ``asyncio.Event`` cancel token and is stopped with ``cancel`` (the
  auto-organize timer).
- runs, started with ``detach``. A run is never cancelled: once an organize
  run has started mutating tab groups it finishes. The manager holds the
  only strong reference, logs a failure when the run ends, and waits for
  outstanding runs on shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

logger = logging.getLogger(__name__)

LoopFn = Callable[[asyncio.Event], Coroutine[Any, Any, Any]]


class BackgroundTaskManager:
    """Named cancellable loops plus detached, awaited-on-shutdown runs."""

    def __init__(self) -> None:
        self._loops: dict[str, tuple[asyncio.Task, asyncio.Event]] = {}
        self._runs: set[asyncio.Task] = set()

    def is_running(self, name: str) -> bool:
        entry = self._loops.get(name)
        return entry is not None and not entry[0].done()

    # ----- Loops -----

    def start(self, name: str, loop_fn: LoopFn, *, replace: bool = False) -> asyncio.Event:
        """Start a named loop and return its cancel token.

        Raises:
            RuntimeError: the name is taken and replace=False.
        """
        if self.is_running(name):
            if not replace:
                raise RuntimeError(f"Task '{name}' is already running")
            self.cancel(name)

        token = asyncio.Event()
        task = asyncio.get_running_loop().create_task(self._run_loop(name, loop_fn, token), name=name)
        self._loops[name] = (task, token)
        return token

    async def _run_loop(self, name: str, loop_fn: LoopFn, token: asyncio.Event) -> None:
        logger.info("Background task '%s' started", name)
        try:
            await loop_fn(token)
            logger.info("Background task '%s' completed", name)
        except asyncio.CancelledError:
            logger.info("Background task '%s' cancelled", name)
        except Exception:
            logger.exception("Background task '%s' failed", name)
        finally:
            entry = self._loops.get(name)
            if entry is not None and entry[1] is token:
                del self._loops[name]

    def cancel(self, name: str) -> bool:
        """Stop a named loop. False if no such loop."""
        entry = self._loops.pop(name, None)
        if entry is None:
            return False
        task, token = entry
        token.set()
        if not task.done():
            task.cancel()
        logger.info("Cancellation requested for task '%s'", name)
        return True

    # ----- Runs -----

    def detach(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run ``coro`` to completion independently of whoever started it."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._runs.add(task)
        task.add_done_callback(self._run_finished)
        return task

    def _run_finished(self, task: asyncio.Task) -> None:
        self._runs.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Run '%s' failed", task.get_name(), exc_info=exc)

    # ----- Shutdown -----

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Cancel every loop, then wait for loops and in-flight runs."""
        loops = [task for task, _token in self._loops.values()]
        for name in list(self._loops):
            self.cancel(name)

        pending = [t for t in loops if not t.done()] + [t for t in self._runs if not t.done()]
        if not pending:
            return

        logger.info("Waiting for %d background tasks", len(pending))
        _done, late = await asyncio.wait(pending, timeout=timeout)
        if late:
            logger.warning(
                "%d tasks did not finish within %.1fs: %s",
                len(late),
                timeout,
                [t.get_name() for t in late],
            )
