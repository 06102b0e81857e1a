"""
Process-wide registry of initialized backing module views.

Each view is constructed at most once. Concurrent first requests for the same
view share a single in-flight construction; different views never wait on
each other.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from release_proxy.exceptions import InitializationError
from release_proxy.models.config import ServiceConfig
from release_proxy.storage.backing_store import LocalFileStore, MemoryStore

log = logging.getLogger(__name__)

ADMIN_VIEW = "admin"
KNOWN_VIEWS = frozenset({ADMIN_VIEW})

ModuleFactory = Callable[[str], Awaitable[Any]]


class ModuleRegistry:
    """
    Lazily constructs and memoizes one handle per view name.

    A failed construction is not cached; the next `acquire` retries from scratch.
    """

    def __init__(self, factory: ModuleFactory):
        """
        Args:
            factory: Coroutine function building the handle for a view name.
        """
        self._factory = factory
        self._instances: dict[str, Any] = {}
        self._pending: dict[str, asyncio.Task] = {}

    def __contains__(self, view_name: str) -> bool:
        return view_name in self._instances

    async def acquire(self, view_name: str) -> Any:
        """
        Returns the handle for `view_name`, constructing it on first use.

        Raises:
            InitializationError: If the construction fails.
        """
        if view_name in self._instances:
            return self._instances[view_name]

        task = self._pending.get(view_name)
        if task is None:
            log.debug(f"[{view_name}] Initializing backing module view...")
            task = asyncio.ensure_future(self._construct(view_name))
            self._pending[view_name] = task
            task.add_done_callback(lambda t: self._discard(view_name, t))

        # Shielded so a cancelled caller does not abort construction for the others.
        return await asyncio.shield(task)

    async def _construct(self, view_name: str) -> Any:
        try:
            handle = await self._factory(view_name)
        except Exception as e:
            log.error(f"[{view_name}] Failed to initialize backing module view: {e}")
            raise InitializationError(
                f"Failed to initialize view '{view_name}': {e}"
            ) from e
        if self._pending.get(view_name) is not asyncio.current_task():
            # Reset while in flight; the waiters get the handle but it is not kept.
            log.debug(f"[{view_name}] Discarding view constructed before a reset.")
            return handle
        self._instances[view_name] = handle
        log.info(f"[{view_name}] Backing module view initialized.")
        return handle

    def _discard(self, view_name: str, task: asyncio.Task) -> None:
        if self._pending.get(view_name) is task:
            del self._pending[view_name]
        # Marks the exception as retrieved when every waiter was cancelled.
        if not task.cancelled():
            task.exception()

    def reset(self, view_name: str | None = None) -> None:
        """
        Drops one cached handle, or all of them. Constructions still in flight
        finish for their current waiters but are not cached.
        """
        if view_name is None:
            self._instances.clear()
            self._pending.clear()
        else:
            self._instances.pop(view_name, None)
            self._pending.pop(view_name, None)


def create_module_factory(config: ServiceConfig) -> ModuleFactory:
    """
    Builds the factory opening backing module views for the configured store.
    The handle of the admin view is a `BackingStore`.
    """

    async def _open_view(view_name: str) -> Any:
        if view_name not in KNOWN_VIEWS:
            raise ValueError(f"Unknown view: {view_name!r}")
        if config.store_backend == "memory":
            return MemoryStore()
        return await LocalFileStore.open(Path(config.store_path).expanduser())

    return _open_view
