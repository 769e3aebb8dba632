"""Per-key cancellation of in-flight rollouts.

When a new rollout of an application starts, the previous rollout of the
same application must be cancelled. :class:`CancellationRegistry` keeps one
cancel handle per key and a process-wide generation counter so that a stale
rollout finishing late cannot remove the entry of the rollout that replaced
it.

Example:
    >>> registry = CancellationRegistry()
    >>> scope = CancelScope()
    >>> cleanup = registry.register_and_cancel_previous("shop", scope.cancel)
    >>> try:
    ...     run_rollout(scope)
    ... finally:
    ...     cleanup()

Cancel handles run while the registry lock is held. They must be quick,
tolerate repeat invocation and never call back into the registry.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass

from appchart.core.logging import get_logger

logger = get_logger(__name__)

CancelFunc = Callable[[], None]
CleanupFunc = Callable[[], None]


@dataclass
class _Entry:
    cancel: CancelFunc
    generation: int


class CancellationRegistry:
    """Thread-safe map of key → cancel handle, tagged with a generation.

    Args:
        lock: Lock guarding the registry; a new ``threading.Lock`` by default
    """

    def __init__(self, lock: threading.Lock | None = None) -> None:
        self._lock = lock if lock is not None else threading.Lock()
        self._generation = 1
        self._entries: dict[str, _Entry] = {}

    def register_and_cancel_previous(self, key: str, cancel: CancelFunc) -> CleanupFunc:
        """Store ``cancel`` under ``key``, cancelling whatever was stored before.

        Returns:
            A cleanup function. It invokes ``cancel`` and removes the entry
            only if the entry still belongs to this registration.
        """
        with self._lock:
            generation = self._generation
            self._generation += 1
            previous = self._entries.get(key)
            if previous is not None:
                previous.cancel()
                logger.debug(
                    "rollout_superseded",
                    key=key,
                    previous_generation=previous.generation,
                    generation=generation,
                )
            self._entries[key] = _Entry(cancel=cancel, generation=generation)

        def cleanup() -> None:
            with self._lock:
                cancel()
                entry = self._entries.get(key)
                if entry is None or entry.generation != generation:
                    return
                del self._entries[key]

        return cleanup

    def generation_of(self, key: str) -> int | None:
        with self._lock:
            entry = self._entries.get(key)
            return entry.generation if entry is not None else None

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class CancelScope:
    """Cancellation flag for one rollout; ``cancel`` is a valid cancel handle."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return whether cancelled."""
        return self._event.wait(timeout)


__all__ = ["CancelFunc", "CancelScope", "CancellationRegistry", "CleanupFunc"]
