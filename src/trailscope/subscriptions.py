"""
Subscriptions
=============

Scoped listener handles.

Every component that listens to another owns the handle it was given and
disposes it when it is closed. There is no process-wide registry; a
ListenerSet lives on the object that emits the notifications.

Example:
    listeners = ListenerSet()

    with listeners.add(on_change):
        listeners.notify(42)   # on_change(42) is called

    listeners.notify(43)       # no longer called
"""

import logging
from typing import Any, Callable, List, Optional


logger = logging.getLogger(__name__)


class Subscription:
    """
    Handle for a registered listener.

    Closing is idempotent. Usable as a context manager so a listener can
    be scoped to a block.
    """

    __slots__ = ("_unsubscribe",)

    def __init__(self, unsubscribe: Callable[[], None]) -> None:
        self._unsubscribe: Optional[Callable[[], None]] = unsubscribe

    @property
    def active(self) -> bool:
        """Whether the listener is still registered."""
        return self._unsubscribe is not None

    def close(self) -> None:
        """Unregister the listener."""
        if self._unsubscribe is not None:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            unsubscribe()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class ListenerSet:
    """Ordered set of callbacks owned by a single emitter."""

    def __init__(self, name: str = "listeners") -> None:
        self.name = name
        self._callbacks: List[Callable[..., None]] = []

    def __len__(self) -> int:
        return len(self._callbacks)

    def add(self, callback: Callable[..., None]) -> Subscription:
        """
        Register a callback.

        Args:
            callback: Called with the arguments passed to notify()

        Returns:
            Subscription that removes the callback when closed
        """
        self._callbacks.append(callback)

        def _remove() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass  # cleared already

        return Subscription(_remove)

    def notify(self, *args: Any) -> int:
        """
        Call every registered callback.

        A failing callback is logged and does not stop the others.

        Returns:
            Number of callbacks that raised
        """
        failed = 0
        for callback in list(self._callbacks):
            try:
                callback(*args)
            except Exception:
                failed += 1
                logger.exception(f"Listener in {self.name} raised")
        return failed

    def clear(self) -> None:
        """Drop every callback."""
        self._callbacks.clear()
