"""Cancellable subscription handle shared by regions and stores."""

import threading
from typing import Callable, Optional


class Subscription:
    """Handle for a registered listener.

    ``cancel()`` runs the release callback exactly once; later calls are
    no-ops. Safe to call from any thread, including from inside the
    listener it cancels.
    """

    def __init__(self, release: Callable[[], None], description: str = ""):
        self._release: Optional[Callable[[], None]] = release
        self._lock = threading.Lock()
        self.description = description

    @property
    def active(self) -> bool:
        """True until cancel() has been called."""
        return self._release is not None

    def cancel(self) -> bool:
        """Release the listener.

        Returns:
            True if this call released it, False if it was already cancelled
        """
        with self._lock:
            release, self._release = self._release, None
        if release is None:
            return False
        release()
        return True

    def __repr__(self) -> str:
        state = "active" if self.active else "cancelled"
        return f"<Subscription {self.description or hex(id(self))} {state}>"
