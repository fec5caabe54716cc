"""Completion barrier for the threads a server runs."""

import threading
from typing import Any, Callable, Optional


class WaitGroup:
    """
    Counter of outstanding tasks plus a join primitive.

    Instances are passed to servers explicitly, so independent servers in
    one process can each have their own barrier or share one.
    """

    def __init__(self):
        self._count = 0
        self._cond = threading.Condition()

    @property
    def count(self) -> int:
        with self._cond:
            return self._count

    def add(self, delta: int = 1) -> None:
        """
        Adjust the number of outstanding tasks.

        Raises:
            ValueError: If the counter would drop below zero
        """
        with self._cond:
            if self._count + delta < 0:
                raise ValueError("negative WaitGroup counter")
            self._count += delta
            if self._count == 0:
                self._cond.notify_all()

    def done(self) -> None:
        """Mark one task as finished."""
        self.add(-1)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every task has finished.

        Args:
            timeout: Maximum time to wait (None = wait forever)

        Returns:
            True if the counter reached zero, False on timeout
        """
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout)

    def go(
        self, target: Callable[..., Any], *args: Any, name: Optional[str] = None
    ) -> threading.Thread:
        """Run target in a daemon thread tracked by this group."""
        self.add(1)

        def run():
            try:
                target(*args)
            finally:
                self.done()

        thread = threading.Thread(target=run, name=name, daemon=True)
        try:
            thread.start()
        except RuntimeError:
            self.done()
            raise
        return thread
