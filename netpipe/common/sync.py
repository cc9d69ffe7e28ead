"""
netpipe Sync Module
Completion barrier for tracking outstanding worker threads.
"""

import threading
import time
from typing import Optional


class WaitGroup:
    """
    Counter of outstanding tasks with a blocking wait for zero.

    Every add(n) must be matched by n calls to done().
    """

    def __init__(self):
        self._count = 0
        self._cond = threading.Condition()

    def add(self, n: int = 1) -> None:
        with self._cond:
            if self._count + n < 0:
                raise ValueError("WaitGroup counter would become negative")
            self._count += n
            if self._count == 0:
                self._cond.notify_all()

    def done(self) -> None:
        self.add(-1)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the counter reaches zero.

        Args:
            timeout: Seconds to wait at most (None = forever)

        Returns:
            True if the counter reached zero, False if the timeout elapsed first
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._cond:
            while self._count > 0:
                if deadline is None:
                    self._cond.wait()
                    continue

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)

            return True

    @property
    def count(self) -> int:
        with self._cond:
            return self._count

    def __repr__(self) -> str:
        return f"WaitGroup(count={self.count})"
