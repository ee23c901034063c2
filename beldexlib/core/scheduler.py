"""
Recurring engine tasks

Each loop runs its callback to completion and only then arms a timer for
the next run, so a loop never overlaps itself. Cancelling a loop's token
stops it from re-arming and cancels the pending timer.
"""

import threading
from enum import Enum
from typing import Callable, Dict, Optional

from beldexlib.utils.console import print_debug, print_error


class LoopName(Enum):
    """The engine's recurring tasks"""
    SYNC_NETWORK = "sync_network"
    SAVE_WALLET = "save_wallet"


class CancellationToken:
    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class RecurringTask:
    def __init__(self, name: LoopName, func: Callable[[], None], interval_ms: int,
                 token: CancellationToken, timer_factory=threading.Timer):
        self.name = name
        self.func = func
        self.interval_ms = interval_ms
        self.token = token
        self.timer_factory = timer_factory
        self._timer = None
        self._lock = threading.Lock()

    def run(self) -> None:
        if self.token.cancelled:
            return
        try:
            self.func()
        except Exception as e:
            print_error(f"Error in loop {self.name.value}: {e}")
        self._schedule(self.interval_ms)

    def _schedule(self, delay_ms: int) -> None:
        with self._lock:
            if self.token.cancelled:
                return
            self._timer = self.timer_factory(delay_ms / 1000.0, self.run)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        self.token.cancel()
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


class LoopTimers:
    """Owns the engine's running loops, at most one per LoopName.

    ``cancel_all`` also closes the set: later ``add`` calls are refused until
    ``reopen``, so a loop requested while the engine is stopping never starts.
    """

    def __init__(self, timer_factory=threading.Timer):
        self.timer_factory = timer_factory
        self._tasks: Dict[LoopName, RecurringTask] = {}
        self._lock = threading.Lock()
        self._closed = False

    def add(self, name: LoopName, func: Callable[[], None], interval_ms: int,
            run_now: bool = True) -> Optional[RecurringTask]:
        """Run ``func`` every ``interval_ms`` until cancelled.

        With ``run_now`` the first run happens in the caller's thread,
        otherwise it is armed on a zero-delay timer.
        """
        with self._lock:
            if self._closed:
                print_debug(f"DEBUG: loops closed; {name.value} not started")
                return None
            existing = self._tasks.get(name)
            if existing is not None and not existing.token.cancelled:
                print_debug(f"DEBUG: loop {name.value} already running")
                return None
            task = RecurringTask(name, func, interval_ms, CancellationToken(), self.timer_factory)
            self._tasks[name] = task
        if run_now:
            task.run()
        else:
            task._schedule(0)
        return task

    def reopen(self) -> None:
        with self._lock:
            self._closed = False

    def is_running(self, name: LoopName) -> bool:
        with self._lock:
            task = self._tasks.get(name)
            return task is not None and not task.token.cancelled

    def cancel_all(self) -> None:
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks = {}
            self._closed = True
        for task in tasks:
            task.cancel()
