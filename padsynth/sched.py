"""Background worker thread that runs deferred jobs, with per-instance notifiers."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable, Hashable
from enum import IntEnum


class SchedType(IntEnum):
    SAMPLE = 0
    PROGRAMS = 1
    CONTROLS = 2
    CONTROLLER = 3
    MIDI_IN = 4


def _ring_capacity(nsize: int) -> int:
    """Usable slots of a power-of-two ring buffer holding at least nsize."""
    size = 4 << 1
    while size < nsize:
        size <<= 1
    return size - 1


class _Worker(threading.Thread):
    """Single shared thread that runs scheduled jobs."""

    def __init__(self, nsize: int = 32) -> None:
        super().__init__(name="padsynth-sched", daemon=True)
        self._capacity = _ring_capacity(nsize)
        self._items: deque[Scheduled] = deque()
        self._cond = threading.Condition(threading.RLock())
        self._stopping = False

    def schedule(self, sched: Scheduled) -> None:
        """Queue a job unless it is already queued, then wake the thread."""
        if not sched.sync_wait() and len(self._items) < self._capacity:
            self._items.append(sched)
        if self._cond.acquire(blocking=False):
            try:
                self._cond.notify_all()
            finally:
                self._cond.release()

    def sync_pending(self) -> None:
        with self._cond:
            self._process()

    def sync_reset(self) -> None:
        with self._cond:
            self._items.clear()

    def run(self) -> None:
        with self._cond:
            while not self._stopping:
                self._process()
                self._cond.wait(0.1)

    def _process(self) -> None:
        while self._items:
            self._items.popleft().sync_process()

    def stop(self) -> None:
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
        if self.is_alive() and self is not threading.current_thread():
            self.join()


_state_lock = threading.Lock()
_worker: _Worker | None = None
_refcount = 0
_notifiers: dict[Hashable, list[Notifier]] = {}


class Scheduled(ABC):
    """A job with its own queue of ids, run on the shared worker thread."""

    def __init__(self, instance: Hashable, stype: SchedType, nsize: int = 8) -> None:
        global _worker, _refcount
        self._instance = instance
        self._stype = SchedType(stype)
        self._capacity = _ring_capacity(nsize)
        self._items: deque[int] = deque()
        self._wait_lock = threading.Lock()
        self._sync_wait = False
        self._closed = False
        with _state_lock:
            _refcount += 1
            if _refcount == 1 and _worker is None:
                _worker = _Worker()
                _worker.start()

    @property
    def instance(self) -> Hashable:
        return self._instance

    @property
    def stype(self) -> SchedType:
        return self._stype

    def schedule(self, sid: int = 0) -> None:
        """Queue sid and hand this job to the worker thread."""
        if len(self._items) < self._capacity:
            self._items.append(sid)
        worker = _worker
        if worker is not None:
            worker.schedule(self)

    def sync_wait(self) -> bool:
        """Test-and-set the queued flag; return its previous value."""
        with self._wait_lock:
            was_waiting = self._sync_wait
            self._sync_wait = True
            return was_waiting

    def sync_process(self) -> None:
        """Run every queued id, notify listeners, and clear the queued flag."""
        while self._items:
            sid = self._items.popleft()
            self.process(sid)
            sync_notify(self._instance, self._stype, sid)
        self._sync_wait = False

    @abstractmethod
    def process(self, sid: int) -> None:
        """Do the deferred work for one id."""

    def close(self) -> None:
        """Release this job; the worker stops when the last job is closed."""
        global _worker, _refcount
        worker = None
        with _state_lock:
            if self._closed:
                return
            self._closed = True
            _refcount -= 1
            if _refcount == 0:
                worker, _worker = _worker, None
        if worker is not None:
            worker.stop()

    def __enter__(self) -> Scheduled:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class Notifier:
    """Receives notifications for jobs finished on behalf of one instance."""

    def __init__(
        self,
        instance: Hashable,
        callback: Callable[[SchedType, int], None] | None = None,
    ) -> None:
        self._instance = instance
        self._callback = callback
        self._closed = False
        with _state_lock:
            _notifiers.setdefault(instance, []).append(self)

    @property
    def instance(self) -> Hashable:
        return self._instance

    def notify(self, stype: SchedType, sid: int) -> None:
        """Handle a notification; the default forwards it to the callback."""
        if self._callback is not None:
            self._callback(stype, sid)

    def close(self) -> None:
        """Stop receiving notifications."""
        with _state_lock:
            if self._closed:
                return
            self._closed = True
            listeners = _notifiers.get(self._instance)
            if listeners is not None:
                listeners[:] = [n for n in listeners if n is not self]
                if not listeners:
                    del _notifiers[self._instance]

    def __enter__(self) -> Notifier:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def sync_notify(instance: Hashable, stype: SchedType, sid: int) -> None:
    """Broadcast a notification to every notifier of instance."""
    with _state_lock:
        listeners = list(_notifiers.get(instance, ()))
    for notifier in listeners:
        notifier.notify(stype, sid)


def sync_pending() -> None:
    """Run every pending job now, on the calling thread."""
    worker = _worker
    if worker is not None:
        worker.sync_pending()


def sync_reset() -> None:
    """Drop every pending job without running it."""
    worker = _worker
    if worker is not None:
        worker.sync_reset()