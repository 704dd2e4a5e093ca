"""Time-ordered string IDs for conversations, messages and tests.

Messages are replayed to the language model in creation order, so their IDs
must sort the same way their rows were created. A 64-bit value is built as:

  - 41 bits: milliseconds since ``_EPOCH_MS``
  - 10 bits: worker id (0-1023), ``WORKER_ID`` or the process id
  - 12 bits: per-millisecond sequence (0-4095)

and rendered as a zero-padded decimal string so lexical order == numeric order.
"""

import os
import threading
import time

from config.settings import settings

_EPOCH_MS = 1_735_689_600_000  # 2025-01-01T00:00:00Z
_WORKER_BITS = 10
_SEQUENCE_BITS = 12
_SEQUENCE_MASK = (1 << _SEQUENCE_BITS) - 1
_ID_WIDTH = 20  # digits in 2**64 - 1


class OrderedIdGenerator:
    def __init__(self, worker_id: int = 0) -> None:
        if not 0 <= worker_id < (1 << _WORKER_BITS):
            raise ValueError(f"worker_id must be 0-{(1 << _WORKER_BITS) - 1}")
        self._worker_id = worker_id
        self._last_ms = -1
        self._sequence = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now_ms = self._now_ms()
            if now_ms < self._last_ms:
                # wall clock went backwards; keep issuing from the last known tick
                now_ms = self._last_ms
            if now_ms == self._last_ms:
                self._sequence = (self._sequence + 1) & _SEQUENCE_MASK
                if self._sequence == 0:
                    while now_ms <= self._last_ms:
                        now_ms = self._now_ms()
            else:
                self._sequence = 0
            self._last_ms = now_ms

            value = (
                ((now_ms - _EPOCH_MS) << (_WORKER_BITS + _SEQUENCE_BITS))
                | (self._worker_id << _SEQUENCE_BITS)
                | self._sequence
            )
            return str(value).zfill(_ID_WIDTH)

    @staticmethod
    def _now_ms() -> int:
        return time.time_ns() // 1_000_000


def _worker_id() -> int:
    if settings.WORKER_ID is not None:
        return settings.WORKER_ID
    return os.getpid() & ((1 << _WORKER_BITS) - 1)


_generator = OrderedIdGenerator(_worker_id())


def generate_id() -> str:
    """Next ID from the process-wide generator."""
    return _generator.next_id()
