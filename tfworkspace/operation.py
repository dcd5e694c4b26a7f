"""Bookkeeping for a single Terraform CLI operation."""

from __future__ import annotations

import threading
from datetime import datetime


class Operation:
    """The type and timing of the latest Terraform operation; thread safe."""

    def __init__(
        self,
        op_type: str = "",
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> None:
        self.op_type = op_type
        self._start_time = start_time
        self._end_time = end_time
        self._lock = threading.RLock()

    def mark_start(self, op_type: str) -> None:
        """Mark an operation of the given type as started now."""
        with self._lock:
            self.op_type = op_type
            self._start_time = datetime.now()
            self._end_time = None

    def mark_end(self) -> None:
        """Mark the current operation as ended now."""
        with self._lock:
            self._end_time = datetime.now()

    def flush(self) -> None:
        """Forget everything about the operation."""
        with self._lock:
            self.op_type = ""
            self._start_time = None
            self._end_time = None

    def is_ended(self) -> bool:
        """Whether the operation has ended, whatever its result."""
        with self._lock:
            return self._end_time is not None

    def is_running(self) -> bool:
        """Whether an operation has started and not yet ended."""
        with self._lock:
            return self._start_time is not None and self._end_time is None

    def start_time(self) -> datetime | None:
        """When the current operation started."""
        with self._lock:
            return self._start_time

    def end_time(self) -> datetime | None:
        """When the current operation ended."""
        with self._lock:
            return self._end_time