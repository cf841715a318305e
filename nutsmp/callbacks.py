# nutsmp/callbacks.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
Output writers and interrupt callables used by the sampling services.

Writers receive rows of named numeric values, append only:
  write_names(names)    header row
  write_values(values)  one row of numbers
  write_message(msg)    free text (comments in a CSV stream)
  write_blank()         empty comment line

Every call holds the writer lock, so a writer shared by several chains
running in threads sees whole rows.

An interrupt is any zero-argument callable returning True when a stop has
been requested. It is polled between transitions.
"""

from __future__ import annotations

import threading
from typing import IO, List, Optional, Sequence

import numpy as np


class Writer:
    """No-op writer. Base class of all writers."""

    def __init__(self):
        self._lock = threading.Lock()

    def write_names(self, names: Sequence[str]) -> None:
        with self._lock:
            self._write_names(list(names))

    def write_values(self, values: Sequence[float]) -> None:
        with self._lock:
            self._write_values([float(v) for v in values])

    def write_message(self, message: str) -> None:
        with self._lock:
            self._write_message(str(message))

    def write_blank(self) -> None:
        with self._lock:
            self._write_message("")

    def _write_names(self, names: List[str]) -> None:
        pass

    def _write_values(self, values: List[float]) -> None:
        pass

    def _write_message(self, message: str) -> None:
        pass


class StreamWriter(Writer):
    """CSV writer on a text stream; messages are prefixed comment lines."""

    def __init__(self, stream: IO[str], prefix: str = "# ", precision: int = 6):
        super().__init__()
        self.stream = stream
        self.prefix = prefix
        self.precision = int(precision)

    def _write_names(self, names):
        self.stream.write(",".join(names) + "\n")

    def _write_values(self, values):
        self.stream.write(
            ",".join(f"{v:.{self.precision}g}" for v in values) + "\n"
        )

    def _write_message(self, message):
        self.stream.write(self.prefix + message + "\n")


class MemoryWriter(Writer):
    """Keeps everything in memory. Used by tests and diagnostics plots."""

    def __init__(self):
        super().__init__()
        self.names: Optional[List[str]] = None
        self.rows: List[List[float]] = []
        self.messages: List[str] = []

    def _write_names(self, names):
        self.names = names

    def _write_values(self, values):
        self.rows.append(values)

    def _write_message(self, message):
        self.messages.append(message)

    def __len__(self):
        return len(self.rows)

    def to_array(self) -> np.ndarray:
        """Rows as a (num_rows, num_columns) float array."""
        if not self.rows:
            width = 0 if self.names is None else len(self.names)
            return np.empty((0, width))
        return np.asarray(self.rows, dtype=float)

    def column(self, name: str) -> np.ndarray:
        if self.names is None or name not in self.names:
            raise KeyError(f"no column named {name!r}")
        j = self.names.index(name)
        return np.asarray([row[j] for row in self.rows], dtype=float)


class Interrupt:
    """Interrupt callable that never requests a stop."""

    def __call__(self) -> bool:
        return False


class FlagInterrupt(Interrupt):
    """Interrupt callable backed by a threading.Event."""

    def __init__(self):
        self._event = threading.Event()

    def request_stop(self) -> None:
        self._event.set()

    def __call__(self) -> bool:
        return self._event.is_set()
