"""
Accounted access to the C allocator.

Native objects live in memory from libc ``malloc``/``calloc``. That memory
is never moved or collected by Python, which is what makes a raw address a
valid pointer handle. Every block handed out is recorded so construction
and destruction can be checked for pairing.
"""

from __future__ import annotations

import ctypes
import ctypes.util
import sys
import threading
from dataclasses import dataclass

from ._config import get_config
from ._logging import scoped_logger

__all__ = ["HeapStats", "NativeHeap", "get_heap"]

log = scoped_logger("heap")


def _load_libc() -> ctypes.CDLL:
    if sys.platform == "win32":
        return ctypes.CDLL("msvcrt")
    name = ctypes.util.find_library("c")
    return ctypes.CDLL(name)


_libc = _load_libc()
_libc.malloc.restype = ctypes.c_void_p
_libc.malloc.argtypes = [ctypes.c_size_t]
_libc.calloc.restype = ctypes.c_void_p
_libc.calloc.argtypes = [ctypes.c_size_t, ctypes.c_size_t]
_libc.free.restype = None
_libc.free.argtypes = [ctypes.c_void_p]


@dataclass(frozen=True)
class HeapStats:
    """Snapshot of heap accounting."""

    live_allocations: int
    live_bytes: int
    total_allocations: int
    total_frees: int
    failed_allocations: int


class NativeHeap:
    """
    Native allocator with live-block accounting.

    ``allocate`` returns an address or ``None`` (NULL) on failure, exactly
    like the C allocator. Requests above the configured
    ``max_allocation`` fail the same way.
    """

    def __init__(self) -> None:
        self._blocks: dict[int, int] = {}
        self._lock = threading.Lock()
        self._total_allocations = 0
        self._total_frees = 0
        self._failed_allocations = 0

    def allocate(self, size: int, *, zeroed: bool = True) -> int | None:
        """Allocate ``size`` bytes. Returns the address, or None on failure."""
        limit = get_config().max_allocation
        if limit and size > limit:
            with self._lock:
                self._failed_allocations += 1
            log.warning(
                "Allocation exceeds configured limit",
                extra={"size": size, "max_allocation": limit},
            )
            return None

        # malloc(0) may legally return NULL; always hand out a real block
        request = max(size, 1)
        address = _libc.calloc(1, request) if zeroed else _libc.malloc(request)
        with self._lock:
            if not address:
                self._failed_allocations += 1
            else:
                self._blocks[address] = size
                self._total_allocations += 1
        if not address:
            log.warning("Native allocation failed", extra={"size": size})
            return None
        return address

    def free(self, address: int | None) -> None:
        """Return a block to the C allocator. ``free(NULL)`` is a no-op."""
        if not address:
            return
        with self._lock:
            size = self._blocks.pop(address, None)
            if size is not None:
                self._total_frees += 1
        if size is None:
            # Passing this to libc would corrupt the allocator
            log.error("free of untracked address", extra={"address": hex(address)})
            return
        _libc.free(address)

    def owns(self, address: int | None) -> bool:
        """True if ``address`` is a live block from this heap."""
        if not address:
            return False
        with self._lock:
            return address in self._blocks

    def size_of(self, address: int) -> int | None:
        with self._lock:
            return self._blocks.get(address)

    @property
    def live_allocations(self) -> int:
        with self._lock:
            return len(self._blocks)

    @property
    def live_bytes(self) -> int:
        with self._lock:
            return sum(self._blocks.values())

    def stats(self) -> HeapStats:
        with self._lock:
            return HeapStats(
                live_allocations=len(self._blocks),
                live_bytes=sum(self._blocks.values()),
                total_allocations=self._total_allocations,
                total_frees=self._total_frees,
                failed_allocations=self._failed_allocations,
            )


_heap: NativeHeap | None = None
_heap_lock = threading.Lock()


def get_heap() -> NativeHeap:
    """Return the process-wide native heap."""
    global _heap
    if _heap is None:
        with _heap_lock:
            if _heap is None:
                _heap = NativeHeap()
    return _heap
