"""
Process-wide handle registry.

Native code must never hold the address of a Python object: the collector
owns it. Instead the registry stores the object and hands out a small
integer handle. Native code keeps the integer; every call back into Python
resolves it through ``lookup``.

Handle layout (64 bits)::

    bit 63      always 0 (handles fit in a signed 64-bit integer)
    bits 32-62  generation of the slot (1..2**31-1)
    bits 0-31   slot index

Slots are reused through a free list. Each reuse bumps the slot's
generation, so a stale handle for a released entry fails lookup with
``InvalidHandleError`` instead of resolving to the slot's new value.
Handle 0 never appears: the generation is always at least 1.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from ._logging import scoped_logger
from .exceptions import InvalidHandleError, TypeMismatchError, ValidationError

__all__ = [
    "NULL_HANDLE",
    "HandleRegistry",
    "RegistryStats",
    "get_registry",
    "allocate",
    "lookup",
    "release",
    "retain",
]

log = scoped_logger("registry")

NULL_HANDLE = 0

INDEX_BITS = 32
INDEX_MASK = (1 << INDEX_BITS) - 1
GENERATION_BITS = 31
GENERATION_MASK = (1 << GENERATION_BITS) - 1
MAX_SLOTS = 1 << INDEX_BITS

_END_OF_LIST = -1


class _Slot:
    """One table slot. ``uses == 0`` means vacant."""

    __slots__ = ("generation", "value", "uses", "next_free")

    def __init__(self) -> None:
        self.generation = 0
        self.value: Any = None
        self.uses = 0
        self.next_free = _END_OF_LIST


@dataclass(frozen=True)
class RegistryStats:
    """Snapshot of registry counters."""

    live: int
    slots: int
    allocated_total: int
    released_total: int


def _split(handle: int) -> tuple[int, int]:
    return handle & INDEX_MASK, (handle >> INDEX_BITS) & GENERATION_MASK


class HandleRegistry:
    """
    Maps integer handles to Python objects.

    The registry keeps a strong reference to every stored value until the
    handle is released, so the object stays alive no matter what other
    references exist. All operations are thread-safe; the lock is held only
    for the table update itself.

    Handles can be shared: ``retain`` adds a use and each use needs its own
    ``release``. The entry is dropped when the last use is released.

    Example
    -------
    >>> registry = HandleRegistry()
    >>> h = registry.allocate({"name": "gopher"})
    >>> registry.lookup(h)
    {'name': 'gopher'}
    >>> registry.release(h)
    {'name': 'gopher'}
    >>> registry.lookup(h)
    Traceback (most recent call last):
    InvalidHandleError: handle 0x100000000 is not live
    """

    def __init__(self) -> None:
        self._slots: list[_Slot] = []
        self._free_head = _END_OF_LIST
        self._live = 0
        self._allocated_total = 0
        self._released_total = 0
        self._lock = threading.Lock()

    # =========================================================================
    # Internal helpers (caller holds the lock)
    # =========================================================================

    def _take_slot(self) -> int:
        if self._free_head != _END_OF_LIST:
            index = self._free_head
            self._free_head = self._slots[index].next_free
            return index
        if len(self._slots) >= MAX_SLOTS:
            raise ValidationError(
                "handle registry is full", details={"slots": len(self._slots)}
            )
        self._slots.append(_Slot())
        return len(self._slots) - 1

    def _live_slot(self, handle: int) -> _Slot | None:
        if not isinstance(handle, int) or handle <= 0:
            return None
        index, generation = _split(handle)
        if index >= len(self._slots):
            return None
        slot = self._slots[index]
        if slot.uses == 0 or slot.generation != generation:
            return None
        return slot

    @staticmethod
    def _invalid(handle: Any, action: str) -> InvalidHandleError:
        log.warning(f"{action} of handle that is not live", extra={"handle": handle})
        return InvalidHandleError(
            f"handle {handle:#x} is not live" if isinstance(handle, int) else f"handle {handle!r} is not live",
            details={"handle": handle, "action": action},
        )

    # =========================================================================
    # Core API
    # =========================================================================

    def allocate(self, value: Any) -> int:
        """
        Store ``value`` and return a fresh handle.

        The handle is non-zero and differs from every live handle.

        Raises
        ------
        ValidationError
            If all 2**32 slots are in use.
        """
        with self._lock:
            index = self._take_slot()
            slot = self._slots[index]
            slot.generation = slot.generation % GENERATION_MASK + 1
            slot.value = value
            slot.uses = 1
            slot.next_free = _END_OF_LIST
            self._live += 1
            self._allocated_total += 1
            handle = (slot.generation << INDEX_BITS) | index
        log.debug("Allocated handle", extra={"handle": handle})
        return handle

    def lookup(self, handle: int, expected_type: type | tuple[type, ...] | None = None) -> Any:
        """
        Return the value stored under ``handle``.

        Parameters
        ----------
        handle : int
            A handle returned by ``allocate``.
        expected_type : type or tuple of types, optional
            When given, the stored value must be an instance of it.

        Raises
        ------
        InvalidHandleError
            If the handle was never allocated or has been released.
        TypeMismatchError
            If the stored value is not an instance of ``expected_type``.
        """
        with self._lock:
            slot = self._live_slot(handle)
            value = slot.value if slot is not None else None
        if slot is None:
            raise self._invalid(handle, "lookup")
        if expected_type is not None and not isinstance(value, expected_type):
            expected = getattr(expected_type, "__name__", repr(expected_type))
            actual = type(value).__name__
            log.warning(
                "Handle holds unexpected type",
                extra={"handle": handle, "expected": expected, "actual": actual},
            )
            raise TypeMismatchError(
                f"handle {handle:#x} holds {actual}, expected {expected}",
                details={"handle": handle, "expected": expected, "actual": actual},
            )
        return value

    def retain(self, handle: int) -> int:
        """
        Add a use to a live handle. Returns the new use count.

        Raises
        ------
        InvalidHandleError
            If the handle is not live.
        """
        with self._lock:
            slot = self._live_slot(handle)
            if slot is not None:
                slot.uses += 1
                uses = slot.uses
        if slot is None:
            raise self._invalid(handle, "retain")
        log.debug("Retained handle", extra={"handle": handle, "uses": uses})
        return uses

    def release(self, handle: int) -> Any:
        """
        Drop one use of ``handle``.

        When the last use is released the registry drops its reference and
        the handle stops resolving.

        Returns
        -------
            The stored value.

        Raises
        ------
        InvalidHandleError
            If the handle is not live, including a second release of a
            handle whose last use is already gone.
        """
        with self._lock:
            slot = self._live_slot(handle)
            if slot is not None:
                value = slot.value
                slot.uses -= 1
                remaining = slot.uses
                if remaining == 0:
                    index, _ = _split(handle)
                    slot.value = None
                    slot.next_free = self._free_head
                    self._free_head = index
                    self._live -= 1
                    self._released_total += 1
        if slot is None:
            raise self._invalid(handle, "release")
        log.debug("Released handle", extra={"handle": handle, "uses": remaining})
        return value

    # =========================================================================
    # Introspection
    # =========================================================================

    def __len__(self) -> int:
        with self._lock:
            return self._live

    def __contains__(self, handle: object) -> bool:
        with self._lock:
            return isinstance(handle, int) and self._live_slot(handle) is not None

    def handles(self) -> list[int]:
        """Snapshot of all live handles."""
        with self._lock:
            return [
                (slot.generation << INDEX_BITS) | index
                for index, slot in enumerate(self._slots)
                if slot.uses
            ]

    def __iter__(self) -> Iterator[int]:
        return iter(self.handles())

    def stats(self) -> RegistryStats:
        with self._lock:
            return RegistryStats(
                live=self._live,
                slots=len(self._slots),
                allocated_total=self._allocated_total,
                released_total=self._released_total,
            )


# =============================================================================
# Process-wide registry
# =============================================================================

_registry: HandleRegistry | None = None
_registry_lock = threading.Lock()


def get_registry() -> HandleRegistry:
    """Return the process-wide registry, creating it on first use."""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = HandleRegistry()
    return _registry


def allocate(value: Any) -> int:
    """Store ``value`` in the process-wide registry."""
    return get_registry().allocate(value)


def lookup(handle: int, expected_type: type | tuple[type, ...] | None = None) -> Any:
    """Resolve ``handle`` in the process-wide registry."""
    return get_registry().lookup(handle, expected_type)


def release(handle: int) -> Any:
    """Release ``handle`` in the process-wide registry."""
    return get_registry().release(handle)


def retain(handle: int) -> int:
    """Add a use to ``handle`` in the process-wide registry."""
    return get_registry().retain(handle)
