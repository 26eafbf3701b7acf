"""
Native-side proxies for Python ``Person`` objects.

A native proxy is what C code would hold for a Python object: one registry
handle, nothing else. Every method calls through the ``PersonExportsC``
function-pointer table with plain C values and turns the returned status
into an exception.

Two storage strategies:

- ``PersonBox``: separate allocation. An 8-byte cell on the native heap
  stores the handle and the proxy's address is the cell.
- ``PersonRef``: handle as pointer. The handle value itself is the proxy's
  address; no native memory is used, and the proxy can never carry any
  state beyond the handle.
"""

from __future__ import annotations

import ctypes
from typing import Any, NoReturn

from ._bindings import check, last_error, require_int32, require_size
from ._native import PersonExportsC
from .exceptions import ConstructionFailureError, ErrorCode, UseAfterDisposeError, error_from_code
from .exports import get_exports
from .heap import get_heap

__all__ = ["NativePersonProxy", "PersonBox", "PersonRef"]


class NativePersonProxy:
    """
    Base class for native proxies.

    Subclasses decide how the handle is stored by implementing
    ``_store``, ``_load`` and ``_discard``. The proxy owns exactly one use
    of the handle: ``free()`` releases it once, and ``clone()`` is the only
    way to share it.
    """

    def __init__(self, name: str, age: int, *, exports: PersonExportsC | None = None):
        self._address: int | None = None
        require_int32("age", age)
        self._exports = exports or get_exports()
        encoded = name.encode("utf-8")
        handle = self._exports.new(encoded, len(encoded), age)
        if not handle:
            self._raise_last("hb_person_new returned the null handle")
        try:
            self._address = self._store(handle)
        except BaseException:
            self._exports.free(handle)
            raise

    @classmethod
    def _adopt(cls, handle: int, exports: PersonExportsC) -> NativePersonProxy:
        """Wrap a handle whose use this proxy now owns."""
        proxy = cls.__new__(cls)
        proxy._address = None
        proxy._exports = exports
        proxy._address = proxy._store(handle)
        return proxy

    @staticmethod
    def _raise_last(fallback: str) -> NoReturn:
        status, message = last_error()
        if status == ErrorCode.OK:
            raise ConstructionFailureError(fallback)
        raise error_from_code(status, message or fallback)

    # =========================================================================
    # Storage strategy
    # =========================================================================

    def _store(self, handle: int) -> int:
        """Return the proxy address that represents ``handle``."""
        raise NotImplementedError

    def _load(self, address: int) -> int:
        """Recover the handle from the proxy address."""
        raise NotImplementedError

    def _discard(self, address: int) -> None:
        """Release any storage behind the proxy address."""

    # =========================================================================
    # Lifetime
    # =========================================================================

    def _require(self) -> int:
        address = self._address
        if not address:
            raise UseAfterDisposeError(f"{type(self).__name__} used after free()")
        return self._load(address)

    @property
    def address(self) -> int:
        """The proxy's own address as native code would see it."""
        if not self._address:
            raise UseAfterDisposeError(f"{type(self).__name__} used after free()")
        return self._address

    @property
    def handle(self) -> int:
        """Registry handle this proxy holds."""
        return self._require()

    @property
    def freed(self) -> bool:
        return not self._address

    def free(self) -> None:
        """
        Release this proxy's use of the handle.

        Raises
        ------
        UseAfterDisposeError
            If the proxy was already freed.
        InvalidHandleError
            If the handle was released behind the proxy's back.
        """
        handle = self._require()
        address = self._address
        self._address = None
        status = self._exports.free(handle)
        self._discard(address)
        check(status)

    def clone(self) -> NativePersonProxy:
        """
        Return a new proxy sharing the same Python object.

        The handle's use count goes up by one; each proxy must be freed.
        """
        handle = self._require()
        check(self._exports.retain(handle))
        try:
            return type(self)._adopt(handle, self._exports)
        except BaseException:
            self._exports.free(handle)
            raise

    def __enter__(self) -> NativePersonProxy:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if not self.freed:
            self.free()

    def __del__(self):
        try:
            if getattr(self, "_address", None):
                self.free()
        except Exception:
            pass

    def __copy__(self) -> NoReturn:
        raise TypeError(f"{type(self).__name__} owns a handle; use clone() to share it")

    def __deepcopy__(self, memo: dict) -> NoReturn:
        raise TypeError(f"{type(self).__name__} owns a handle; use clone() to share it")

    def __repr__(self) -> str:
        if self.freed:
            return f"{type(self).__name__}(<freed>)"
        return f"{type(self).__name__}(handle={self.handle:#x})"

    # =========================================================================
    # Forwarded methods
    # =========================================================================

    def read_name(self, capacity: int) -> tuple[bytes, int]:
        """
        Copy the name into a ``capacity``-byte buffer.

        Returns
        -------
        tuple[bytes, int]
            The raw buffer (payload plus NUL terminator, up to ``capacity``
            bytes) and the full encoded length of the name.
        """
        handle = self._require()
        require_size("capacity", capacity)
        buf = ctypes.create_string_buffer(capacity) if capacity else None
        full_len = ctypes.c_size_t(0)
        check(self._exports.get_name(handle, buf, capacity, ctypes.byref(full_len)))
        return (buf.raw if buf is not None else b""), full_len.value

    def name(self, capacity: int | None = None) -> str:
        """
        The person's name.

        Parameters
        ----------
        capacity : int, optional
            Caller buffer size. A name longer than ``capacity - 1`` bytes
            comes back truncated. By default the buffer is sized to fit.
        """
        if capacity is None:
            _, full_len = self.read_name(0)
            capacity = full_len + 1
        raw, _ = self.read_name(capacity)
        return raw.split(b"\0", 1)[0].decode("utf-8", errors="ignore")

    @property
    def age(self) -> int:
        handle = self._require()
        out = ctypes.c_int32(0)
        check(self._exports.get_age(handle, ctypes.byref(out)))
        return out.value

    def set_age(self, age: int) -> None:
        """
        Update the age.

        Raises
        ------
        ValidationError
            If ``age`` is negative or does not fit in ``int32_t``.
        """
        handle = self._require()
        check(self._exports.set_age(handle, require_int32("age", age)))


class PersonBox(NativePersonProxy):
    """Native proxy whose handle lives in its own heap cell."""

    def _store(self, handle: int) -> int:
        cell = get_heap().allocate(ctypes.sizeof(ctypes.c_uint64))
        if not cell:
            raise ConstructionFailureError("cannot allocate proxy cell")
        ctypes.c_uint64.from_address(cell).value = handle
        return cell

    def _load(self, address: int) -> int:
        return ctypes.c_uint64.from_address(address).value

    def _discard(self, address: int) -> None:
        get_heap().free(address)


class PersonRef(NativePersonProxy):
    """Native proxy whose address is the handle value itself."""

    def _store(self, handle: int) -> int:
        return handle

    def _load(self, address: int) -> int:
        return address
