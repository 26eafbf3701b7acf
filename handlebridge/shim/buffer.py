"""
Native buffer class and its shim entry points.

``NativeBuffer`` is the class implementation: a ``BufferObjectC`` struct
allocated on the native heap, owning a separate data block. Its methods
operate on the object's address.

The ``hb_buffer_*`` functions are the shim: one free function per
constructor, destructor and method, taking and returning plain data only.
A caller never needs the struct layout, just these signatures (see
``_native.SHIM_SIGNATURES``).

Shim functions never raise. Failure is a NULL or zero return plus the
thread's last error, readable through ``hb_last_error_code`` and
``hb_last_error_message``.
"""

from __future__ import annotations

import ctypes

from .._bindings import clear_last_error, last_error, record_error, set_last_error, write_bounded
from .._logging import scoped_logger
from .._native import BufferObjectC
from ..exceptions import BridgeError, ConstructionFailureError, ErrorCode
from ..heap import get_heap

__all__ = [
    "NativeBuffer",
    "hb_buffer_new",
    "hb_buffer_delete",
    "hb_buffer_data",
    "hb_buffer_size",
    "hb_buffer_copy_in",
    "hb_buffer_copy_out",
    "hb_last_error_code",
    "hb_last_error_message",
    "SHIM_FUNCTIONS",
]

log = scoped_logger("shim")


class NativeBuffer:
    """
    Implementation of the native buffer class.

    All methods are static and take the object's address, mirroring a
    class whose instances live in native memory rather than in Python.
    """

    @staticmethod
    def construct(address: int, size: int) -> None:
        """Initialise the struct at ``address`` with a zeroed ``size``-byte block."""
        data = get_heap().allocate(size)
        if not data:
            raise ConstructionFailureError(
                f"cannot allocate {size} byte buffer", details={"size": size}
            )
        obj = BufferObjectC.from_address(address)
        obj.size = size
        obj.data = data

    @staticmethod
    def destruct(address: int) -> None:
        obj = BufferObjectC.from_address(address)
        get_heap().free(obj.data)
        obj.data = None
        obj.size = 0

    @staticmethod
    def data(address: int) -> int | None:
        return BufferObjectC.from_address(address).data

    @staticmethod
    def size(address: int) -> int:
        return BufferObjectC.from_address(address).size

    @staticmethod
    def copy_in(address: int, offset: int, src: int, length: int) -> int:
        """Copy up to ``length`` bytes from ``src`` to ``data[offset:]``, clamped to size."""
        obj = BufferObjectC.from_address(address)
        if offset >= obj.size or not src:
            return 0
        count = min(length, obj.size - offset)
        ctypes.memmove(obj.data + offset, src, count)
        return count

    @staticmethod
    def copy_out(address: int, offset: int, dst: int, capacity: int) -> int:
        """Copy ``data[offset:]`` into ``dst``, clamped to both size and capacity."""
        obj = BufferObjectC.from_address(address)
        if offset >= obj.size or not dst:
            return 0
        count = min(capacity, obj.size - offset)
        ctypes.memmove(dst, obj.data + offset, count)
        return count


# =============================================================================
# Shim entry points
# =============================================================================


def hb_buffer_new(size: int) -> int | None:
    """Allocate and construct a buffer. Returns its address or NULL."""
    clear_last_error()
    heap = get_heap()
    address = heap.allocate(ctypes.sizeof(BufferObjectC))
    if not address:
        set_last_error(ErrorCode.CONSTRUCTION_FAILURE, "cannot allocate buffer object")
        return None
    try:
        NativeBuffer.construct(address, size)
    except BridgeError as e:
        heap.free(address)
        record_error(e)
        return None
    except Exception as e:
        heap.free(address)
        log.error("Buffer constructor raised", exc_info=True)
        set_last_error(ErrorCode.INTERNAL_ERROR, str(e))
        return None
    log.debug("Constructed buffer", extra={"handle": address, "size": size})
    return address


def hb_buffer_delete(address: int | None) -> None:
    """Destruct and free a buffer. Must be called at most once per address."""
    if not address:
        return
    try:
        NativeBuffer.destruct(address)
    except Exception:
        log.error("Buffer destructor raised", exc_info=True, extra={"handle": address})
    get_heap().free(address)
    log.debug("Destroyed buffer", extra={"handle": address})


def hb_buffer_data(address: int | None) -> int | None:
    try:
        return NativeBuffer.data(address)
    except Exception as e:
        log.error("data failed", exc_info=True, extra={"handle": address})
        set_last_error(ErrorCode.INTERNAL_ERROR, str(e))
        return None


def hb_buffer_size(address: int | None) -> int:
    try:
        return NativeBuffer.size(address)
    except Exception as e:
        log.error("size failed", exc_info=True, extra={"handle": address})
        set_last_error(ErrorCode.INTERNAL_ERROR, str(e))
        return 0


def hb_buffer_copy_in(address: int, offset: int, src: int | None, length: int) -> int:
    try:
        return NativeBuffer.copy_in(address, offset, src, length)
    except Exception as e:
        log.error("copy_in failed", exc_info=True, extra={"handle": address})
        set_last_error(ErrorCode.INTERNAL_ERROR, str(e))
        return 0


def hb_buffer_copy_out(address: int, offset: int, dst: int | None, capacity: int) -> int:
    try:
        return NativeBuffer.copy_out(address, offset, dst, capacity)
    except Exception as e:
        log.error("copy_out failed", exc_info=True, extra={"handle": address})
        set_last_error(ErrorCode.INTERNAL_ERROR, str(e))
        return 0


def hb_last_error_code() -> int:
    return int(last_error()[0])


def hb_last_error_message(dst: int | None, capacity: int) -> int:
    """Copy the last error message into ``dst``. Returns its full length."""
    message = last_error()[1].encode("utf-8")
    write_bounded(dst, capacity, message)
    return len(message)


# Symbol name -> implementation, in the order of SHIM_SIGNATURES
SHIM_FUNCTIONS = {
    "hb_buffer_new": hb_buffer_new,
    "hb_buffer_delete": hb_buffer_delete,
    "hb_buffer_data": hb_buffer_data,
    "hb_buffer_size": hb_buffer_size,
    "hb_buffer_copy_in": hb_buffer_copy_in,
    "hb_buffer_copy_out": hb_buffer_copy_out,
    "hb_last_error_code": hb_last_error_code,
    "hb_last_error_message": hb_last_error_message,
}
