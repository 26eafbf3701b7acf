"""
Boundary helpers shared by both directions.

- Thread-local last error: entry points never raise across the boundary.
  They return a sentinel (NULL, 0, or a non-zero status) and record the
  failure here; ``check()`` turns it back into an exception.
- Bounded buffer helpers for ``(pointer, capacity)`` string output.
- Range checks for ints bound to ``int32_t`` and ``size_t`` parameters.
- ``get_lib()``: the process-wide native shim library.
"""

from __future__ import annotations

import ctypes
import threading
from typing import Any

from .exceptions import BridgeError, ErrorCode, ValidationError, error_from_code

__all__ = [
    "get_lib",
    "check",
    "set_last_error",
    "record_error",
    "clear_last_error",
    "last_error",
    "write_bounded",
    "read_buffer",
    "INT32_MIN",
    "INT32_MAX",
    "SIZE_MAX",
    "require_int32",
    "require_size",
]

_state = threading.local()


# =============================================================================
# Last error (thread-local)
# =============================================================================


def set_last_error(code: int, message: str) -> None:
    """Record the failure of the current entry point for this thread."""
    _state.code = int(code)
    _state.message = message


def record_error(exc: BridgeError) -> int:
    """Record a BridgeError as the last error and return its status."""
    status = int(exc.original_code)
    set_last_error(status, str(exc))
    return status


def clear_last_error() -> None:
    """Reset the last error for this thread."""
    _state.code = ErrorCode.OK
    _state.message = ""


def last_error() -> tuple[int, str]:
    """Return ``(status, message)`` of the last failure on this thread."""
    return getattr(_state, "code", ErrorCode.OK), getattr(_state, "message", "")


def check(status: int) -> None:
    """
    Raise the exception for a non-zero status.

    The message comes from this thread's last error when it matches the
    status, otherwise a generic message is used.

    Raises
    ------
    BridgeError
        The subclass mapped from ``status``.
    """
    if status == ErrorCode.OK:
        return
    code, message = last_error()
    raise error_from_code(status, message if code == status else None)


# =============================================================================
# Integer ranges
# =============================================================================

INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1
SIZE_MAX = (1 << (8 * ctypes.sizeof(ctypes.c_size_t))) - 1


def _require_range(name: str, value: int, low: int, high: int, ctype: str) -> int:
    if not low <= value <= high:
        raise ValidationError(
            f"{name} must fit in {ctype}, got {value}",
            details={name: value, "min": low, "max": high},
        )
    return value


def require_int32(name: str, value: int) -> int:
    """Return ``value`` if it fits in ``int32_t``; ctypes would silently wrap it."""
    return _require_range(name, value, INT32_MIN, INT32_MAX, "int32")


def require_size(name: str, value: int) -> int:
    """Return ``value`` if it fits in ``size_t`` (non-negative, pointer width)."""
    return _require_range(name, value, 0, SIZE_MAX, "size_t")


# =============================================================================
# Buffers
# =============================================================================


def write_bounded(dst: int | None, capacity: int, data: bytes) -> int:
    """
    Copy ``data`` into a caller buffer of ``capacity`` bytes, NUL-terminated.

    At most ``capacity - 1`` bytes are written followed by a terminator.
    A zero capacity or NULL destination writes nothing.

    Returns
    -------
        Number of payload bytes written (excluding the terminator).
    """
    if not dst or capacity <= 0:
        return 0
    count = min(len(data), capacity - 1)
    if count:
        ctypes.memmove(dst, data, count)
    ctypes.c_char.from_address(dst + count).value = b"\0"
    return count


def read_buffer(address: int | None, length: int) -> bytes:
    """Copy ``length`` bytes out of native memory. NULL reads as empty."""
    if not address or length <= 0:
        return b""
    return ctypes.string_at(address, length)


# =============================================================================
# Library
# =============================================================================

_lib: Any = None
_lib_lock = threading.Lock()


def get_lib() -> Any:
    """
    Return the process-wide shim library, loading it on first use.

    ``HANDLEBRIDGE_LIBRARY`` selects an external shared object; otherwise
    the in-process shim is used. Either way every symbol carries its
    argtypes/restype.
    """
    global _lib
    if _lib is None:
        with _lib_lock:
            if _lib is None:
                from ._config import get_config
                from .shim.library import build_inprocess_library, load_library

                path = get_config().library_path
                _lib = load_library(path) if path else build_inprocess_library()
    return _lib
