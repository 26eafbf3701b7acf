"""
Python proxy for the native buffer class.

``Buffer`` holds one pointer handle (the native object's heap address) and
forwards every call to the ``hb_buffer_*`` shim entry points. The proxy
itself may be moved or collected by Python at any time; the native address
it carries stays valid until ``close()``.
"""

from __future__ import annotations

import ctypes
from typing import Any, NoReturn

from ._bindings import get_lib, require_size
from .exceptions import ConstructionFailureError, ErrorCode, UseAfterDisposeError, error_from_code

__all__ = ["Buffer"]

_ERROR_MESSAGE_CAPACITY = 512


def _raise_construction_failure(lib: Any, size: int) -> NoReturn:
    """Raise the library's last error after a NULL from the constructor."""
    status = lib.hb_last_error_code()
    message_buf = ctypes.create_string_buffer(_ERROR_MESSAGE_CAPACITY)
    lib.hb_last_error_message(message_buf, _ERROR_MESSAGE_CAPACITY)
    message = message_buf.value.decode("utf-8", errors="replace") or None
    if status in (ErrorCode.OK, ErrorCode.CONSTRUCTION_FAILURE):
        raise ConstructionFailureError(
            message or f"failed to construct {size} byte buffer", details={"size": size}
        )
    raise error_from_code(status, message)


class Buffer:
    """
    Fixed-size byte buffer in native memory.

    Parameters
    ----------
    size : int
        Capacity in bytes. The block starts zeroed.

    Examples
    --------
    >>> with Buffer(1024) as buf:
    ...     buf.write(b"hello\\0")
    ...     buf.read(6)
    6
    b'hello\\x00'

    Raises
    ------
    ValidationError
        If ``size`` is negative or does not fit in ``size_t``.
    ConstructionFailureError
        If the native allocation fails.
    """

    def __init__(self, size: int):
        require_size("size", size)
        self._lib = get_lib()
        self._handle: int | None = None
        handle = self._lib.hb_buffer_new(size)
        if not handle:
            _raise_construction_failure(self._lib, size)
        self._handle = handle

    def close(self) -> None:
        """
        Destroy the native buffer.

        After calling close(), the buffer cannot be used. The native
        destructor runs exactly once.

        Raises
        ------
        UseAfterDisposeError
            If the buffer was already closed.
        """
        handle = self._require()
        self._handle = None
        self._lib.hb_buffer_delete(handle)

    def __enter__(self) -> Buffer:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit, closes the buffer if still open."""
        if not self.closed:
            self.close()

    def __del__(self):
        try:
            if getattr(self, "_handle", None):
                self.close()
        except Exception:
            pass

    def __copy__(self) -> NoReturn:
        raise TypeError("Buffer owns a native object and cannot be copied")

    def __deepcopy__(self, memo: dict) -> NoReturn:
        raise TypeError("Buffer owns a native object and cannot be copied")

    def __repr__(self) -> str:
        if not self._handle:
            return "Buffer(<closed>)"
        return f"Buffer(size={self.size}, handle={self._handle:#x})"

    # =========================================================================
    # Handle access
    # =========================================================================

    def _require(self) -> int:
        handle = self._handle
        if not handle:
            raise UseAfterDisposeError("Buffer used after close()")
        return handle

    @property
    def closed(self) -> bool:
        return not self._handle

    @property
    def handle(self) -> int:
        """Native address of the buffer object (pointer handle)."""
        return self._require()

    # =========================================================================
    # Forwarded methods
    # =========================================================================

    @property
    def size(self) -> int:
        """Capacity in bytes."""
        return self._lib.hb_buffer_size(self._require())

    def __len__(self) -> int:
        return self.size

    @property
    def data_pointer(self) -> int:
        """Address of the first data byte."""
        return self._lib.hb_buffer_data(self._require())

    def write(self, data: bytes | bytearray | memoryview, offset: int = 0) -> int:
        """
        Copy ``data`` into the buffer starting at ``offset``.

        Writes past the end are truncated, never overrun.

        Returns
        -------
        int
            Number of bytes copied.
        """
        handle = self._require()
        require_size("offset", offset)
        payload = bytes(data)
        if not payload:
            return 0
        src = ctypes.create_string_buffer(payload, len(payload))
        return self._lib.hb_buffer_copy_in(handle, offset, src, len(payload))

    def read(self, length: int | None = None, offset: int = 0) -> bytes:
        """
        Copy bytes out of the buffer.

        Parameters
        ----------
        length : int, optional
            Bytes to read. Defaults to everything after ``offset``.
        offset : int, default 0
            Starting position.
        """
        handle = self._require()
        require_size("offset", offset)
        available = max(self._lib.hb_buffer_size(handle) - offset, 0)
        length = available if length is None else min(require_size("length", length), available)
        if not length:
            return b""
        dst = ctypes.create_string_buffer(length)
        copied = self._lib.hb_buffer_copy_out(handle, offset, dst, length)
        return dst.raw[:copied]

    def view(self) -> memoryview:
        """
        Writable memoryview over the native data.

        The view must not be used after close().
        """
        handle = self._require()
        size = self._lib.hb_buffer_size(handle)
        array = (ctypes.c_uint8 * size).from_address(self._lib.hb_buffer_data(handle))
        return memoryview(array).cast("B")
