"""
Shim library loading.

Callers see the shim the same way whether it comes from a shared object or
from this package: an object whose attributes are foreign function pointers
with ``argtypes``/``restype`` set from ``SHIM_SIGNATURES``.
"""

from __future__ import annotations

import ctypes
from collections.abc import Callable
from typing import Any

from .._logging import scoped_logger
from .._native import SHIM_SIGNATURES, setup_signatures
from ..exceptions import LibraryError
from .buffer import SHIM_FUNCTIONS

__all__ = ["InProcessLibrary", "build_inprocess_library", "load_library"]

log = scoped_logger("shim")


class InProcessLibrary:
    """
    Symbol table for entry points implemented in Python.

    Each function is wrapped in its C prototype, and the attribute exposed
    to callers is a fresh function pointer built from the wrapper's raw
    address. Calls therefore go through the C calling convention exactly
    as they would for a symbol from ``ctypes.CDLL``.
    """

    def __init__(
        self,
        functions: dict[str, Callable[..., Any]],
        signatures: dict[str, tuple[Any, list[Any]]],
        name: str = "<in-process>",
    ):
        self._name = name
        # Wrappers must outlive every pointer derived from them
        self._callbacks: dict[str, Any] = {}
        for symbol, (restype, argtypes) in signatures.items():
            impl = functions.get(symbol)
            if impl is None:
                raise LibraryError(
                    f"no implementation for {symbol}", details={"symbol": symbol}
                )
            proto = ctypes.CFUNCTYPE(restype, *argtypes)
            callback = proto(impl)
            self._callbacks[symbol] = callback
            address = ctypes.cast(callback, ctypes.c_void_p).value
            func = proto(address)
            func.restype = restype
            func.argtypes = argtypes
            setattr(self, symbol, func)

    def address_of(self, symbol: str) -> int:
        """Raw address of an entry point, as a C caller would hold it."""
        if symbol not in self._callbacks:
            raise LibraryError(f"unknown symbol {symbol}", details={"symbol": symbol})
        return ctypes.cast(self._callbacks[symbol], ctypes.c_void_p).value

    def __repr__(self) -> str:
        return f"<InProcessLibrary {self._name} symbols={len(self._callbacks)}>"


def build_inprocess_library() -> InProcessLibrary:
    """Build the shim library from this package's entry points."""
    lib = InProcessLibrary(SHIM_FUNCTIONS, SHIM_SIGNATURES, name="handlebridge.shim")
    log.debug("Built in-process shim library", extra={"symbols": len(SHIM_SIGNATURES)})
    return lib


def load_library(path: str) -> ctypes.CDLL:
    """
    Load an external shim library and configure its signatures.

    Raises
    ------
    LibraryError
        If the library cannot be loaded or lacks any ``hb_*`` entry point.
    """
    try:
        lib = ctypes.CDLL(path)
    except OSError as e:
        raise LibraryError(f"cannot load shim library {path}: {e}", details={"path": path}) from e

    missing = setup_signatures(lib, SHIM_SIGNATURES)
    if missing:
        raise LibraryError(
            f"shim library {path} is missing {len(missing)} entry point(s): {', '.join(missing)}",
            details={"path": path, "missing": missing},
        )
    log.info("Loaded shim library", extra={"path": path})
    return lib
