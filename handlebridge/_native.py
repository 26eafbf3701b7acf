"""
C signatures for every entry point that crosses the boundary.

Only fixed-layout data appears here: integers, sizes, raw pointers and
opaque handles. No entry point is variadic and none takes a reference
parameter; in/out values are pointer plus explicit size.

Two tables:

- ``SHIM_SIGNATURES``: native buffer class exposed to Python
  (pointer handles, ``void*``).
- ``EXPORT_SIGNATURES``: Python ``Person`` objects exposed to native code
  (registry handles, ``uint64_t``).
"""

from __future__ import annotations

import ctypes
from typing import Any

__all__ = [
    "PointerHandle",
    "RegistryHandle",
    "Status",
    "BufferObjectC",
    "SHIM_SIGNATURES",
    "EXPORT_SIGNATURES",
    "PersonNewFn",
    "HandleStatusFn",
    "PersonGetNameFn",
    "PersonGetAgeFn",
    "PersonSetAgeFn",
    "PersonExportsC",
    "prototype",
    "setup_signatures",
]

# Handle types for documentation
PointerHandle = ctypes.c_void_p
RegistryHandle = ctypes.c_uint64
Status = ctypes.c_int32


class BufferObjectC(ctypes.Structure):
    """Memory layout of a native buffer object: ``{size_t size; void *data;}``."""

    _fields_ = [
        ("size", ctypes.c_size_t),
        ("data", ctypes.c_void_p),
    ]


# =============================================================================
# Native shim entry points (native class -> Python)
# =============================================================================

SHIM_SIGNATURES: dict[str, tuple[Any, list[Any]]] = {
    # void* hb_buffer_new(size_t size)
    "hb_buffer_new": (PointerHandle, [ctypes.c_size_t]),
    # void hb_buffer_delete(void* self)
    "hb_buffer_delete": (None, [PointerHandle]),
    # void* hb_buffer_data(void* self)
    "hb_buffer_data": (ctypes.c_void_p, [PointerHandle]),
    # size_t hb_buffer_size(void* self)
    "hb_buffer_size": (ctypes.c_size_t, [PointerHandle]),
    # size_t hb_buffer_copy_in(void* self, size_t offset, const void* src, size_t len)
    "hb_buffer_copy_in": (
        ctypes.c_size_t,
        [PointerHandle, ctypes.c_size_t, ctypes.c_void_p, ctypes.c_size_t],
    ),
    # size_t hb_buffer_copy_out(void* self, size_t offset, void* dst, size_t capacity)
    "hb_buffer_copy_out": (
        ctypes.c_size_t,
        [PointerHandle, ctypes.c_size_t, ctypes.c_void_p, ctypes.c_size_t],
    ),
    # int32_t hb_last_error_code(void)
    "hb_last_error_code": (Status, []),
    # size_t hb_last_error_message(char* dst, size_t capacity)
    "hb_last_error_message": (ctypes.c_size_t, [ctypes.c_void_p, ctypes.c_size_t]),
}


# =============================================================================
# Managed exports (Python objects -> native code)
# =============================================================================

EXPORT_SIGNATURES: dict[str, tuple[Any, list[Any]]] = {
    # uint64_t hb_person_new(const char* name, size_t len, int32_t age)
    "hb_person_new": (RegistryHandle, [ctypes.c_void_p, ctypes.c_size_t, ctypes.c_int32]),
    # int32_t hb_person_free(uint64_t handle)
    "hb_person_free": (Status, [RegistryHandle]),
    # int32_t hb_person_retain(uint64_t handle)
    "hb_person_retain": (Status, [RegistryHandle]),
    # int32_t hb_person_get_name(uint64_t handle, char* dst, size_t capacity, size_t* out_len)
    "hb_person_get_name": (
        Status,
        [RegistryHandle, ctypes.c_void_p, ctypes.c_size_t, ctypes.POINTER(ctypes.c_size_t)],
    ),
    # int32_t hb_person_get_age(uint64_t handle, int32_t* out_age)
    "hb_person_get_age": (Status, [RegistryHandle, ctypes.POINTER(ctypes.c_int32)]),
    # int32_t hb_person_set_age(uint64_t handle, int32_t age)
    "hb_person_set_age": (Status, [RegistryHandle, ctypes.c_int32]),
}


def prototype(signatures: dict[str, tuple[Any, list[Any]]], name: str) -> Any:
    """Return the CFUNCTYPE prototype for a named entry point."""
    restype, argtypes = signatures[name]
    return ctypes.CFUNCTYPE(restype, *argtypes)


# Callback types for the export table
PersonNewFn = prototype(EXPORT_SIGNATURES, "hb_person_new")
HandleStatusFn = prototype(EXPORT_SIGNATURES, "hb_person_free")
PersonGetNameFn = prototype(EXPORT_SIGNATURES, "hb_person_get_name")
PersonGetAgeFn = prototype(EXPORT_SIGNATURES, "hb_person_get_age")
PersonSetAgeFn = prototype(EXPORT_SIGNATURES, "hb_person_set_age")


class PersonExportsC(ctypes.Structure):
    """Function-pointer table handed to native code for ``Person`` objects."""

    _fields_ = [
        ("new", PersonNewFn),
        ("free", HandleStatusFn),
        ("retain", HandleStatusFn),
        ("get_name", PersonGetNameFn),
        ("get_age", PersonGetAgeFn),
        ("set_age", PersonSetAgeFn),
    ]


def setup_signatures(lib: Any, signatures: dict[str, tuple[Any, list[Any]]]) -> list[str]:
    """
    Apply argtypes/restype to every symbol of a loaded library.

    Missing argtypes on 64-bit systems truncate pointer arguments, so every
    entry point is configured before first use.

    Returns
    -------
        Names of symbols the library does not export.
    """
    missing = []
    for name, (restype, argtypes) in signatures.items():
        try:
            func = getattr(lib, name)
        except AttributeError:
            missing.append(name)
            continue
        func.restype = restype
        func.argtypes = argtypes
    return missing
