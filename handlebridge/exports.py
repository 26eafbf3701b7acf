"""
Python functions exported to native code.

Native code never sees a ``Person``. It calls these entry points with a
registry handle, and each call resolves the handle through the process-wide
registry with a typed lookup, so a handle to some other object is rejected
with ``TYPE_MISMATCH`` instead of being reinterpreted.

Every export returns an ``int32`` status (``hb_person_new`` returns the
handle, 0 on failure). Exceptions stop here: ``BridgeError`` becomes its
status, anything else becomes ``INTERNAL_ERROR``. Either way the message is
kept as the thread's last error.
"""

from __future__ import annotations

import ctypes
import functools
import threading
from collections.abc import Callable
from typing import Any

from ._bindings import clear_last_error, record_error, set_last_error, write_bounded
from ._logging import scoped_logger
from ._native import (
    HandleStatusFn,
    PersonExportsC,
    PersonGetAgeFn,
    PersonGetNameFn,
    PersonNewFn,
    PersonSetAgeFn,
)
from .exceptions import BridgeError, ErrorCode, ValidationError
from .person import Person
from .registry import NULL_HANDLE, get_registry

__all__ = [
    "hb_person_new",
    "hb_person_free",
    "hb_person_retain",
    "hb_person_get_name",
    "hb_person_get_age",
    "hb_person_set_age",
    "EXPORT_FUNCTIONS",
    "get_exports",
]

log = scoped_logger("exports")


def _exported(sentinel: int | None = None) -> Callable[[Callable[..., int]], Callable[..., int]]:
    """
    Stop exceptions at the boundary.

    Failures return ``sentinel`` when one is given (constructors return
    the null handle), otherwise the error's status.
    """

    def decorator(func: Callable[..., int]) -> Callable[..., int]:
        @functools.wraps(func)
        def wrapper(*args: Any) -> int:
            clear_last_error()
            try:
                return int(func(*args))
            except BridgeError as e:
                status = record_error(e)
            except Exception as e:
                log.error(f"{func.__name__} raised", exc_info=True)
                set_last_error(ErrorCode.INTERNAL_ERROR, f"{type(e).__name__}: {e}")
                status = int(ErrorCode.INTERNAL_ERROR)
            return status if sentinel is None else sentinel

        return wrapper

    return decorator


def _person(handle: int) -> Person:
    return get_registry().lookup(handle, Person)


def _validate_age(age: int) -> None:
    if age < 0:
        raise ValidationError(f"age must be non-negative, got {age}", details={"age": age})


# =============================================================================
# Entry points
# =============================================================================


@_exported(sentinel=NULL_HANDLE)
def hb_person_new(name_ptr: int | None, length: int, age: int) -> int:
    """Create a Person from ``length`` UTF-8 bytes at ``name_ptr``. Returns its handle."""
    if length and not name_ptr:
        raise ValidationError("name pointer is NULL", details={"length": length})
    raw = ctypes.string_at(name_ptr, length) if length else b""
    try:
        name = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ValidationError(f"name is not valid UTF-8: {e}") from e
    _validate_age(age)
    handle = get_registry().allocate(Person(name=name, age=age))
    log.debug("Exported person", extra={"handle": handle})
    return handle


@_exported()
def hb_person_free(handle: int) -> int:
    get_registry().release(handle)
    return ErrorCode.OK


@_exported()
def hb_person_retain(handle: int) -> int:
    get_registry().retain(handle)
    return ErrorCode.OK


@_exported()
def hb_person_get_name(handle: int, dst: int | None, capacity: int, out_len: Any) -> int:
    """
    Copy the name into ``dst`` (at most ``capacity - 1`` bytes plus NUL).

    ``out_len`` receives the full encoded length, so a result shorter than
    it means the copy was truncated.
    """
    encoded = _person(handle).name.encode("utf-8")
    write_bounded(dst, capacity, encoded)
    if out_len:
        out_len[0] = len(encoded)
    return ErrorCode.OK


@_exported()
def hb_person_get_age(handle: int, out_age: Any) -> int:
    age = _person(handle).age
    if not out_age:
        raise ValidationError("out_age is NULL")
    out_age[0] = age
    return ErrorCode.OK


@_exported()
def hb_person_set_age(handle: int, age: int) -> int:
    person = _person(handle)
    _validate_age(age)
    person.age = age
    return ErrorCode.OK


EXPORT_FUNCTIONS = {
    "hb_person_new": hb_person_new,
    "hb_person_free": hb_person_free,
    "hb_person_retain": hb_person_retain,
    "hb_person_get_name": hb_person_get_name,
    "hb_person_get_age": hb_person_get_age,
    "hb_person_set_age": hb_person_set_age,
}


# =============================================================================
# Export table
# =============================================================================

_exports: PersonExportsC | None = None
_callbacks: tuple[Any, ...] = ()
_exports_lock = threading.Lock()


def get_exports() -> PersonExportsC:
    """
    Return the function-pointer table native code uses to reach ``Person``.

    The table is built once and its callbacks are kept alive for the life
    of the process.
    """
    global _exports, _callbacks
    if _exports is None:
        with _exports_lock:
            if _exports is None:
                _callbacks = (
                    PersonNewFn(hb_person_new),
                    HandleStatusFn(hb_person_free),
                    HandleStatusFn(hb_person_retain),
                    PersonGetNameFn(hb_person_get_name),
                    PersonGetAgeFn(hb_person_get_age),
                    PersonSetAgeFn(hb_person_set_age),
                )
                _exports = PersonExportsC(*_callbacks)
    return _exports
