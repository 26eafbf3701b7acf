"""
handlebridge exceptions.

This module defines the exception hierarchy for handlebridge:

    BridgeError (base)
    ├── InvalidHandleError - Lookup or release of a handle that is not live
    ├── UseAfterDisposeError - Proxy used after close()/free()
    ├── ConstructionFailureError - Object could not be constructed
    ├── TypeMismatchError - Registry value has an unexpected type
    ├── ValidationError - Invalid parameter value
    └── LibraryError - Shim library could not be loaded or is incomplete

Every exception maps onto a stable integer status (see ``ErrorCode``). That
integer is what crosses the foreign-function boundary; the proxy layer turns
it back into one of these exceptions with ``error_from_code()``.

Usage:
    try:
        registry.lookup(handle)
    except handlebridge.InvalidHandleError:
        print("handle was released")
    except handlebridge.BridgeError as e:
        print(f"Error {e.code}: {e}")
"""

from enum import IntEnum
from typing import Any

__all__ = [
    "ErrorCode",
    "BridgeError",
    "InvalidHandleError",
    "UseAfterDisposeError",
    "ConstructionFailureError",
    "TypeMismatchError",
    "ValidationError",
    "LibraryError",
    "error_from_code",
]


class ErrorCode(IntEnum):
    """Status values returned by entry points on either side of the boundary."""

    OK = 0
    INVALID_HANDLE = 1
    USE_AFTER_DISPOSE = 2
    CONSTRUCTION_FAILURE = 3
    TYPE_MISMATCH = 4
    INVALID_ARGUMENT = 5
    LIBRARY_ERROR = 6
    INTERNAL_ERROR = 99


class BridgeError(Exception):
    """
    Base exception for all handlebridge errors.

    Attributes
    ----------
    message : str
        Human-readable error description.
    code : str
        Stable, string-based error code (e.g., "INVALID_HANDLE").
    details : dict[str, Any]
        Structured context (e.g., {"handle": 4294967297}).
    original_code : int
        The integer status that crosses the boundary.

    Example
    -------
    >>> try:
    ...     handlebridge.lookup(12345)
    ... except handlebridge.BridgeError as e:
    ...     print(e.code, e.original_code)
    INVALID_HANDLE 1
    """

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
        original_code: int | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.original_code = ErrorCode.INTERNAL_ERROR if original_code is None else original_code

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.args[0]!r}, code={self.code!r})"


# =============================================================================
# Handle Errors
# =============================================================================


class InvalidHandleError(BridgeError, LookupError):
    """
    Handle is not live.

    Raised when a handle was never allocated, has already been released,
    or refers to a registry slot that has since been reused. A second
    release of the same handle also raises this, so a native double free
    surfaces here instead of corrupting another entry.
    """

    def __init__(
        self,
        message: str,
        code: str = "INVALID_HANDLE",
        details: dict[str, Any] | None = None,
        original_code: int | None = None,
    ):
        super().__init__(message, code, details, original_code or ErrorCode.INVALID_HANDLE)


class UseAfterDisposeError(BridgeError, RuntimeError):
    """
    Proxy invoked after it was disposed.

    Proxies clear their handle when closed, so any later call fails here
    rather than reaching a destroyed native object.
    """

    def __init__(
        self,
        message: str,
        code: str = "USE_AFTER_DISPOSE",
        details: dict[str, Any] | None = None,
        original_code: int | None = None,
    ):
        super().__init__(message, code, details, original_code or ErrorCode.USE_AFTER_DISPOSE)


class ConstructionFailureError(BridgeError, MemoryError):
    """
    Object construction did not complete.

    The construction entry point returned its sentinel (NULL or handle 0).
    Any partially constructed object has already been freed.
    """

    def __init__(
        self,
        message: str,
        code: str = "CONSTRUCTION_FAILURE",
        details: dict[str, Any] | None = None,
        original_code: int | None = None,
    ):
        super().__init__(message, code, details, original_code or ErrorCode.CONSTRUCTION_FAILURE)


class TypeMismatchError(BridgeError, TypeError):
    """
    Registry value does not have the type the caller expected.

    Raised by typed lookups instead of reinterpreting the stored value.
    """

    def __init__(
        self,
        message: str,
        code: str = "TYPE_MISMATCH",
        details: dict[str, Any] | None = None,
        original_code: int | None = None,
    ):
        super().__init__(message, code, details, original_code or ErrorCode.TYPE_MISMATCH)


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(BridgeError, ValueError):
    """
    Invalid parameter value.

    This exception inherits from both BridgeError and ValueError, so both work::

        except handlebridge.BridgeError:   # catches all handlebridge errors
        except ValueError:                 # catches validation errors (Pythonic)

    Example:
        >>> Buffer(-1)
        ValidationError: size must be non-negative, got -1
    """

    def __init__(
        self,
        message: str,
        code: str = "INVALID_ARGUMENT",
        details: dict[str, Any] | None = None,
        original_code: int | None = None,
    ):
        super().__init__(message, code, details, original_code or ErrorCode.INVALID_ARGUMENT)


# =============================================================================
# Library Errors
# =============================================================================


class LibraryError(BridgeError, OSError):
    """Shim library could not be loaded or does not export every entry point."""

    def __init__(
        self,
        message: str,
        code: str = "LIBRARY_ERROR",
        details: dict[str, Any] | None = None,
        original_code: int | None = None,
    ):
        super().__init__(message, code, details, original_code or ErrorCode.LIBRARY_ERROR)


# =============================================================================
# Status mapping
# =============================================================================

_CODE_TO_EXCEPTION: dict[int, type[BridgeError]] = {
    ErrorCode.INVALID_HANDLE: InvalidHandleError,
    ErrorCode.USE_AFTER_DISPOSE: UseAfterDisposeError,
    ErrorCode.CONSTRUCTION_FAILURE: ConstructionFailureError,
    ErrorCode.TYPE_MISMATCH: TypeMismatchError,
    ErrorCode.INVALID_ARGUMENT: ValidationError,
    ErrorCode.LIBRARY_ERROR: LibraryError,
}


def error_from_code(status: int, message: str | None = None) -> BridgeError:
    """
    Build the exception for a non-zero boundary status.

    Unknown statuses map to a plain BridgeError carrying INTERNAL_ERROR.
    """
    exc_type = _CODE_TO_EXCEPTION.get(status)
    if exc_type is None:
        return BridgeError(
            message or f"native call failed with status {status}",
            details={"status": status},
            original_code=status,
        )
    return exc_type(message or f"native call failed with status {status}")
