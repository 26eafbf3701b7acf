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
"""

from .exceptions import (
    BridgeError,
    ConstructionFailureError,
    ErrorCode,
    InvalidHandleError,
    LibraryError,
    TypeMismatchError,
    UseAfterDisposeError,
    ValidationError,
    error_from_code,
)

# =============================================================================
# Public API - See handlebridge/__init__.py for the top-level re-exports
# =============================================================================
__all__ = [
    # Base
    "BridgeError",
    "ErrorCode",
    # Handles
    "InvalidHandleError",
    "UseAfterDisposeError",
    "ConstructionFailureError",
    "TypeMismatchError",
    # Validation
    "ValidationError",
    # Library
    "LibraryError",
    # Mapping
    "error_from_code",
]
