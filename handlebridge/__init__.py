"""
handlebridge - safe object references across a C boundary.

Python objects move and die at the collector's discretion, and native
classes have no calling convention another runtime can rely on. This
package bridges both directions with opaque integer handles.

Native class -> Python
----------------------

A native class is exposed as free ``hb_buffer_*`` entry points (the shim).
``Buffer`` holds the native object's address and forwards through them:

    >>> from handlebridge import Buffer
    >>>
    >>> with Buffer(1024) as buf:
    ...     buf.write(b"hello\\0")
    ...     print(buf.read(6), buf.size)
    b'hello\\x00' 1024

Python object -> native code
----------------------------

Python objects are stored in a process-wide registry; native code only
holds the handle and calls exported ``hb_person_*`` functions:

    >>> from handlebridge import PersonRef
    >>>
    >>> person = PersonRef("gopher", 10)
    >>> person.name(capacity=4)
    'gop'
    >>> person.age
    10
    >>> person.free()

The registry itself:

    >>> import handlebridge
    >>> h = handlebridge.allocate({"any": "value"})
    >>> handlebridge.lookup(h)
    {'any': 'value'}
    >>> handlebridge.release(h)
    {'any': 'value'}


Core Classes
------------

- `HandleRegistry` - handle table (process-wide via `get_registry()`)
- `Buffer` - Python proxy for the native buffer class
- `PersonBox`, `PersonRef` - native proxies for Python `Person` objects
- `NativeHeap` - accounted C allocator (process-wide via `get_heap()`)

Errors
------

All errors derive from `BridgeError`. See `handlebridge.exceptions`.
"""

from ._config import BridgeConfig, get_config, set_config
from ._logging import scoped_logger, setup_logging
from .buffer import Buffer
from .exceptions import (
    BridgeError,
    ConstructionFailureError,
    ErrorCode,
    InvalidHandleError,
    LibraryError,
    TypeMismatchError,
    UseAfterDisposeError,
    ValidationError,
)
from .exports import get_exports
from .heap import NativeHeap, get_heap
from .native_proxy import NativePersonProxy, PersonBox, PersonRef
from .person import Person
from .registry import (
    NULL_HANDLE,
    HandleRegistry,
    RegistryStats,
    allocate,
    get_registry,
    lookup,
    release,
    retain,
)

__all__ = [
    # Registry
    "HandleRegistry",
    "RegistryStats",
    "NULL_HANDLE",
    "get_registry",
    "allocate",
    "lookup",
    "release",
    "retain",
    # Native class -> Python
    "Buffer",
    "NativeHeap",
    "get_heap",
    # Python -> native code
    "Person",
    "NativePersonProxy",
    "PersonBox",
    "PersonRef",
    "get_exports",
    # Configuration
    "BridgeConfig",
    "get_config",
    "set_config",
    "setup_logging",
    "scoped_logger",
    # Errors
    "BridgeError",
    "ErrorCode",
    "InvalidHandleError",
    "UseAfterDisposeError",
    "ConstructionFailureError",
    "TypeMismatchError",
    "ValidationError",
    "LibraryError",
]
