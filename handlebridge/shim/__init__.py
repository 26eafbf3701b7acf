"""
Native shim layer.

Free-function entry points for the native buffer class, plus the loaders
that expose them as a symbol table.
"""

from .buffer import NativeBuffer
from .library import InProcessLibrary, build_inprocess_library, load_library

__all__ = ["NativeBuffer", "InProcessLibrary", "build_inprocess_library", "load_library"]
