"""
Global pytest fixtures for handlebridge tests.

This module provides:
- Fault handling for native crashes
- Clean thread-local error state per test

Shared fixtures (registry, heap, config, lib, exports) live in
tests/fixtures/native.py and are registered from the root conftest.
"""

import faulthandler

import pytest

# Enable faulthandler to trace native crashes (segfaults)
faulthandler.enable()


@pytest.fixture(autouse=True)
def _clear_last_error():
    """Each test starts with no recorded native error."""
    from handlebridge._bindings import clear_last_error

    clear_last_error()
    yield
    clear_last_error()
