"""
Memory safety tests for the FFI boundary.

Tests ownership and lifecycle on both sides:
- Construction/destruction pairing (leak prevention)
- Error path cleanup (leak-on-failure prevention)
- Proxy finalization (handles released when proxies are collected)
- Stress tests (slow leak detection)
"""
