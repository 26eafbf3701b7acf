"""Shared fixtures for handlebridge tests."""
