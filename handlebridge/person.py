"""Name/age record owned by Python and exposed to native code by handle."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["Person"]


@dataclass
class Person:
    """A mutable name/age record."""

    name: str
    age: int
