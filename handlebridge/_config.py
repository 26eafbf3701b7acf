"""Process-wide configuration read from the environment."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, replace

from .exceptions import ValidationError

__all__ = ["BridgeConfig", "get_config", "set_config"]


@dataclass(frozen=True)
class BridgeConfig:
    """
    Configuration for the bridge runtime.

    Attributes
    ----------
        max_allocation: Largest single native allocation in bytes. Requests
            above it fail as if the allocator returned NULL. 0 disables the
            limit. Read from ``HANDLEBRIDGE_MAX_ALLOCATION``.

        library_path: Shared library exporting the ``hb_buffer_*`` entry
            points. When unset the in-process shim is used. Read from
            ``HANDLEBRIDGE_LIBRARY``.
    """

    max_allocation: int = 0
    library_path: str | None = None

    def __post_init__(self) -> None:
        if self.max_allocation < 0:
            raise ValidationError(
                f"max_allocation must be non-negative, got {self.max_allocation}",
                details={"max_allocation": self.max_allocation},
            )

    @classmethod
    def from_env(cls) -> BridgeConfig:
        """Build a config from ``HANDLEBRIDGE_*`` environment variables."""
        raw_limit = os.environ.get("HANDLEBRIDGE_MAX_ALLOCATION", "0").strip() or "0"
        try:
            max_allocation = int(raw_limit, 0)
        except ValueError:
            raise ValidationError(
                f"HANDLEBRIDGE_MAX_ALLOCATION must be an integer, got {raw_limit!r}",
                details={"HANDLEBRIDGE_MAX_ALLOCATION": raw_limit},
            ) from None
        return cls(
            max_allocation=max_allocation,
            library_path=os.environ.get("HANDLEBRIDGE_LIBRARY") or None,
        )

    def override(self, **kwargs) -> BridgeConfig:
        """Return a copy with the given fields replaced."""
        return replace(self, **kwargs)


_config: BridgeConfig | None = None
_config_lock = threading.Lock()


def get_config() -> BridgeConfig:
    """Return the process-wide config, reading the environment on first use."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = BridgeConfig.from_env()
    return _config


def set_config(config: BridgeConfig | None) -> None:
    """Replace the process-wide config. ``None`` re-reads the environment on next use."""
    global _config
    with _config_lock:
        _config = config
