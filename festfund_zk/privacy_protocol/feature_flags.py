"""
Proof backend selection.

A process uses one backend kind, resolved from (highest first):
    1. an explicit preference passed by the caller
    2. an in-memory override, set by tests via set_backend_type() or
       backend_override()
    3. the FESTFUND_PROOF_BACKEND environment variable
    4. BackendKind.LOCAL

Blank values at any level are skipped; unknown names raise ValueError.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional

ENV_VAR_NAME = "FESTFUND_PROOF_BACKEND"


class BackendKind(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["BackendKind"]:
        """Parse a backend name case-insensitively; None or blank gives None."""
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError(f"Invalid backend type: {value!r}. Valid options: {cls.options()}")
        name = value.strip().lower()
        if not name:
            return None
        try:
            return cls(name)
        except ValueError:
            raise ValueError(
                f"Invalid backend type: {name!r}. Valid options: {cls.options()}"
            ) from None

    @classmethod
    def options(cls) -> str:
        return ", ".join(kind.value for kind in cls)


_override: Optional[BackendKind] = None


def get_backend_type(prefer: Optional[str] = None) -> str:
    """
    Resolve the backend kind name.

    Raises:
        ValueError: If the preference or environment names an unknown backend
    """
    for candidate in (BackendKind.parse(prefer), _override):
        if candidate is not None:
            return candidate.value
    from_env = BackendKind.parse(os.environ.get(ENV_VAR_NAME))
    return (from_env or BackendKind.LOCAL).value


def set_backend_type(value: Optional[str]) -> None:
    """Force a backend kind for this process. None or "" clears the override."""
    global _override
    _override = BackendKind.parse(value)


@contextmanager
def backend_override(value: str) -> Iterator[None]:
    """Temporarily force a backend kind, restoring the previous override."""
    global _override
    previous = _override
    _override = BackendKind.parse(value)
    try:
        yield
    finally:
        _override = previous
