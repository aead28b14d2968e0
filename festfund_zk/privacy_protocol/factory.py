"""
Proof backend factory.

Maps backend names to implementation classes and builds the configured
variant. There is no module-level backend instance: callers construct one
and pass it to the donation service explicitly.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Final

from .feature_flags import BackendKind, get_backend_type
from .interfaces import ProofBackend

logger = logging.getLogger(__name__)

_PACKAGE: Final[str] = __package__ or "festfund_zk.privacy_protocol"

BACKEND_REGISTRY: Final[dict[str, str]] = {
    BackendKind.LOCAL.value: f"{_PACKAGE}.pedersen.backend.PedersenProofBackend",
    BackendKind.REMOTE.value: f"{_PACKAGE}.remote.backend.RemoteProofBackend",
}


def _format_valid_options() -> str:
    return ", ".join(sorted(BACKEND_REGISTRY.keys()))


def _load_backend_class(backend_name: str) -> type[ProofBackend]:
    import_path = BACKEND_REGISTRY[backend_name]
    module_path, _, class_name = import_path.rpartition(".")
    if not module_path or not class_name:
        raise ValueError(
            f"Invalid backend import path for {backend_name!r}: {import_path!r}"
        )

    try:
        module = importlib.import_module(module_path)
    except ModuleNotFoundError as exc:
        raise ImportError(
            f"Unable to import backend module {module_path!r} for {backend_name!r}"
        ) from exc

    try:
        backend_cls = getattr(module, class_name)
    except AttributeError as exc:
        raise ImportError(
            f"Backend class {class_name!r} not found in module {module_path!r}"
        ) from exc

    if not isinstance(backend_cls, type) or not issubclass(backend_cls, ProofBackend):
        raise TypeError(f"Backend reference {import_path!r} does not implement ProofBackend")

    return backend_cls


def resolve_backend_name(*, prefer: str | None = None) -> str:
    backend_name = get_backend_type(prefer)
    if backend_name not in BACKEND_REGISTRY:
        raise ValueError(
            f"Invalid backend name: {backend_name!r}. "
            f"Valid options: {_format_valid_options()}"
        )
    return backend_name


def get_proof_backend(*, prefer: str | None = None, **options: Any) -> ProofBackend:
    """
    Return a new, uninitialized proof backend.

    Args:
        prefer: Optional backend name; falls back to feature flags.
        **options: Constructor arguments for the selected backend.

    Raises:
        ValueError: If the backend name is invalid.
        ImportError: If the backend class cannot be imported.
        TypeError: If the class does not implement ProofBackend.
    """
    backend_name = resolve_backend_name(prefer=prefer)
    backend_cls = _load_backend_class(backend_name)
    logger.debug("Selected proof backend %s (%s)", backend_name, backend_cls.__name__)
    return backend_cls(**options)
