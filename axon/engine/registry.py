"""Backend registry.

Maps backend names to their implementation classes.
"""

from typing import Any, Type

from axon.errors import InvalidConfig

from .backends.base import InferenceBackend
from .backends.vllm import VllmBackend

# Registry mapping backend names to backend classes
_BACKEND_REGISTRY: dict[str, Type[InferenceBackend]] = {
    "vllm": VllmBackend,
}


def create_backend(name: str, **kwargs: Any) -> InferenceBackend:
    """
    Create a backend instance by name.

    Args:
        name: Registered backend name (e.g., "vllm").
        **kwargs: Passed to the backend constructor (e.g., `base_url` to bind
            to a running engine instead of spawning one).

    Returns:
        A new, not yet loaded backend.

    Raises:
        InvalidConfig: If the backend name is not registered.
    """
    key = name.strip().lower()
    if key not in _BACKEND_REGISTRY:
        available = ", ".join(_BACKEND_REGISTRY.keys())
        raise InvalidConfig(f"Unknown backend: {name!r}. Available: {available}")
    return _BACKEND_REGISTRY[key](**kwargs)


def register_backend(name: str, backend_cls: Type[InferenceBackend]) -> None:
    """
    Register a backend class under a name.

    Args:
        name: Backend name.
        backend_cls: Backend class (must inherit from InferenceBackend).
    """
    if not (isinstance(backend_cls, type) and issubclass(backend_cls, InferenceBackend)):
        raise TypeError(f"{backend_cls!r} is not an InferenceBackend subclass")
    _BACKEND_REGISTRY[name.strip().lower()] = backend_cls


def list_backends() -> list[str]:
    """Return list of registered backend names."""
    return list(_BACKEND_REGISTRY.keys())
