"""Troubleshoot manager helpers.

[OnceValue][hostprobe.services.troubleshoot.utils.OnceValue] implements the
"first successful scan wins" rule for the sticky version check, and
[load_provider()][hostprobe.services.troubleshoot.utils.load_provider]
turns the configured import paths into transport providers.
"""

from __future__ import annotations

import importlib
import threading
from typing import Generic, TypeVar

from hostprobe.core.exceptions import ConfigurationError
from hostprobe.models.constants import TransportVariant
from hostprobe.rhp.transport import TransportProvider


T = TypeVar("T")


class OnceValue(Generic[T]):
    """A value that can be assigned exactly once.

    [set()][hostprobe.services.troubleshoot.utils.OnceValue.set] stores the
    first value offered and returns whichever value won, so every caller
    compares against the same reference no matter who arrived first.

    Examples:
        ```python
        version = OnceValue[str]()
        version.set("v2.0.0")   # 'v2.0.0'
        version.set("v1.9.0")   # 'v2.0.0'
        ```
    """

    __slots__ = ("_lock", "_set", "_value")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._set = False
        self._value: T | None = None

    @property
    def is_set(self) -> bool:
        return self._set

    def set(self, value: T) -> T:
        with self._lock:
            if not self._set:
                self._value = value
                self._set = True
            return self._value  # type: ignore[return-value]

    def get(self) -> T | None:
        return self._value


def load_provider(path: str, variant: TransportVariant | None = None) -> TransportProvider:
    """Import ``module:attribute`` and return a transport provider.

    Classes are instantiated without arguments; any other object is used
    as-is.

    Raises:
        ConfigurationError: If the path cannot be imported, the object does
            not implement the provider interface, or its transport kind does
            not match *variant*.
    """
    module_name, _, attr = path.partition(":")
    try:
        obj = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"cannot load transport provider {path!r}: {e}") from e

    provider = obj() if isinstance(obj, type) else obj
    if not isinstance(provider, TransportProvider):
        raise ConfigurationError(f"{path!r} is not a transport provider")
    if variant is not None and provider.kind != variant.kind:
        raise ConfigurationError(
            f"{path!r} is a {provider.kind} provider but {variant} needs {variant.kind}"
        )
    return provider
