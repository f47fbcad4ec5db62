# modkeeper/config/types.py
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Callable

__all__ = ["ConfigProvider", "ChangeListener", "Validator"]

# (key, oldValue, newValue, context)
ChangeListener = Callable[[str, Any, Any, dict[str, Any]], None]

# Raises on an invalid merged document
Validator = Callable[[Mapping[str, Any]], Any]



class ConfigProvider(ABC):
    """One layer of the configuration stack."""

    @abstractmethod
    def get(self, key: str) -> Any | None: ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Write value at key; None deletes the key from this layer."""

    @abstractmethod
    def to_dict(self) -> Mapping[str, Any]: ...

    @abstractmethod
    def save(self) -> None: ...
