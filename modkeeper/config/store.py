# modkeeper/config/store.py
from __future__ import annotations

import logging
from typing import Any, Callable, Literal

from modkeeper.core.dictpath import deepMerge
from .providers import DefaultsProvider, FileProvider, OverrideProvider
from .types import ChangeListener, ConfigProvider, Validator

logger = logging.getLogger(__name__)

__all__ = ["ConfigStore"]

Target = Literal["runtime", "file"]



class ConfigStore:
    """
    Layered config store:
      - read: first hit from the topmost provider down
      - write: dispatch to a target layer ("runtime" override or user "file")
      - validate: after every set() the *effective* merged document must
        pass the validator, otherwise the write is rolled back
    """

    def __init__(self, *, namespace: str, validator: Validator | None, providers: list[ConfigProvider]) -> None:
        self.namespace = namespace
        self._validator = validator
        self._providers = providers
        self._listeners: list[ChangeListener] = []

        self._roleIdx: dict[str, int] = {}
        for idx, provider in enumerate(self._providers):
            if isinstance(provider, OverrideProvider):
                self._roleIdx.setdefault("runtime", idx)
            elif isinstance(provider, FileProvider):
                self._roleIdx.setdefault("file", idx)
            elif isinstance(provider, DefaultsProvider):
                self._roleIdx.setdefault("defaults", idx)

    # ----- Helpers -----

    def _resolveTargetIdx(self, target: Target) -> int:
        if target not in self._roleIdx:
            raise KeyError(f"No provider mapped for target '{target}' in {self.namespace}")
        return self._roleIdx[target]

    def merged(self) -> dict[str, Any]:
        """Bottom-to-top deep merge of every layer."""
        out: dict[str, Any] = {}
        for provider in self._providers:
            out = deepMerge(out, provider.to_dict())
        return out

    def validate(self) -> Any:
        if self._validator is None:
            return self.merged()
        return self._validator(self.merged())

    # ----- Public API -----

    def get(self, key: str) -> Any | None:
        for provider in reversed(self._providers):
            value = provider.get(key)
            if value is not None:
                return value
        return None

    def set(self, key: str, value: Any, *, target: Target = "runtime", actor: str = "system") -> None:
        idx = self._resolveTargetIdx(target)
        provider = self._providers[idx]
        oldValue = self.get(key)
        oldLayerValue = provider.get(key)

        provider.set(key, value)
        try:
            self.validate()
        except Exception:
            # Rollback only this layer to what it held before
            provider.set(key, oldLayerValue)
            raise

        newValue = self.get(key)
        if oldValue != newValue:
            context = {"namespace": self.namespace, "actor": actor, "target": target}
            for fn in list(self._listeners):
                try:
                    fn(key, oldValue, newValue, context)
                except Exception:
                    logger.exception("Config listener failed for key '%s'", key)

    def subscribe(self, fn: ChangeListener) -> Callable[[], None]:
        self._listeners.append(fn)
        def _unsub() -> None:
            if fn in self._listeners:
                self._listeners.remove(fn)
        return _unsub

    def snapshot(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "values": self.merged(),
            "layers": [provider.__class__.__name__ for provider in self._providers],
        }

    def save(self, target: Target = "file") -> None:
        self._providers[self._resolveTargetIdx(target)].save()
