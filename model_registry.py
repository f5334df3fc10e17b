"""Case-insensitive model registry for generic object access."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable


PublicView = Callable[[dict], dict]


@dataclass(frozen=True)
class ModelType:
    name: str
    store: Any
    public_view: PublicView | None = None

    def to_public(self, record: dict) -> dict:
        if self.public_view is None:
            return record
        return self.public_view(record)


class ModelRegistry:
    """Lookup table keyed by lower-cased model name.

    Built once at process start; requests only read from it.
    """

    def __init__(self, models: Iterable[ModelType] = ()) -> None:
        self._models: Dict[str, ModelType] = {}
        for model in models:
            self.register(model)

    def register(self, model: ModelType) -> None:
        key = model.name.lower()
        if key in self._models:
            raise ValueError(f"model already registered: {model.name}")
        self._models[key] = model

    def find(self, name: str | None) -> ModelType | None:
        if not isinstance(name, str):
            return None
        return self._models.get(name.strip().lower())

    def names(self) -> list[str]:
        return sorted(model.name for model in self._models.values())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.find(name) is not None
