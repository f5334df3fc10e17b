"""Permission-checked, model-agnostic object access.

Resolution is a three step pipeline: model lookup, record load, view
authorization. Each step raises on failure, so a ``ResolvedObject`` only
exists for a record the caller is allowed to see.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from action_dispatch import ActionDispatcher
from hatch.errors import ModelNotFound, PermissionDenied, RecordNotFound
from model_registry import ModelRegistry, ModelType


_logger = logging.getLogger("hatch.resolver")


class PermissionChecker(Protocol):
    def check(self, record: dict, action: str, actor: dict | None) -> bool:
        ...


@dataclass
class ResolvedObject:
    model: ModelType
    record: dict
    actor: dict | None
    permissions: PermissionChecker
    dispatcher: ActionDispatcher

    def get(self) -> dict:
        return self.model.to_public(self.record)

    def perform(self, action: str, payload: dict | None = None) -> Any:
        handler = self.dispatcher.resolve(self.model.name, action)
        if not self.permissions.check(self.record, handler.capability, self.actor):
            raise PermissionDenied()
        context = {"actor": self.actor, "model": self.model}
        result = self.dispatcher.invoke(handler, self.record, payload, context)
        _logger.info("action_performed model=%s id=%s action=%s", self.model.name, self.record.get("id"), action)
        return result


class ObjectResolver:
    def __init__(self, registry: ModelRegistry, permissions: PermissionChecker, dispatcher: ActionDispatcher) -> None:
        self._registry = registry
        self._permissions = permissions
        self._dispatcher = dispatcher

    def lookup(self, model_name: str) -> ModelType:
        model = self._registry.find(model_name)
        if model is None:
            raise ModelNotFound(model_name)
        return model

    def load(self, model: ModelType, record_id: Any) -> dict:
        record = model.store.find(record_id)
        if not record:
            raise RecordNotFound(model.name, record_id)
        return record

    def authorize(self, record: dict, actor: dict | None, action: str = "view") -> None:
        if not self._permissions.check(record, action, actor):
            raise PermissionDenied()

    def resolve(self, model_name: str, record_id: Any, actor: dict | None) -> ResolvedObject:
        model = self.lookup(model_name)
        record = self.load(model, record_id)
        self.authorize(record, actor, "view")
        return ResolvedObject(
            model=model,
            record=record,
            actor=actor,
            permissions=self._permissions,
            dispatcher=self._dispatcher,
        )
