"""Named, model-specific action handlers for generic object access."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple

from hatch.errors import ActionFailed, ActionNotFound, HatchError


Handler = Callable[[dict, dict, dict], Any]

_logger = logging.getLogger("hatch.actions")


@dataclass(frozen=True)
class ActionHandler:
    model_name: str
    action: str
    fn: Handler
    capability: str = "act"


class ActionDispatcher:
    def __init__(self) -> None:
        self._handlers: Dict[Tuple[str, str], ActionHandler] = {}

    def register(self, model_name: str, action: str, fn: Handler, capability: str = "act") -> ActionHandler:
        key = (model_name.lower(), action)
        if key in self._handlers:
            raise ValueError(f"action already registered: {model_name}.{action}")
        handler = ActionHandler(model_name=model_name, action=action, fn=fn, capability=capability)
        self._handlers[key] = handler
        return handler

    def action(self, model_name: str, action: str, capability: str = "act"):
        def decorator(fn: Handler) -> Handler:
            self.register(model_name, action, fn, capability=capability)
            return fn

        return decorator

    def resolve(self, model_name: str, action: str) -> ActionHandler:
        handler = self._handlers.get((model_name.lower(), action))
        if handler is None:
            raise ActionNotFound(model_name, action)
        return handler

    def invoke(self, handler: ActionHandler, record: dict, payload: dict | None, context: dict) -> Any:
        try:
            return handler.fn(record, payload or {}, context)
        except HatchError:
            raise
        except Exception as exc:
            _logger.warning("action_failed model=%s action=%s error=%s", handler.model_name, handler.action, exc)
            raise ActionFailed(str(exc) or exc.__class__.__name__) from exc
