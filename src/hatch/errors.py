"""Error taxonomy shared by the resolver, query builder and content ops."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(eq=False)
class HatchError(Exception):
    code: str
    message: str

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"{self.code}: {self.message}"


class ModelNotFound(HatchError):
    def __init__(self, model_name: str) -> None:
        super().__init__("MODEL_NOT_FOUND", f'Could not find model "{model_name}"')


class RecordNotFound(HatchError):
    def __init__(self, model_name: str, record_id=None) -> None:
        super().__init__("RECORD_NOT_FOUND", f"{model_name} not found")
        self.record_id = record_id


class PermissionDenied(HatchError):
    def __init__(self, message: str = "permission denied") -> None:
        super().__init__("PERMISSION_DENIED", message)


class ValidationError(HatchError):
    def __init__(self, message: str, field: str | None = None, errors: list | None = None) -> None:
        super().__init__("VALIDATION_ERROR", message)
        self.field = field
        self.errors = errors or [{"field": field, "message": message}]


class StoreError(HatchError):
    def __init__(self, message: str) -> None:
        super().__init__("STORE_ERROR", message)


class ActionNotFound(HatchError):
    def __init__(self, model_name: str, action: str) -> None:
        super().__init__("ACTION_NOT_FOUND", f'Unknown action "{action}" for {model_name}')


class ActionFailed(HatchError):
    def __init__(self, message: str) -> None:
        super().__init__("ACTION_FAILED", message)
