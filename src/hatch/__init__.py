"""Hatch admin kernel utilities."""

from .errors import (
    ActionFailed,
    ActionNotFound,
    HatchError,
    ModelNotFound,
    PermissionDenied,
    RecordNotFound,
    StoreError,
    ValidationError,
)
from .helpers import ModuleNotLoaded, module_configured, module_enabled, render_location, strip_html
from .timefmt import format_publish_date, from_now, parse_publish_date

__all__ = [
    "ActionFailed",
    "ActionNotFound",
    "HatchError",
    "ModelNotFound",
    "ModuleNotLoaded",
    "PermissionDenied",
    "RecordNotFound",
    "StoreError",
    "ValidationError",
    "format_publish_date",
    "from_now",
    "module_configured",
    "module_enabled",
    "parse_publish_date",
    "render_location",
    "strip_html",
]
