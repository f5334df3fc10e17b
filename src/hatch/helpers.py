"""Template helpers shared by admin views and content rendering."""

from __future__ import annotations

import re
from typing import Any

_TAG_RE = re.compile(r"(<([^>]+)>)", re.IGNORECASE)


class ModuleNotLoaded(RuntimeError):
    """Raised when a group enables a module the process never loaded."""


def strip_html(html: str | None, max_length: int | None = None) -> str:
    text = _TAG_RE.sub(" ", html or "")
    if max_length and max_length > 0 and len(text) > max_length:
        text = text[:max_length]
        if " " in text:
            text = text[: text.rindex(" ")]
        text += "..."
    return text.strip()


def render_location(location: Any) -> Any:
    """Short address ('Marylebone, London') from a geocoder location object."""
    if not isinstance(location, dict) or not location.get("address_components"):
        return location
    components = location["address_components"]
    return f"{components[2]['short_name']}, {components[3]['short_name']}"


def module_enabled(group: dict | None, module_name: str) -> dict | bool:
    if not isinstance(group, dict):
        return False
    for module in group.get("modules") or []:
        if isinstance(module, dict) and module.get("name") == module_name:
            return module
    return False


def module_configured(group: dict | None, module_name: str, modules_info: dict) -> bool:
    module = module_enabled(group, module_name)
    if not module:
        return False
    info = modules_info.get(module_name)
    if info is None:
        raise ModuleNotLoaded(f'Module "{module_name}" is not loaded')
    fields = (info.get("settings") or {}).get("fields")
    if not fields:
        return True
    contract = module.get("contract")
    if not contract:
        return False
    for field_id, field in fields.items():
        if field.get("required") and not contract.get(field_id):
            return False
    return True
