from __future__ import annotations

from typing import Any, Mapping

from jinja2 import TemplateError
from jinja2.sandbox import ImmutableSandboxedEnvironment

from hatch.helpers import render_location, strip_html
from hatch.timefmt import format_publish_date, from_now

_ALLOWED_FILTERS = {
    "default",
    "escape",
    "lower",
    "upper",
    "title",
    "trim",
    "truncate",
    "length",
    "join",
}


class _LockedSandbox(ImmutableSandboxedEnvironment):
    def is_safe_attribute(self, obj, attr, value) -> bool:
        return False

    def is_safe_callable(self, obj) -> bool:
        return False


def _env() -> _LockedSandbox:
    env = _LockedSandbox(autoescape=True)
    env.globals = {}
    env.filters = {key: val for key, val in env.filters.items() if key in _ALLOWED_FILTERS}
    env.filters.update(
        {
            "strip_html": strip_html,
            "location": render_location,
            "from_now": from_now,
            "publish_date": format_publish_date,
        }
    )
    return env


def _sanitize_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(key): _sanitize_value(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(val) for val in value]
    return str(value)


def content_view_key(post: dict, view: str = "") -> str:
    content_type = post.get("type") or "default"
    return f"{view.strip('/')}/{content_type}" if view else content_type


def render_content(post: dict, templates: Mapping[str, str], view: str = "") -> str:
    """Render a content item with the template registered for its type.

    A missing template or a render failure yields the error text instead
    of raising, so one broken post does not break a whole page.
    """
    key = content_view_key(post, view)
    text = templates.get(key)
    if text is None:
        return f"Template not found: {key}"
    try:
        tmpl = _env().from_string(text)
        return tmpl.render(post=_sanitize_value(post))
    except TemplateError as exc:
        return str(exc)
