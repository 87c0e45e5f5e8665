"""``{{path}}`` interpolation against a workflow execution context.

Two flavours:
  interpolate_template(t, ctx)  — dotted paths walked through the context,
                                  e.g. ``{{results.price-monitor.price}}``. The
                                  root is a word; later segments may contain "-"
                                  because block IDs do
  interpolate_keys(t, data)     — single ``{{key}}`` lookups in a flat dict,
                                  used for AI prompt templates

Unresolvable placeholders are left verbatim in both.
"""

import json
import re
from typing import Any

from pydantic import BaseModel

PATH_PATTERN = re.compile(r"\{\{(\w+(?:\.[\w-]+)*)\}\}")
KEY_PATTERN = re.compile(r"\{\{(\w+)\}\}")

# Builder UIs emit camelCase roots
_ROOT_ALIASES = {
    "triggerData": "trigger_data",
    "userPreferences": "user_preferences",
    "networkData": "network_data",
}

MISSING = object()


def _step(value: Any, part: str) -> Any:
    if isinstance(value, BaseModel):
        return getattr(value, part, MISSING)
    if isinstance(value, dict):
        return value.get(part, MISSING)
    if isinstance(value, (list, tuple)) and part.isdigit():
        index = int(part)
        return value[index] if index < len(value) else MISSING
    return MISSING


def lookup_path(context: Any, path: str) -> Any:
    """Walk *path* (``a.b.0.c``) through *context*. Returns MISSING when any segment is absent."""
    parts = path.split(".")
    if isinstance(context, BaseModel):
        parts[0] = _ROOT_ALIASES.get(parts[0], parts[0])
    value = context
    for part in parts:
        value = _step(value, part)
        if value is MISSING or value is None:
            return MISSING
    return value


def render_value(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def interpolate_template(template: str, context: Any) -> str:
    def _replace(match: re.Match) -> str:
        value = lookup_path(context, match.group(1))
        return match.group(0) if value is MISSING else render_value(value)

    return PATH_PATTERN.sub(_replace, template)


def resolve_value(value: Any, context: Any) -> Any:
    """Interpolate a single parameter value.

    A string that is exactly one placeholder resolves to the raw value so
    numbers and objects keep their type. Other strings are interpolated. All
    non-string values pass through untouched.
    """
    if not isinstance(value, str):
        return value
    whole = PATH_PATTERN.fullmatch(value)
    if whole:
        resolved = lookup_path(context, whole.group(1))
        return value if resolved is MISSING else resolved
    return interpolate_template(value, context)


def resolve_parameters(parameters: dict[str, Any], context: Any) -> dict[str, Any]:
    return {key: resolve_value(value, context) for key, value in (parameters or {}).items()}


def interpolate_keys(template: str, data: dict[str, Any]) -> str:
    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key not in data or data[key] is None:
            return match.group(0)
        return render_value(data[key])

    return KEY_PATTERN.sub(_replace, template)
