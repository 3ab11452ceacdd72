import json
import re
from typing import Any, Dict, Optional

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def _to_text(value: Any) -> str:
    # Match the JSON spelling clients use when they write the templates.
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def render_template(template: str, data: Optional[Dict[str, Any]]) -> str:
    """
    Replaces every {key} in the template with data[key].

    Placeholders whose key is not in data are left untouched, so a half-filled
    template still shows which variable was missing.
    """
    data = data or {}

    def _substitute(match: re.Match) -> str:
        key = match.group(1)
        return _to_text(data[key]) if key in data else match.group(0)

    return _PLACEHOLDER.sub(_substitute, template)
