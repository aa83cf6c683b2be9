"""Pull JSON out of model text."""

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Return the body of the first fenced block, or the text unchanged."""
    match = _FENCE_RE.search(text or "")
    return match.group(1).strip() if match else (text or "").strip()


def json_from_model(text: str) -> Any:
    """Parse the JSON a model returned, tolerating fences and chatter.

    Tries the whole (unfenced) text, then the outermost ``{...}``, then
    the outermost ``[...]``.

    Raises:
        ValueError: if no JSON value can be parsed.
    """
    body = strip_code_fences(text)
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        pass

    for opener, closer in (("{", "}"), ("[", "]")):
        start = body.find(opener)
        end = body.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(body[start:end + 1])
            except json.JSONDecodeError:
                continue

    raise ValueError(f"Model did not return JSON: {body[:200]!r}")


def json_object_from_model(text: str) -> dict:
    """Like :func:`json_from_model` but only a JSON object is accepted.

    Raises:
        ValueError: if the text holds no JSON object.
    """
    parsed = json_from_model(text)
    if not isinstance(parsed, dict):
        raise ValueError("expected a JSON object")
    return parsed
