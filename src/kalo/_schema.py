"""Field-path suggestions for jq filters, derived from a sample JSON value."""

from __future__ import annotations

import json

BASE_SUGGESTIONS: tuple[str, ...] = (
    ".",
    ".[]",
    ".[0]",
    "length",
    "keys",
    "keys[]",
    "type",
    "empty",
    "map(.)",
    "select(.)",
    "sort",
    "reverse",
    "unique",
    "group_by(.)",
    "min",
    "max",
    "add",
)

MAX_DEPTH = 3


def parse_body(body: str) -> object | None:
    """Decode a response body for introspection.  Undecodable input gives None."""
    if not body:
        return None
    try:
        return json.loads(body)
    except (json.JSONDecodeError, ValueError):
        return None


def extract_field_paths(
    value: object, prefix: str = "", depth: int = 0, max_depth: int = MAX_DEPTH
) -> list[str]:
    """Collect jq paths such as ``.a``, ``.a[]``, ``.a[0]``, ``.a.b`` from *value*.

    Recursion below the immediate children stops once ``depth`` reaches 2,
    which bounds the list for large responses.  Scalars and non-object
    roots produce nothing.
    """
    paths: list[str] = []
    if depth > max_depth:
        return paths

    if isinstance(value, dict):
        for key, sub in value.items():
            path = f"{prefix}.{key}" if prefix else f".{key}"
            paths.append(path)
            if isinstance(sub, list):
                paths.append(path + "[]")
                paths.append(path + "[0]")
            if depth < 2:
                paths.extend(_extract_nested(sub, path, depth + 1, max_depth))
    return paths


def _extract_nested(value: object, path: str, depth: int, max_depth: int) -> list[str]:
    if isinstance(value, dict):
        return extract_field_paths(value, path, depth, max_depth)
    if isinstance(value, list) and value and isinstance(value[0], dict):
        # Array elements are sampled through their first item.
        return extract_field_paths(value[0], path + "[0]", depth, max_depth)
    return []


def resolve_path_fields(path: str, root: object) -> list[str]:
    """Return the field names available after walking *path* through *root*.

    Segments are split on ``.``; ``key[]`` steps into the first element of
    the array under ``key``.  Any step that cannot be followed yields an
    empty list.  Array-valued fields are also offered as ``key[]`` and
    ``key[0]``.
    """
    current = root
    for segment in path.split("."):
        if not segment:
            continue
        if segment.endswith("[]"):
            key = segment[:-2]
            if not isinstance(current, dict):
                return []
            arr = current.get(key)
            if not isinstance(arr, list) or not arr:
                return []
            current = arr[0]
        else:
            if not isinstance(current, dict) or segment not in current:
                return []
            current = current[segment]

    if not isinstance(current, dict):
        return []
    fields: list[str] = []
    for key, sub in current.items():
        fields.append(key)
        if isinstance(sub, list):
            fields.append(key + "[]")
            fields.append(key + "[0]")
    return fields


def contextual_completions(text: str, root: object) -> list[str]:
    """Completions for a partially typed path.

    ``.users[].`` lists every field of a user; ``.users[].na`` lists the
    fields starting with ``na``.  Input without a dot gets nothing.
    """
    if text.endswith("."):
        return [text + field for field in resolve_path_fields(text[:-1], root)]

    if "." in text:
        base, partial = text.rsplit(".", 1)
        partial = partial.lower()
        return [
            f"{base}.{field}"
            for field in resolve_path_fields(base, root)
            if field.lower().startswith(partial)
        ]
    return []


def build_suggestions(text: str, root: object | None) -> list[str]:
    """Static vocabulary, then schema paths, then completions for *text*."""
    suggestions = list(BASE_SUGGESTIONS)
    if root is not None:
        suggestions.extend(extract_field_paths(root))
        if text:
            suggestions.extend(contextual_completions(text, root))
    return _dedupe(suggestions)


def match_suggestions(suggestions: list[str], text: str) -> list[str]:
    """Keep suggestions containing *text*, ignoring case.  Empty text keeps all."""
    if not text:
        return list(suggestions)
    needle = text.lower()
    return [s for s in suggestions if needle in s.lower()]


def _dedupe(items: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out
