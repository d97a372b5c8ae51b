"""
Best-effort preview of an itinerary whose JSON text is still streaming in.

`preview_itinerary` is a pure function of the accumulated text: it first tries
a full parse, then falls back to a first-match title lookup and to closing
the open containers of the `days` array. It never raises.
"""

import json
import re
from typing import Any

TITLE_PATTERN = re.compile(r'"title"\s*:\s*"([^"]+)"')
DAYS_MARKER = re.compile(r'"days"\s*:\s*\[')

_CLOSERS = {"{": "}", "[": "]"}


def extract_title(text: str) -> str | None:
    match = TITLE_PATTERN.search(text)
    return match.group(1) if match else None


def close_fragment(fragment: str) -> str | None:
    """
    Append the closers needed to balance `fragment`, which must start with
    the `[` of the days array. Text after the array closes is dropped.
    Returns None when the fragment ends inside a string value.
    """
    stack: list[str] = []
    in_string = False
    escaped = False
    end = len(fragment)

    for idx, ch in enumerate(fragment):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(ch)
        elif ch in "}]":
            if stack:
                stack.pop()
            if not stack:
                end = idx + 1
                break

    if in_string:
        return None

    body = fragment[:end].rstrip()
    if body.endswith(","):
        body = body[:-1]
    return body + "".join(_CLOSERS[opener] for opener in reversed(stack))


def extract_days(text: str) -> list | None:
    """Return the parseable prefix of the days array, or None if it cannot be repaired yet."""
    match = DAYS_MARKER.search(text)
    if not match:
        return None

    closed = close_fragment(text[match.end() - 1 :])
    if closed is None:
        return None

    try:
        parsed = json.loads(f'{{"days": {closed}}}')
    except ValueError:
        return None
    days = parsed.get("days")
    return days if isinstance(days, list) else None


def preview_itinerary(text: str) -> dict[str, Any] | None:
    """
    Derive a renderable partial itinerary from possibly-truncated JSON text.

    Returns the parsed object when the text is complete, a dict with `title`
    and/or `days` when something could be recovered, or None when nothing
    can be shown yet.
    """
    if not text:
        return None

    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        return parsed

    partial: dict[str, Any] | None = None

    title = extract_title(text)
    if title is not None:
        partial = {"title": title, "days": []}

    days = extract_days(text)
    if days is not None:
        partial = partial or {}
        partial["days"] = days

    return partial


class StreamingPreview:
    """
    Holds the last successfully derived partial view across chunks.
    A chunk that cannot be repaired keeps the previous title and days.
    """

    def __init__(self) -> None:
        self.text = ""
        self.title: str | None = None
        self.days: list | None = None
        self.complete: dict[str, Any] | None = None

    def update(self, text: str) -> dict[str, Any] | None:
        self.text = text
        try:
            parsed = json.loads(text) if text else None
        except ValueError:
            parsed = None

        if isinstance(parsed, dict):
            self.complete = parsed
            return parsed

        title = extract_title(text)
        if title is not None:
            self.title = title
        days = extract_days(text)
        if days is not None:
            self.days = days
        return self.snapshot()

    def snapshot(self) -> dict[str, Any] | None:
        if self.complete is not None:
            return self.complete
        if self.title is None and self.days is None:
            return None
        view: dict[str, Any] = {"days": list(self.days or [])}
        if self.title is not None:
            view["title"] = self.title
        return view
