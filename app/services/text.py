from __future__ import annotations

import re


_HASHTAG_RE = re.compile(r"#(\w+)")
_MENTION_RE = re.compile(r"@(\w+)")


def _unique_lower(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        key = value.lower()
        if key not in seen:
            seen.add(key)
            out.append(key)
    return out


def extract_hashtags(text: str | None) -> list[str]:
    if not text:
        return []
    return _unique_lower(_HASHTAG_RE.findall(text))


def extract_mentions(text: str | None) -> list[str]:
    if not text:
        return []
    return _unique_lower(_MENTION_RE.findall(text))
