from __future__ import annotations

import re


_BLOCK_TAG_RES = [
    re.compile(rf"<{tag}\b[^<]*(?:(?!</{tag}>)<[^<]*)*</{tag}>", re.IGNORECASE | re.DOTALL)
    for tag in ("script", "iframe", "object", "embed", "style")
]
_SELF_CLOSING_RES = [
    re.compile(rf"<{tag}\b[^>]*/?>", re.IGNORECASE) for tag in ("script", "iframe", "object", "embed", "link")
]
_EVENT_HANDLER_RE = re.compile(r"\son\w+\s*=\s*(\"[^\"]*\"|'[^']*')", re.IGNORECASE)
_JS_PROTOCOL_RE = re.compile(r"javascript\s*:", re.IGNORECASE)
_DATA_HTML_RE = re.compile(r"data\s*:\s*text/html", re.IGNORECASE)
_DATA_PROTOCOL_RE = re.compile(r"data\s*:", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")


def sanitize_text(value: str | None) -> str:
    """Strip active HTML content and escape what remains of the markup."""
    if not value:
        return ""
    text = str(value)
    for pattern in _BLOCK_TAG_RES:
        text = pattern.sub("", text)
    for pattern in _SELF_CLOSING_RES:
        text = pattern.sub("", text)
    text = _EVENT_HANDLER_RE.sub("", text)
    text = _JS_PROTOCOL_RE.sub("", text)
    text = _DATA_HTML_RE.sub("", text)
    text = text.replace("<", "&lt;").replace(">", "&gt;")
    return text.strip()


def sanitize_url(value: str | None) -> str:
    if not value:
        return ""
    url = _TAG_RE.sub("", str(value))
    url = _JS_PROTOCOL_RE.sub("", url)
    url = _DATA_PROTOCOL_RE.sub("", url)
    url = url.strip()
    if "://" in url and not url.lower().startswith(("http://", "https://")):
        return ""
    return url


def sanitize_optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    return sanitize_text(value) or None


def sanitize_optional_url(value: str | None) -> str | None:
    if value is None:
        return None
    return sanitize_url(value) or None
