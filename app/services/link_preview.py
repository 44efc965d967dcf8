from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

_USER_AGENT = "Mozilla/5.0 (compatible; LinkPreviewBot/1.0)"
_MAX_REDIRECTS = 5


def _meta(attr: str, name: str) -> re.Pattern[str]:
    return re.compile(rf"<meta\s+{attr}=[\"']{re.escape(name)}[\"']\s+content=[\"']([^\"']+)[\"']", re.IGNORECASE)


_TITLE_RES = [
    _meta("property", "og:title"),
    _meta("name", "twitter:title"),
    re.compile(r"<title>([^<]+)</title>", re.IGNORECASE),
]
_DESCRIPTION_RES = [
    _meta("property", "og:description"),
    _meta("name", "twitter:description"),
    _meta("name", "description"),
]
_IMAGE_RES = [
    _meta("property", "og:image"),
    _meta("name", "twitter:image"),
    _meta("property", "og:image:secure_url"),
]


@dataclass(slots=True)
class LinkPreview:
    title: str | None
    description: str | None
    image: str | None


def _first_match(patterns: list[re.Pattern[str]], html: str) -> str | None:
    for pattern in patterns:
        m = pattern.search(html)
        if m:
            value = m.group(1).strip()
            return value or None
    return None


def _truncate(value: str | None, limit: int) -> str | None:
    if not value:
        return None
    return value[:limit]


def parse_link_preview(url: str, html: str) -> LinkPreview:
    title = _first_match(_TITLE_RES, html)
    description = _first_match(_DESCRIPTION_RES, html)
    image = _first_match(_IMAGE_RES, html)

    if image and not image.startswith("http"):
        parts = urlsplit(url)
        if parts.scheme and parts.netloc:
            image = urljoin(f"{parts.scheme}://{parts.netloc}", image)
        else:
            image = None

    return LinkPreview(
        title=_truncate(title, 200),
        description=_truncate(description, 500),
        image=_truncate(image, 500),
    )


async def fetch_link_preview(url: str) -> LinkPreview | None:
    """Best-effort metadata fetch; any failure means no preview."""
    try:
        async with httpx.AsyncClient(
            timeout=settings.link_preview_timeout_seconds,
            follow_redirects=True,
            max_redirects=_MAX_REDIRECTS,
            headers={"User-Agent": _USER_AGENT},
        ) as client:
            resp = await client.get(url)
            resp.raise_for_status()
            html = resp.text
    except Exception:
        logger.warning("Link preview fetch failed", extra={"context": {"url": url}}, exc_info=True)
        return None

    if not isinstance(html, str) or not html:
        return None
    return parse_link_preview(url, html)
