"""Classification of raw hrefs into web, filesystem and same-file anchor links."""

from __future__ import annotations

import re
from urllib.parse import unquote, urlsplit

from .models import AnchorLink, ClassifiedLink, FilesystemLink, WebLink

# single-letter schemes are Windows drive letters, not URLs
_SCHEME = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.-]+):")

WEB_SCHEMES = frozenset({"http", "https"})


def _split_fragment(href: str) -> tuple[str, str | None]:
    index = 0
    while True:
        index = href.find("#", index)
        if index == -1:
            return href, None
        if index > 0 and href[index - 1] == "\\":
            index += 1
            continue
        return href[:index], href[index + 1 :]


def classify(href: str) -> ClassifiedLink:
    """Classify ``href`` without touching the network or the filesystem."""
    href = href.strip()
    if href.startswith("#"):
        return AnchorLink(fragment=href[1:])

    match = _SCHEME.match(href)
    if match:
        scheme = match.group("scheme").lower()
        if scheme == "file":
            parts = urlsplit(href)
            return FilesystemLink(path=unquote(parts.path), fragment=parts.fragment or None)
        return WebLink(url=href)

    path, fragment = _split_fragment(href)
    return FilesystemLink(path=path.replace("\\#", "#"), fragment=fragment)


def to_href(link: ClassifiedLink) -> str:
    """Serialise a classified link back into href text."""
    if isinstance(link, WebLink):
        return link.url
    if isinstance(link, AnchorLink):
        return f"#{link.fragment}"
    path = link.path.replace("#", "\\#")
    if _SCHEME.match(path) or (not path and link.fragment is not None):
        # keep `name:rest` from turning into a URL and `#frag` into an anchor
        path = f"./{path}"
    if link.fragment is None:
        return path
    return f"{path}#{link.fragment}"


def is_web_scheme(url: str) -> bool:
    match = _SCHEME.match(url)
    return bool(match) and match.group("scheme").lower() in WEB_SCHEMES


__all__ = ["WEB_SCHEMES", "classify", "is_web_scheme", "to_href"]
