"""HTML and XML string helpers for Pegasus.

Functions:
    escape_html: Escape text for inclusion in HTML or XML.
    join_root_url: Join a base URL with a path.
    absolutize_html_urls: Convert root-relative URLs to absolute in HTML.
"""

from __future__ import annotations

import re

from markupsafe import escape

_URL_ATTR_RE = re.compile(
    r'(?P<prefix>\b(?:href|src|action)=["\'])(?P<url>[^"\']+)(?P<suffix>["\'])'
)

# Left untouched when absolutizing
_URL_SKIP_PREFIXES = (
    "http://",
    "https://",
    "//",
    "mailto:",
    "tel:",
    "#",
    "javascript:",
    "data:",
)


def escape_html(text: str) -> str:
    """Escape special characters so text is safe inside HTML or XML.

    Examples:
        >>> escape_html('Tom & "Jerry" <3')
        'Tom &amp; &#34;Jerry&#34; &lt;3'
    """
    return str(escape(text))


def join_root_url(root_url: str, path: str) -> str:
    """Join a root URL and a path without doubling slashes.

    Examples:
        >>> join_root_url('https://example.github.io/blog/', '/about/')
        'https://example.github.io/blog/about/'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def absolutize_html_urls(html: str, root_url: str) -> str:
    """Rewrite root-relative href/src/action URLs against root_url.

    External URLs, anchors, and mailto/tel/javascript/data links are kept.

    Args:
        html: HTML content to process.
        root_url: Base URL to prepend to relative paths.

    Returns:
        HTML with relative URLs converted to absolute.
    """
    if not root_url:
        return html

    def repl(match: re.Match) -> str:
        url = match.group("url")
        if not url or url.startswith(_URL_SKIP_PREFIXES):
            return match.group(0)
        absolute = join_root_url(root_url, url)
        return f"{match.group('prefix')}{absolute}{match.group('suffix')}"

    return _URL_ATTR_RE.sub(repl, html)
