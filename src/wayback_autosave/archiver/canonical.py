"""Canonical identity derivation for navigated URLs.

Maps any URL the user may land on to either ``None`` (not an archivable
item) or a normalized identity string.  Two presentations of the same item
— different slug, mobile vs. desktop host, tracking query parameters,
fragment, short link — collapse to one identity::

    https://www.reddit.com/r/test/comments/abc123/some-title/?utm_source=x
    https://old.reddit.com/comments/abc123
    https://redd.it/abc123
        → https://old.reddit.com/comments/abc123

The mapping is pure and total: it never raises, whatever it is given.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import urlsplit

_ITEM_PATH_RE = re.compile(r"/(?:comments|gallery)/([a-z0-9]+)", re.IGNORECASE)
_BAD_HOST_RE = re.compile(r"[\s<>\\^|]")

DEFAULT_CANONICAL_BASE: str = "https://old.reddit.com"
DEFAULT_SHORT_LINK_HOSTS: tuple[str, ...] = ("redd.it",)


class Canonicalizer:
    """Callable that derives canonical item identities.

    Args:
        canonical_base: Scheme and host every identity is built on.  A
            trailing slash is ignored.
        short_link_hosts: Hosts whose entire path is an item id.
    """

    def __init__(
        self,
        canonical_base: str = DEFAULT_CANONICAL_BASE,
        short_link_hosts: Iterable[str] = DEFAULT_SHORT_LINK_HOSTS,
    ) -> None:
        self._base = canonical_base.rstrip("/")
        self._short_hosts = frozenset(h.lower() for h in short_link_hosts)

    def __call__(self, raw_url: object) -> str | None:
        return self.canonicalize(raw_url)

    def canonicalize(self, raw_url: object) -> str | None:
        """Return the canonical identity of *raw_url*, or ``None``.

        Args:
            raw_url: The navigated URL.  Non-string input yields ``None``.

        Returns:
            ``"<canonical_base>/comments/<id>"`` for a recognised item URL,
            ``None`` for anything else (including unparseable input and a
            short link with an empty path).
        """
        if not isinstance(raw_url, str):
            return None
        try:
            parts = urlsplit(raw_url.strip())
            hostname = parts.hostname
            _ = parts.port  # out-of-range or non-numeric ports raise ValueError
        except ValueError:
            return None
        if not parts.scheme or not hostname or _BAD_HOST_RE.search(hostname):
            return None

        if hostname in self._short_hosts:
            item_id = parts.path.strip("/")
            return f"{self._base}/comments/{item_id}" if item_id else None

        match = _ITEM_PATH_RE.search(parts.path)
        if match is None:
            return None
        return f"{self._base}/comments/{match.group(1)}"


_default = Canonicalizer()


def canonicalize(raw_url: object) -> str | None:
    """Canonicalize with the default site conventions.

    See :meth:`Canonicalizer.canonicalize`.
    """
    return _default.canonicalize(raw_url)
