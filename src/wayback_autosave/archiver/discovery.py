"""External content discovery inside one item container.

Given the element wrapping a post, yields the URLs of the external content
it references — the outbound link, embedded players and iframes, gallery
media — so that they can be archived alongside the post itself.

This is a heuristic, layout-coupled allowlist, not a general extractor: the
matching rules are the selector tuples in
:mod:`wayback_autosave.archiver.config`, and only elements inside the given
container are considered so that page chrome never leaks in.

Filtering rules, applied in order:

1. Candidate value is the element's ``src`` attribute resolved against the
   page URL (as a browser resolves ``element.src``), else its raw ``href``.
2. A site-relative ``<a href="/...">`` that wraps a ``video[poster]`` or
   ``img[src]`` is rebuilt against the registered domain of that media's
   host (``media.example-cdn.com`` → ``https://example-cdn.com/<href>``);
   media hosts usually serve the watch page under the same path.
3. Only ``http``/``https`` URLs are kept.
4. URLs whose host is a self host (or a subdomain of one) are dropped.
5. Duplicates are dropped; the first occurrence wins.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from urllib.parse import urljoin, urlsplit

from bs4 import Tag

from wayback_autosave.archiver.config import (
    ARCHIVABLE_SCHEMES,
    CONTENT_SELECTORS,
    INNER_MEDIA_SELECTOR,
)

logger = logging.getLogger(__name__)

DEFAULT_SELF_HOSTS: tuple[str, ...] = ("reddit.com", "redd.it")


def _registered_domain(hostname: str) -> str:
    """Return the last two labels of *hostname* (``a.b.example.com`` → ``example.com``)."""
    return ".".join(hostname.split(".")[-2:])


def _host_matches(hostname: str, domains: Iterable[str]) -> bool:
    return any(hostname == d or hostname.endswith(f".{d}") for d in domains)


def _resolve_src(src: str, base_url: str) -> str | None:
    if src.startswith("//") and not base_url:
        return f"https:{src}"
    try:
        return urljoin(base_url, src)
    except ValueError:
        return None


class ContentDiscoverer:
    """Extracts external content URLs from an item container.

    Args:
        self_hosts: Registered domains of the source site.  URLs on these
            hosts or their subdomains are never yielded.
        selectors: CSS selectors of candidate elements.  Defaults to
            :data:`~wayback_autosave.archiver.config.CONTENT_SELECTORS`.
    """

    def __init__(
        self,
        self_hosts: Iterable[str] = DEFAULT_SELF_HOSTS,
        selectors: Iterable[str] = CONTENT_SELECTORS,
    ) -> None:
        self._self_hosts = tuple(h.lower() for h in self_hosts)
        self._selector = ", ".join(selectors)

    def extract_urls(self, container: Tag, base_url: str = "") -> Iterator[str]:
        """Yield each distinct external content URL found inside *container*.

        The returned iterator is single-pass.

        Args:
            container: Element wrapping a single item.
            base_url: URL of the page holding *container*.  Relative and
                protocol-relative ``src`` values are resolved against it.
                Without one, protocol-relative values get ``https``.

        Yields:
            Absolute ``http(s)`` URLs not hosted on the source site.
        """
        seen: set[str] = set()
        for element in container.select(self._selector):
            candidate = self._candidate_url(element, base_url)
            if candidate is None or candidate in seen:
                continue
            if not self._is_archivable(candidate):
                continue
            seen.add(candidate)
            yield candidate

    def _candidate_url(self, element: Tag, base_url: str) -> str | None:
        href = element.get("href")
        src = element.get("src")
        if isinstance(src, str) and src.strip():
            candidate = _resolve_src(src.strip(), base_url)
        else:
            candidate = " ".join(href) if isinstance(href, list) else href

        if element.name == "a" and isinstance(href, str) and href.startswith("/"):
            rebuilt = self._rebuild_from_media(element, href)
            if rebuilt is not None:
                candidate = rebuilt
        return candidate or None

    def _rebuild_from_media(self, anchor: Tag, href: str) -> str | None:
        media = anchor.select_one(INNER_MEDIA_SELECTOR)
        if media is None:
            return None
        source = media.get("poster") or media.get("src")
        if not isinstance(source, str):
            return None
        try:
            hostname = urlsplit(source).hostname
        except ValueError:
            return None
        if not hostname:
            return None
        rebuilt = f"https://{_registered_domain(hostname)}{href}"
        logger.debug("discovery: constructed %s from media host %s", rebuilt, hostname)
        return rebuilt

    def _is_archivable(self, url: str) -> bool:
        try:
            parts = urlsplit(url)
            hostname = parts.hostname
        except ValueError:
            return False
        if parts.scheme.lower() not in ARCHIVABLE_SCHEMES or not hostname:
            return False
        return not _host_matches(hostname, self._self_hosts)
