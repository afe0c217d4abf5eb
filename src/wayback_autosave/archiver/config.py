"""Constants for the archiving pipeline.

Defines storage keys, HTTP classification bounds, and the site-markup
selectors the content discoverer and the navigation monitor rely on.

The selectors describe two generations of the source site's markup (the
``shreddit-*`` web components and the classic ``div.thing`` layout) and are
expected to drift as the site changes.  Extend the tuples here rather than
adding branches to :mod:`~wayback_autosave.archiver.discovery`.

Timing and host conventions are runtime-tunable and live in
:class:`~wayback_autosave.config.settings.Settings` instead.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Storage keys
# ---------------------------------------------------------------------------

KEY_ENABLED: str = "_enabled"
"""Key of the user-togglable enabled flag (bool)."""

KEY_ARCHIVE_QUEUE: str = "_archive_queue"
"""Key of the archive queue (list of ``{"url", "added_at"}`` objects)."""

KEY_LAST_PROCESSED: str = "_last_processed_url"
"""Key of the last-seen pointer (canonical identity or ``""``)."""

COOLDOWN_KEY_PREFIX: str = "ts_"
"""Prefix of per-URL cooldown keys; the full key is ``ts_<url>``."""

# ---------------------------------------------------------------------------
# Save request classification
# ---------------------------------------------------------------------------

SUCCESS_STATUS_MIN: int = 200
"""Lowest HTTP status treated as a successful save (inclusive)."""

SUCCESS_STATUS_MAX: int = 400
"""Upper bound of successful statuses (exclusive): 2xx and 3xx succeed."""

OVERLOAD_STATUS: int = 503
"""Status the save endpoint returns when it sheds load; logged distinctly."""

URL_QUOTE_SAFE: str = "!~*'()"
"""Characters left unescaped when the target URL is appended to the endpoint.

Matches the unreserved set of ECMAScript ``encodeURIComponent`` so that the
target becomes exactly one path segment."""

# ---------------------------------------------------------------------------
# Site markup
# ---------------------------------------------------------------------------

CONTAINER_SELECTOR: str = "shreddit-post, div.thing"
"""Element wrapping one item (post) on both the new and the classic layout."""

CONTENT_SELECTORS: tuple[str, ...] = (
    'a[data-click-id="body"]',
    "a.title",
    'div[data-test-id="post-content"] a',
    ".expando .md a",
    "div[data-media-container] a",
    "shreddit-player[src]",
    "iframe[src]",
    "a.videoLink",
)
"""Elements inside a container whose ``src``/``href`` may point at external content."""

INNER_MEDIA_SELECTOR: str = "video[poster], img[src]"
"""Media element inside a site-relative link whose host names the content origin."""

REVEAL_SELECTORS: tuple[str, ...] = (
    ".nsfw-see-more button",
    'div[data-testid="post-content"] button',
    'button[data-testid="nsfw-button-ok"]',
)
"""Controls that reveal interstitially hidden content when clicked."""

ARCHIVABLE_SCHEMES: frozenset[str] = frozenset({"http", "https"})
"""URL schemes the archive accepts."""
