"""Host page collaborator: an observable document and its navigation/click hooks.

The pipeline never owns the page it watches; it only needs

- read-only CSS queries against a container (content discovery),
- a way to learn that the document changed (bounded waits for content the
  page renders asynchronously),
- a signal that the location may have changed (history API calls and
  back/forward navigation),
- a capture-style click hook (reveal buttons).

:class:`LiveDocument` wraps a BeautifulSoup tree and notifies observers after
each mutation made through its methods — the role a DOM ``MutationObserver``
plays in a browser.  :class:`HostPage` pairs a document with a location and
dispatches navigation and click events to registered listeners.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

_PARSER = "html.parser"

MutationCallback = Callable[[], None]
NavigationListener = Callable[[str], None]
ClickListener = Callable[[Tag], None]


# ---------------------------------------------------------------------------
# Observable document
# ---------------------------------------------------------------------------


class Subscription:
    """Handle returned by :meth:`LiveDocument.observe`.

    Usable as a context manager; leaving the block disconnects the observer
    whether the block exits normally, by timeout or by exception.
    """

    def __init__(self, document: LiveDocument, callback: MutationCallback) -> None:
        self._document = document
        self._callback = callback
        self.active = True

    def disconnect(self) -> None:
        if self.active:
            self._document._remove_observer(self._callback)
            self.active = False

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect()


class LiveDocument:
    """BeautifulSoup document that reports its own mutations.

    Args:
        html: Initial markup.
    """

    def __init__(self, html: str = "") -> None:
        self._soup = BeautifulSoup(html, _PARSER)
        self._observers: list[MutationCallback] = []

    @property
    def soup(self) -> BeautifulSoup:
        return self._soup

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def select_one(self, selector: str) -> Tag | None:
        return self._soup.select_one(selector)

    def select(self, selector: str) -> list[Tag]:
        return list(self._soup.select(selector))

    # -- observation -----------------------------------------------------

    def observe(self, callback: MutationCallback) -> Subscription:
        """Call *callback* after every subsequent mutation until disconnected."""
        self._observers.append(callback)
        return Subscription(self, callback)

    def _remove_observer(self, callback: MutationCallback) -> None:
        try:
            self._observers.remove(callback)
        except ValueError:
            pass

    def _notify(self) -> None:
        for callback in list(self._observers):
            try:
                callback()
            except Exception:  # noqa: BLE001
                logger.exception("dom: mutation observer raised")

    # -- mutation --------------------------------------------------------

    def replace(self, html: str) -> None:
        """Replace the whole document, as a full page load does."""
        self._soup = BeautifulSoup(html, _PARSER)
        self._notify()

    def append_html(self, parent: Tag | str, html: str) -> list[Tag]:
        """Parse *html* and append its top-level nodes to *parent*.

        Args:
            parent: Target element, or a selector resolved against the document.
            html: Markup fragment to insert.

        Returns:
            The inserted top-level elements.

        Raises:
            LookupError: If *parent* is a selector that matches nothing.
        """
        if isinstance(parent, str):
            target = self.select_one(parent)
            if target is None:
                raise LookupError(f"no element matches {parent!r}")
        else:
            target = parent

        fragment = BeautifulSoup(html, _PARSER)
        inserted: list[Tag] = []
        for node in list(fragment.contents):
            target.append(node.extract())
            if isinstance(node, Tag):
                inserted.append(node)
        self._notify()
        return inserted

    def set_attribute(self, element: Tag, name: str, value: str) -> None:
        element[name] = value
        self._notify()


def closest(element: Tag | None, selector: str) -> Tag | None:
    """Return *element* or its nearest ancestor matching *selector*.

    Mirrors ``Element.closest``: the document root itself never matches.
    """
    node = element
    while isinstance(node, Tag) and not isinstance(node, BeautifulSoup):
        if node.css.match(selector):
            return node
        node = node.parent
    return None


async def wait_for_element(
    selector: str,
    context: LiveDocument,
    timeout: float = 5.0,
) -> Tag | None:
    """Wait until an element matching *selector* exists in *context*.

    Resolves immediately when a match is already present.  Otherwise an
    observer is registered on the document and re-runs the query after every
    mutation; the first match resolves the wait.  The observer is always
    disconnected before returning.

    Args:
        selector: CSS selector to wait for.
        context: Document to search and observe.
        timeout: Seconds to wait before giving up.

    Returns:
        The first matching element, or ``None`` after *timeout* seconds.
    """
    found = context.select_one(selector)
    if found is not None or timeout <= 0:
        return found

    loop = asyncio.get_running_loop()
    future: asyncio.Future[Tag] = loop.create_future()

    def _on_mutation() -> None:
        if future.done():
            return
        match = context.select_one(selector)
        if match is not None:
            future.set_result(match)

    with context.observe(_on_mutation):
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            logger.debug("dom: no %r after %.1fs", selector, timeout)
            return None


# ---------------------------------------------------------------------------
# Host page
# ---------------------------------------------------------------------------


class HostPage:
    """A single-page-app tab: current location, live document, event hooks.

    ``push_state``, ``replace_state`` and ``pop_state`` change the location
    and fire navigation listeners, as the history-API hook does in a
    browser.  ``load`` additionally replaces the document.

    Args:
        url: Initial location.
        html: Initial markup.
    """

    def __init__(self, url: str = "about:blank", html: str = "") -> None:
        self.url = url
        self.document = LiveDocument(html)
        self._navigation_listeners: list[NavigationListener] = []
        self._click_listeners: list[ClickListener] = []

    def add_navigation_listener(self, listener: NavigationListener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._navigation_listeners.append(listener)
        return lambda: _discard(self._navigation_listeners, listener)

    def add_click_listener(self, listener: ClickListener) -> Callable[[], None]:
        """Register a capture-phase click *listener*; returns its remover."""
        self._click_listeners.append(listener)
        return lambda: _discard(self._click_listeners, listener)

    def push_state(self, url: str) -> None:
        self.url = url
        self._dispatch_navigation()

    def replace_state(self, url: str) -> None:
        self.url = url
        self._dispatch_navigation()

    def pop_state(self, url: str) -> None:
        self.url = url
        self._dispatch_navigation()

    def load(self, url: str, html: str) -> None:
        """Full navigation: new location and new document."""
        self.url = url
        self.document.replace(html)
        self._dispatch_navigation()

    def click(self, target: Tag) -> None:
        """Deliver a click on *target* to every click listener."""
        for listener in list(self._click_listeners):
            try:
                listener(target)
            except Exception:  # noqa: BLE001
                logger.exception("dom: click listener raised")

    def _dispatch_navigation(self) -> None:
        for listener in list(self._navigation_listeners):
            try:
                listener(self.url)
            except Exception:  # noqa: BLE001
                logger.exception("dom: navigation listener raised")


def _discard(listeners: list, listener: object) -> None:
    try:
        listeners.remove(listener)
    except ValueError:
        pass
