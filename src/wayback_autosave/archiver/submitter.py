"""Submission of URLs to the Wayback Machine save endpoint.

:class:`SubmissionWorker` issues exactly one save request per call and
classifies the response; it never retries and never raises.  Retrying is
the queue's job: a failed URL simply stays queued until the next drain.

**Classification**:

- HTTP 2xx and 3xx — success (redirects are not followed; the save
  endpoint answers a completed capture with a redirect to the snapshot).
- HTTP 4xx and 5xx — failure.  503 is how the endpoint sheds load and is
  logged as such.
- Timeouts and network errors — failure.

**Throttling**: :meth:`SubmissionWorker.process_queue` drains sequentially,
one outstanding request at a time, and only one drain runs at a time
(guarded by the context's drain permit), which keeps the request rate well
under the archive's abuse thresholds.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from wayback_autosave.archiver.config import (
    OVERLOAD_STATUS,
    SUCCESS_STATUS_MAX,
    SUCCESS_STATUS_MIN,
    URL_QUOTE_SAFE,
)
from wayback_autosave.archiver.context import ArchiverContext
from wayback_autosave.archiver.cooldown import CooldownLedger
from wayback_autosave.archiver.notifications import Notifier, notify
from wayback_autosave.archiver.queue import ArchiveQueue, DrainResult
from wayback_autosave.core.exceptions import ConfigurationError, SubmissionError
from wayback_autosave.core.logging_config import bind_run_id

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT: str = "https://web.archive.org/save/"
DEFAULT_TIMEOUT: float = 60.0
DEFAULT_USER_AGENT: str = "WaybackAutosave/0.1 (+navigation-driven archiver)"

_FORM_HEADERS: dict[str, str] = {"Content-Type": "application/x-www-form-urlencoded"}


@dataclass
class SaveOutcome:
    """Classified result of one save request.

    Attributes:
        url: The target URL.
        ok: ``True`` if the archive accepted the request.
        status_code: HTTP status, or ``None`` when no response arrived.
        error: ``"timeout"``, a transport error description, ``"HTTP <n>"``,
            or ``None`` on success.
    """

    url: str
    ok: bool
    status_code: int | None = None
    error: str | None = None

    @property
    def label(self) -> str:
        """Short status label for notifications."""
        if self.ok:
            return "Saved!"
        if self.error == "timeout":
            return "Timeout"
        if self.status_code is not None:
            return f"HTTP {self.status_code}"
        return "Error"


class SubmissionWorker:
    """Serialized consumer of the archive queue.

    Args:
        context: Shared pipeline state (enabled flag, drain permit).
        queue: The archive queue to drain.
        ledger: Cooldown ledger updated for each accepted URL.
        notifier: Receives the batch summary after each drain.
        http_client: Optional injected :class:`httpx.AsyncClient`.  It is
            used as-is and never closed by the worker.
        endpoint: Save API prefix the quoted target URL is appended to.
        method: ``"GET"`` or ``"POST"``.
        timeout: Per-request timeout in seconds.
        user_agent: ``User-Agent`` header value.
        summary_duration: Display duration of the batch summary.
    """

    def __init__(
        self,
        context: ArchiverContext,
        queue: ArchiveQueue,
        ledger: CooldownLedger,
        notifier: Notifier | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        endpoint: str = DEFAULT_ENDPOINT,
        method: str = "GET",
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        summary_duration: float = 5.0,
    ) -> None:
        method = method.upper()
        if method not in {"GET", "POST"}:
            raise ConfigurationError(f"unsupported submit method {method!r}")
        self._context = context
        self._queue = queue
        self._ledger = ledger
        self._notifier = notifier
        self._http_client = http_client
        self._endpoint = endpoint
        self._method = method
        self._timeout = timeout
        self._user_agent = user_agent
        self._summary_duration = summary_duration

    # ------------------------------------------------------------------
    # Single submissions
    # ------------------------------------------------------------------

    def save_url(self, url: str) -> str:
        """Return the save API URL for *url*."""
        return f"{self._endpoint}{quote(url, safe=URL_QUOTE_SAFE)}"

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=False,
            headers={"User-Agent": self._user_agent},
        ) as client:
            yield client

    async def _request(self, client: httpx.AsyncClient, url: str, method: str) -> httpx.Response:
        target = self.save_url(url)
        try:
            if method == "POST":
                return await client.post(
                    target,
                    content=b"",
                    headers=_FORM_HEADERS,
                    timeout=self._timeout,
                    follow_redirects=False,
                )
            return await client.get(target, timeout=self._timeout, follow_redirects=False)
        except httpx.TimeoutException as exc:
            raise SubmissionError(
                f"submit: timeout after {self._timeout:.0f}s", url=url, timed_out=True
            ) from exc
        except httpx.HTTPError as exc:
            raise SubmissionError(f"submit: request error: {exc}", url=url) from exc

    async def _submit_with(
        self,
        client: httpx.AsyncClient,
        url: str,
        method: str | None = None,
    ) -> SaveOutcome:
        try:
            response = await self._request(client, url, method or self._method)
        except SubmissionError as exc:
            logger.warning("submit: %s failed: %s", url, exc)
            return SaveOutcome(url=url, ok=False, error="timeout" if exc.timed_out else str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.warning("submit: unexpected error for %s: %s", url, exc)
            return SaveOutcome(url=url, ok=False, error=f"unexpected error: {exc}")

        status = response.status_code
        if SUCCESS_STATUS_MIN <= status < SUCCESS_STATUS_MAX:
            logger.info("submit: archived %s (HTTP %d)", url, status)
            return SaveOutcome(url=url, ok=True, status_code=status)

        if status == OVERLOAD_STATUS:
            logger.warning("submit: archive overloaded (HTTP 503) for %s", url)
        else:
            logger.warning("submit: HTTP %d for %s", status, url)
        return SaveOutcome(url=url, ok=False, status_code=status, error=f"HTTP {status}")

    async def submit_detailed(self, url: str, method: str | None = None) -> SaveOutcome:
        """Submit *url* once and return the classified outcome.  Never raises."""
        async with self._client() as client:
            return await self._submit_with(client, url, method)

    async def submit(self, url: str) -> bool:
        """Submit *url* once.  Returns ``True`` on success; never raises."""
        return (await self.submit_detailed(url)).ok

    # ------------------------------------------------------------------
    # Queue drain
    # ------------------------------------------------------------------

    async def process_queue(self) -> DrainResult | None:
        """Drain the archive queue once.

        No-op (returns ``None``) when another drain holds the permit, when
        archiving is disabled, or when the queue is empty.  Storage errors
        abort the drain and are logged; the permit is always released.

        Returns:
            The :class:`~wayback_autosave.archiver.queue.DrainResult`, or
            ``None`` when nothing ran.
        """
        with self._context.drain_permit.hold() as acquired:
            if not acquired:
                return None
            bind_run_id("drain")
            try:
                if not await self._context.is_enabled():
                    return None
                pending = await self._queue.size()
                if pending == 0:
                    return None

                logger.info("autosave: starting batch of %d items", pending)
                async with self._client() as client:

                    async def _submit(url: str) -> bool:
                        return (await self._submit_with(client, url)).ok

                    result = await self._queue.drain_batch(
                        _submit, on_success=self._ledger.record_success
                    )
            except Exception:  # noqa: BLE001
                logger.exception("autosave: queue drain aborted")
                return None

        logger.info(
            "autosave: batch complete. %d OK, %d failed, %d discarded",
            len(result.succeeded),
            len(result.failed),
            result.discarded,
        )
        notify(
            self._notifier,
            f"Archive complete: {len(result.succeeded)} OK, {len(result.failed)} failed.",
            self._summary_duration,
        )
        return result
