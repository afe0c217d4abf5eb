"""Command-line access to the persisted archiving state.

Run as ``wayback-autosave <command>`` (or ``python -m wayback_autosave``)::

    wayback-autosave status
    wayback-autosave toggle
    wayback-autosave enqueue https://example.org/a https://example.org/b
    wayback-autosave drain
    wayback-autosave visit https://www.reddit.com/r/x/comments/abc123/ [--html page.html]
    wayback-autosave save https://example.org/page

All commands operate on the Redis store named by ``AUTOSAVE_REDIS_URL``, so
they see and modify the same queue, cooldown records and enabled flag as a
long-running monitor.

Exit codes:
    0 — Success.
    1 — The command ran but failed (drain/save failures, fetch errors).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import httpx

from wayback_autosave.archiver.app import Archiver
from wayback_autosave.archiver.dom import HostPage
from wayback_autosave.config.settings import Settings, get_settings
from wayback_autosave.core.exceptions import WaybackAutosaveError
from wayback_autosave.core.logging_config import configure_logging
from wayback_autosave.storage.redis_store import RedisStore

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wayback-autosave",
        description="Inspect and drive the Wayback Machine auto-archiving queue.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show the enabled flag, last-seen item and queue.")
    sub.add_parser("toggle", help="Enable or disable auto-archiving.")

    enqueue = sub.add_parser("enqueue", help="Add URLs to the archive queue.")
    enqueue.add_argument("urls", nargs="+")

    sub.add_parser("drain", help="Submit every queued URL once.")

    visit = sub.add_parser("visit", help="Evaluate one navigation to URL.")
    visit.add_argument("url")
    visit.add_argument(
        "--html",
        type=Path,
        default=None,
        help="Read the page markup from this file instead of fetching URL.",
    )

    save = sub.add_parser("save", help="Save one URL immediately, bypassing the queue.")
    save.add_argument("url")
    return parser


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


async def _fetch_markup(url: str, settings: Settings) -> str:
    async with httpx.AsyncClient(
        timeout=settings.request_timeout,
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent},
    ) as client:
        response = await client.get(url)
        response.raise_for_status()
        return response.text


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    store = RedisStore.from_url(settings.redis_url, namespace=settings.store_namespace)
    archiver = Archiver(store, settings)
    try:
        await archiver.context.initialize()

        if args.command == "status":
            _print_json(await archiver.status())
            return 0

        if args.command == "toggle":
            enabled = await archiver.toggle()
            print("enabled" if enabled else "disabled")
            return 0

        if args.command == "enqueue":
            for url in args.urls:
                added = await archiver.queue.enqueue_if_absent(url)
                print(f"{'queued' if added else 'already queued'}: {url}")
            return 0

        if args.command == "drain":
            result = await archiver.worker.process_queue()
            if result is None:
                print("nothing to drain")
                return 0
            _print_json({
                "succeeded": result.succeeded,
                "failed": result.failed,
                "discarded": result.discarded,
            })
            return 1 if result.failed else 0

        if args.command == "visit":
            if args.html is not None:
                markup = args.html.read_text(encoding="utf-8")
            else:
                markup = await _fetch_markup(args.url, settings)
            page = HostPage(args.url, markup)
            archiver.monitor.attach(page, start_timers=False)
            candidates = await archiver.monitor.evaluate()
            await archiver.monitor.join()
            _print_json({"queued": candidates or []})
            return 0

        if args.command == "save":
            outcome = await archiver.save_now(args.url)
            if outcome is None:
                return 1
            print(outcome.label)
            return 0 if outcome.ok else 1

        return 1
    finally:
        await archiver.aclose()
        await store.aclose()


def main(argv: list[str] | None = None) -> int:
    """Entry point of the ``wayback-autosave`` console script."""
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        return asyncio.run(_run(args, settings))
    except (WaybackAutosaveError, httpx.HTTPError, OSError) as exc:
        logger.error("autosave: %s failed: %s", args.command, exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
