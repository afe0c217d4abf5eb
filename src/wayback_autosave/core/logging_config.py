"""Structured logging configuration using structlog.

Call ``configure_logging()`` once at startup (the CLI does this before
building the :class:`~wayback_autosave.archiver.app.Archiver`).  Modules can
then use either the stdlib logging API or structlog directly:

Stdlib usage::

    import logging
    logger = logging.getLogger(__name__)
    logger.info("autosave: queued %s", url)

Structlog usage (richer context binding)::

    import structlog
    logger = structlog.get_logger(__name__)
    logger.info("autosave.batch_complete", succeeded=3, failed=1)

A ``run_id`` context variable is set by :func:`bind_run_id` at the start of
every pipeline invocation (navigation evaluation, interaction rescan, queue
drain) and merged into every log record emitted while that invocation runs,
so interleaved asyncio triggers can be told apart in the output.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextvars import ContextVar

import structlog
from structlog.types import EventDict, WrappedLogger

# ---------------------------------------------------------------------------
# Context variable: set per pipeline invocation, read by the log processor
# ---------------------------------------------------------------------------

run_id_var: ContextVar[str | None] = ContextVar("run_id", default=None)
"""Identifier of the pipeline invocation currently executing.

asyncio copies the context into every task it creates, so a value bound at
the top of a task is visible to everything that task awaits and nothing else.
"""


def bind_run_id(kind: str) -> str:
    """Generate and bind a fresh run ID for the current task.

    Args:
        kind: Short label of the pipeline phase (``"nav"``, ``"click"``,
            ``"drain"``) used as the ID prefix.

    Returns:
        The bound run ID, e.g. ``"drain-3f2a9c1e"``.
    """
    run_id = f"{kind}-{uuid.uuid4().hex[:8]}"
    run_id_var.set(run_id)
    return run_id


# ---------------------------------------------------------------------------
# Custom processors
# ---------------------------------------------------------------------------


_SECRET_SUBSTRINGS: frozenset[str] = frozenset({
    "authorization",
    "cookie",
    "password",
    "secret",
    "token",
})
"""Lower-cased substrings that identify event-dict keys whose values must be
redacted before the record reaches any renderer (e.g. a Redis URL password
or forwarded request headers)."""


def _redact_secrets(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Replace values of secret-bearing keys with a redaction marker.

    Scans top-level keys and one level of nested ``dict`` values (e.g.
    ``headers={...}``), matching case-insensitively.
    """
    redacted = "[REDACTED]"
    for key in list(event_dict.keys()):
        if any(secret in key.lower() for secret in _SECRET_SUBSTRINGS):
            event_dict[key] = redacted
            continue
        val = event_dict[key]
        if isinstance(val, dict):
            for nested_key in list(val.keys()):
                if any(secret in str(nested_key).lower() for secret in _SECRET_SUBSTRINGS):
                    val[nested_key] = redacted
    return event_dict


def _inject_run_id(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Add the current ``run_id`` to the event dict when one is bound."""
    rid = run_id_var.get()
    if rid is not None and "run_id" not in event_dict:
        event_dict["run_id"] = rid
    return event_dict


# ---------------------------------------------------------------------------
# Public configuration entry-point
# ---------------------------------------------------------------------------


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog and route stdlib logging through it.

    Below DEBUG verbosity the output is newline-delimited JSON; at DEBUG,
    structlog's ``ConsoleRenderer`` produces coloured human-readable lines.

    Standard fields added to every record: ``timestamp`` (ISO 8601),
    ``level``, ``logger``, ``event`` and, inside a pipeline invocation,
    ``run_id``.

    Safe to call more than once; previously attached root handlers are
    replaced.

    Args:
        log_level: One of ``"DEBUG"``, ``"INFO"``, ``"WARNING"``, ``"ERROR"``,
            ``"CRITICAL"``.  Case-insensitive.
    """
    level_upper = log_level.upper()
    numeric_level = getattr(logging, level_upper, logging.INFO)
    is_development = level_upper == "DEBUG"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _inject_run_id,
        _redact_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if is_development:
        final_renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer(
            colors=True,
        )
    else:
        final_renderer = structlog.processors.JSONRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            final_renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    if not is_development:
        for noisy_logger in ("httpx", "httpcore"):
            logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
