"""Application-wide exception hierarchy for wayback-autosave.

All custom exceptions subclass ``WaybackAutosaveError``, enabling
consistent error handling and structured logging across the pipeline.

Hierarchy::

    WaybackAutosaveError
    ├── StorageError            (key: str | None)
    ├── SubmissionError         (url: str, status_code: int | None)
    └── ConfigurationError

None of these are fatal to the process: every pipeline phase (navigation
evaluation, interaction rescan, queue drain, periodic tick) is a recovery
boundary that logs the exception and returns.
"""

from __future__ import annotations


class WaybackAutosaveError(Exception):
    """Base class for all wayback-autosave exceptions.

    All application-specific exceptions inherit from this class so that
    callers can catch the entire hierarchy with a single ``except`` clause
    when needed.
    """


# ---------------------------------------------------------------------------
# Storage exceptions
# ---------------------------------------------------------------------------


class StorageError(WaybackAutosaveError):
    """Raised by a key-value store backend when a read or write fails.

    Backends wrap their native errors (e.g. ``redis.RedisError``, JSON decode
    failures) in this type so that the pipeline can catch one exception class
    at its phase boundaries.

    Args:
        message: Human-readable description of the failure.
        key: The store key being read or written, if known.
    """

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


# ---------------------------------------------------------------------------
# Transport exceptions
# ---------------------------------------------------------------------------


class SubmissionError(WaybackAutosaveError):
    """Raised internally when a save request cannot be completed.

    Never escapes :meth:`~wayback_autosave.archiver.submitter.SubmissionWorker.submit`;
    it carries the failure details to the point where they are classified
    into a :class:`~wayback_autosave.archiver.submitter.SaveOutcome`.

    Args:
        message: Human-readable description of the failure.
        url: The target URL that was being submitted.
        status_code: HTTP status returned by the archive, or ``None`` for
            network-level failures and timeouts.
        timed_out: ``True`` when the request hit its timeout bound.
    """

    def __init__(
        self,
        message: str,
        url: str,
        status_code: int | None = None,
        timed_out: bool = False,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.timed_out = timed_out


# ---------------------------------------------------------------------------
# Configuration exceptions
# ---------------------------------------------------------------------------


class ConfigurationError(WaybackAutosaveError):
    """Raised when settings combine into an unusable pipeline configuration."""
