"""
Exceptions and warnings raised by the import pipeline.

Row-level problems (SkipRow) are absorbed and counted by the loader.
Batch-level problems (ReferenceWriteError, ReferenceResolutionError) abort
the batch that contains them. ReconciliationError aborts a clean pass.
"""

from typing import Any, Dict, Iterable, Optional


class PipelineError(Exception):
    """Base pipeline error with structured details."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class SkipRow(PipelineError):
    """A source row cannot become a movie record."""

    MISSING_TITLE = "missing_title"
    MISSING_YEAR = "missing_year"

    def __init__(self, reason: str, title: Optional[str] = None):
        self.reason = reason
        self.title = title
        super().__init__(
            f"Row skipped ({reason})" + (f": {title}" if title else ""),
            details={"reason": reason, "title": title},
        )


class ReferenceWriteError(PipelineError):
    """Inserting reference names failed for a reason other than a duplicate."""

    def __init__(self, kind: str, names: Iterable[str]):
        names = sorted(names)
        super().__init__(
            f"Failed to write {len(names)} {kind} name(s): {', '.join(names[:5])}",
            details={"kind": kind, "names": names},
        )


class ReferenceResolutionError(PipelineError):
    """A name needed by the batch has no id after the write step."""

    def __init__(self, kind: str, missing: Iterable[str]):
        missing = sorted(missing)
        self.kind = kind
        self.missing = missing
        super().__init__(
            f"Missing {kind} reference(s) after write: {', '.join(missing[:5])}",
            details={"kind": kind, "missing": missing},
        )


class ReconciliationError(PipelineError):
    """The duplicate delete transaction could not commit."""

    def __init__(self, message: str = "Duplicate reconciliation rolled back"):
        super().__init__(message)


class ResidualDuplicateWarning(UserWarning):
    """Duplicate groups remain after a committed reconcile pass."""
