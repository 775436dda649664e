"""Exception hierarchy for export operations."""

from __future__ import annotations


class ExportError(Exception):
    """Base error for export operations."""


class ExtractionEmpty(ExportError):
    """No usable message content remained after extraction or filtering."""


class ConversionUnsupported(ExportError):
    """An HTML construct has no block/run mapping.

    Raised inside the converter only; callers degrade to plain text.
    """


class BatchLimitExceeded(ExportError):
    """A payload exceeded a remote batch ceiling. Handled by pagination."""


class DateFilterNoMatch(ExportError):
    """The date range excluded every message. Converted into a skip flag."""


class UnsupportedFormat(ExportError):
    """Unknown export format or target."""


class NavigationTimeout(ExportError):
    """A navigation or load wait exceeded its ceiling."""


class RemoteTargetFailure(ExportError):
    """An upload or page-creation request failed."""

    def __init__(self, provider: str, message: str, status: int | None = None,
                 batches_written: int = 0) -> None:
        self.provider = provider
        self.message = message
        self.status = status
        self.batches_written = batches_written
        super().__init__(f"{provider}: {message}")


class PartialBatchFailure(ExportError):
    """Some source conversations failed during a multi-conversation scan.

    Informational: the export proceeds with the conversations that succeeded.
    """

    def __init__(self, succeeded: int, total: int, reasons: list[str] | None = None) -> None:
        self.succeeded = succeeded
        self.total = total
        self.reasons = reasons or []
        super().__init__(f"{succeeded} of {total} processed")
