"""Exception hierarchy for the recorder."""

from __future__ import annotations


class RecorderError(RuntimeError):
    """Base class for recorder failures."""


class RecorderSetupError(RecorderError):
    """The serial port or the durable log could not be opened at startup."""


class DurableLogError(RecorderError):
    """A durable log operation failed."""


class CorruptRecordError(DurableLogError):
    """A stored record could not be decoded back into a fix."""

    def __init__(self, record_id: int, reason: str) -> None:
        super().__init__(f"Record {record_id} is corrupt: {reason}")
        self.record_id = record_id
        self.reason = reason


class ExportError(RecorderError):
    """Writing a track file failed."""
