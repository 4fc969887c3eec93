from __future__ import annotations


class MarketwatchError(Exception):
    """Base class for pipeline errors."""


class MalformedInputError(MarketwatchError):
    """An input file is not a non-empty JSON array."""


class NoValidRecordsError(MarketwatchError):
    """Every record in a file was skipped during normalization."""


class FatalRunError(MarketwatchError):
    """The run cannot start: input directory or processed log unusable."""


class StoreError(MarketwatchError):
    """A catalog store operation failed."""


class UploadFailure(MarketwatchError):
    def __init__(self, message: str, status_code: int | None = None, connection_refused: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.connection_refused = connection_refused
