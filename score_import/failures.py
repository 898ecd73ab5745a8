"""
Failure taxonomy for score imports.

Converter failures are raised per item and collected by the importer, so one
bad item never aborts its siblings. ScoreImportFatalError is reserved for
payloads that cannot be processed at all.
"""


class ConverterFailure(Exception):
    """Base class for per-item conversion failures"""

    failure_kind = "ConverterFailure"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidScoreFailure(ConverterFailure):
    """The item is structurally or semantically invalid"""

    failure_kind = "InvalidScore"


class KTDataNotFoundFailure(ConverterFailure):
    """
    The item references a song or chart the catalog does not have.

    Carries the original item and its context so it can be resubmitted once
    the catalog catches up.
    """

    failure_kind = "KTDataNotFound"

    def __init__(self, message: str, import_type=None, data=None, context=None):
        super().__init__(message)
        self.import_type = import_type
        self.data = data
        self.context = context


class InternalFailure(ConverterFailure):
    """The catalog or the pipeline itself is inconsistent"""

    failure_kind = "Internal"


class ScoreImportFatalError(Exception):
    """Raised when a whole payload is unusable and no item can be processed"""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def __repr__(self):
        return f"ScoreImportFatalError({self.status_code}, {self.message!r})"
