class ReportServiceError(Exception):
    """Base class for failures raised by the report service core."""


class StorageError(ReportServiceError):
    """Local preference read/write failure."""


class FetchError(ReportServiceError):
    """One-shot or subscription read failure from the remote collection."""


class SubmissionError(ReportServiceError):
    """Append of a new report to the remote collection failed."""


class ReportContractError(ReportServiceError, ValueError):
    """A caller handed the store something it must never receive."""
