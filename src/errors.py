class ReportError(Exception):
    """Base class for errors raised while loading data or generating reports."""


class InvalidConfiguration(ReportError, ValueError):
    """A configuration value is out of range (chunk size, N, filter, report name)."""


class MissingInputFile(ReportError, FileNotFoundError):
    """A required movies / ratings file or the data directory is absent."""


class MalformedRecord(ReportError, ValueError):
    """A line of a source file could not be parsed."""

    def __init__(self, path, line: int, reason: str) -> None:
        self.path = str(path)
        self.line = int(line)
        self.reason = reason
        super().__init__(f"{self.path}:{self.line}: {reason}")


class ConcurrencyFault(ReportError, RuntimeError):
    """A chunk worker failed; the whole run is aborted."""
