"""Exception hierarchy for csv2store."""


class Csv2StoreError(Exception):
    """Base class for all csv2store errors."""


class EmptyInputError(Csv2StoreError, ValueError):
    """Raised when a CSV source has no header row or no headers were supplied."""


class UnknownColumnError(Csv2StoreError, ValueError):
    """Raised when a primary-key or selected column is not among the headers."""

    def __init__(self, column: str, role: str = "column"):
        self.column = column
        super().__init__(f"{role} '{column}' not found")


class DuplicateColumnError(Csv2StoreError, ValueError):
    """Raised when a header row names the same column twice."""

    def __init__(self, column: str):
        self.column = column
        super().__init__(f"duplicate column '{column}' in headers")


class MalformedRowError(Csv2StoreError, ValueError):
    """Raised when a row's value count does not match the header count."""

    def __init__(self, line: int | None, expected: int, actual: int):
        self.line = line
        self.expected = expected
        self.actual = actual
        where = f"line {line}" if line is not None else "row"
        super().__init__(f"{where}: expected {expected} values, got {actual}")


class NoPrimaryKeyConfiguredError(Csv2StoreError, RuntimeError):
    """Raised on a primary-key lookup against a table without a primary-key column."""

    def __init__(self):
        super().__init__("no primary key column defined")


class ConnectivityError(Csv2StoreError, ConnectionError):
    """Raised when the startup smoke test against the store fails."""
