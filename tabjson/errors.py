from typing import Optional


class ConversionError(Exception):
    """
    Base exception for all conversion errors
    """
    pass


class EmptyInputError(ConversionError):
    """
    Raised when fewer than two usable lines (header + data) are found
    """
    pass


class NoDelimiterFoundError(ConversionError):
    """
    Raised when sniffing finds no punctuation following a letter or digit
    """
    pass


class MalformedRowError(ConversionError):
    """
    Raised when a row's field count differs from the column count,
    or when a quoted field is never terminated
    """

    def __init__(
        self,
        message: str,
        line_number: Optional[int] = None,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
    ):
        super().__init__(message)
        self.line_number = line_number
        self.expected = expected
        self.actual = actual


class InvalidSourceError(ConversionError):
    """
    Raised when the source handed to an entry point is absent or unreadable
    """
    pass


class DuplicateColumnError(ConversionError):
    """
    Raised when a table has repeated column names and the policy forbids it
    """
    pass
