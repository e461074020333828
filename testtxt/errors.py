"""Exception classes and error context for testtxt."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ErrorContext:
    """Where in a file an error happened.

    Threaded through every fallible call of a parse. A context with a
    ``title_value`` describes an open test, otherwise the file itself.
    """

    filename: str
    title_marker: str = "TITLE"
    title_value: Optional[str] = None

    def in_test(self, title_value: str) -> "ErrorContext":
        return ErrorContext(self.filename, self.title_marker, title_value)

    def describe(self) -> str:
        if self.title_value is not None:
            return f"in test with ={self.title_marker}={self.title_value}"
        return f'in file "{self.filename}"'


class TesttxtError(Exception):
    """Base class for all testtxt errors."""

    # not test classes, despite the name
    __test__ = False

    def __init__(self, message: str, context: Optional[ErrorContext] = None):
        self.message = message
        self.context = context
        super().__init__(message)

    def __str__(self):
        if self.context is None:
            return self.message
        return f"{self.message} {self.context.describe()}"


class TesttxtConfigError(TesttxtError):
    """The record type handed to the parser can't be used as a schema."""


class TesttxtSyntaxError(TesttxtError):
    """A line where a marker was expected is malformed."""

    def __init__(self, filename: str, line_number: int, line_text: str):
        self.filename = filename
        self.line_number = line_number
        self.line_text = line_text
        super().__init__(
            f"expecting token '=...=' at line {line_number} "
            f'of file "{filename}": {line_text}'
        )


class TesttxtSemanticError(TesttxtError):
    """Markers are well formed but appear in a forbidden place or order."""


class TesttxtEOFError(TesttxtSemanticError):
    """The file ended before the first title marker was seen."""

    def __str__(self):
        return f'{self.message} of file "{self.context.filename}"'


class TesttxtExpansionError(TesttxtError):
    """Template call, data decoding or value coercion failed."""


class TesttxtFixtureError(TesttxtError):
    """Fixture input can't be split into files."""
