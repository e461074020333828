"""Line scanner for marker-delimited test files.

A file is a sequence of marker lines ``=NAME=`` each followed by a text
block. Blank lines and lines starting with ``#`` separate definitions.
"""

import logging
from enum import Enum
from typing import NamedTuple, Optional

from lark import Lark, Transformer
from lark.exceptions import UnexpectedInput

from .errors import TesttxtSyntaxError

logger = logging.getLogger(__name__)

# Grammar for a single marker line. REST keeps everything after the
# closing "=", including the line terminator.
_marker_line_grammar = r"""
start: "=" NAME "=" REST?

NAME: /[A-Za-z0-9_]+/
REST: /.+/s
"""

_cached_marker_parser = None


def _get_marker_parser():
    """Get cached parser for marker lines."""
    global _cached_marker_parser
    if _cached_marker_parser is None:
        _cached_marker_parser = Lark(_marker_line_grammar, parser="lalr")
    return _cached_marker_parser


class MarkerNameTransformer(Transformer):
    """Reduces a marker line parse tree to the marker name."""

    def start(self, items):
        return str(items[0])


def match_marker(line: str) -> Optional[str]:
    """Return the marker name if ``line`` is a marker line, else None.

    The line is checked as is, so indented markers don't count.
    """
    if not line.startswith("="):
        return None
    try:
        tree = _get_marker_parser().parse(line)
    except UnexpectedInput:
        return None
    return MarkerNameTransformer().transform(tree)


class MarkerKind(Enum):
    FIELD = "field"
    TEMPLATE = "TEMPL"
    SUBST = "SUBST"
    END = "END"


RESERVED_MARKERS = {
    MarkerKind.TEMPLATE.value: MarkerKind.TEMPLATE,
    MarkerKind.SUBST.value: MarkerKind.SUBST,
    MarkerKind.END.value: MarkerKind.END,
}


class Marker(NamedTuple):
    kind: MarkerKind
    name: str

    @classmethod
    def from_name(cls, name: str) -> "Marker":
        return cls(RESERVED_MARKERS.get(name, MarkerKind.FIELD), name)


class Source:
    """Text of one input file with a forward-only cursor."""

    def __init__(self, text: str, filename: str):
        self.text = text
        self.filename = filename
        self.pos = 0

    @property
    def at_eof(self) -> bool:
        return self.pos >= len(self.text)

    @property
    def line_number(self) -> int:
        return 1 + self.text.count("\n", 0, self.pos)

    def peek_line(self) -> str:
        """Rest of the current line including its newline; '' at EOF."""
        idx = self.text.find("\n", self.pos)
        if idx == -1:
            return self.text[self.pos :]
        return self.text[self.pos : idx + 1]

    def advance(self, count: int):
        self.pos = min(self.pos + count, len(self.text))


class Scanner:
    """Reads markers and their text blocks from a Source."""

    def __init__(self, source: Source):
        self.source = source

    def next_marker(self) -> Optional[Marker]:
        """Skip separators and read the next marker.

        Returns None at end of input. The cursor is left directly behind
        the closing "=" of the marker.
        """
        src = self.source
        while not src.at_eof:
            line = src.peek_line()
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                src.advance(len(line))
                continue
            name = match_marker(line)
            if name is None:
                raise TesttxtSyntaxError(
                    src.filename, src.line_number, line.rstrip()
                )
            src.advance(len(name) + 2)
            return Marker.from_name(name)
        return None

    def read_block(self) -> str:
        """Read the raw text belonging to the marker just scanned.

        Text on the marker line itself is the whole block. Otherwise the
        block spans the following lines up to the next marker, a blank
        line or end of input. A closing =END= is consumed, nothing else is.
        """
        src = self.source
        line = src.peek_line()
        src.advance(len(line))
        single = line.strip()
        if single:
            return single

        start = src.pos
        while True:
            line = src.peek_line()
            if not line:
                break
            name = match_marker(line)
            if name is not None:
                end = src.pos
                if name == MarkerKind.END.value:
                    src.advance(len("=END="))
                return src.text[start:end]
            if not line.strip():
                break
            src.advance(len(line))
        return src.text[start : src.pos]

    def read_template_name(self) -> str:
        """Read the name following =TEMPL=, keeping the line's newline."""
        src = self.source
        line = src.peek_line()
        src.advance(len(line) - 1 if line.endswith("\n") else len(line))
        return line.strip()

    def peek_marker_line(self) -> tuple[Optional[str], str]:
        """Marker name and raw text of the current line, without consuming."""
        line = self.source.peek_line()
        return match_marker(line), line

    def skip_line(self, line: str):
        self.source.advance(len(line))
