"""Parse test description files into a list of records.

Example file::

    =TEMPL=input
    number 42 wins
    =END=

    =TITLE=t1
    =INPUT=[[input]]
    =SUBST=/wins/WINS/

with ``class Descr(BaseModel): title: str = ""; input: str = ""`` gives
``[Descr(title="t1", input="number 42 WINS")]``.
"""

import logging
import re
from pathlib import Path
from typing import Any, Optional

from jinja2 import TemplateSyntaxError
from pydantic import ValidationError

from .errors import (ErrorContext, TesttxtEOFError, TesttxtError,
                     TesttxtExpansionError, TesttxtSemanticError)
from .expansion import expand_block
from .scanner import MarkerKind, Scanner, Source
from .schema import Schema, SchemaField, resolve_schema
from .templates import TemplateRegistry

logger = logging.getLogger(__name__)

TEMPLATE_NAME_PATTERN = re.compile(r"[A-Za-z0-9_]+")


class RecordBuilder:
    """Collects field values of the record currently being parsed."""

    def __init__(self, schema: Schema, context: ErrorContext):
        self.schema = schema
        self.context = context
        self.values = schema.zero_values()
        self.seen: set[str] = set()

    def set(self, field: SchemaField, text: str):
        try:
            value = field.coerce(text)
        except ValueError as exc:
            raise TesttxtExpansionError(
                f'invalid value for field "{field.attr}": {exc}', self.context
            ) from exc
        self.values[field.attr] = value
        self.seen.add(field.marker)

    def build(self) -> Any:
        try:
            return self.schema.make_record(self.values)
        except (ValidationError, ValueError, TypeError) as exc:
            raise TesttxtExpansionError(f"invalid record: {exc}", self.context) from exc


class FileParser:
    """State of one parse: source, templates and records built so far.

    Nothing here is shared between parses.
    """

    def __init__(self, text: str, schema: Schema, filename: str):
        self.schema = schema
        self.filename = filename
        self.scanner = Scanner(Source(text, filename))
        self.templates = TemplateRegistry()
        self.records: list[Any] = []
        self.current: Optional[RecordBuilder] = None
        self.file_context = ErrorContext(filename, schema.title.marker)

    @property
    def context(self) -> ErrorContext:
        if self.current is None:
            return self.file_context
        return self.current.context

    def parse(self) -> list[Any]:
        title = self.schema.title.marker
        while True:
            marker = self.scanner.next_marker()
            if marker is None:
                break
            if marker.kind is MarkerKind.TEMPLATE:
                self._define_template()
                continue
            if marker.kind is MarkerKind.SUBST:
                raise TesttxtSemanticError(
                    "=SUBST= is only valid at bottom of text block", self.context
                )
            if marker.kind is MarkerKind.END:
                raise TesttxtSemanticError(
                    "=END= is only valid at end of text block", self.context
                )

            name = marker.name
            text = self._read_expanded_text()
            if name == title:
                self._start_record(text)
            elif self.current is None:
                raise TesttxtSemanticError(
                    f"must define ={title}= before ={name}=", self.context
                )
            if name in self.current.seen:
                raise TesttxtSemanticError(
                    f"found multiple ={name}=", self.context
                )
            field = self.schema.field_for_marker(name)
            if field is None:
                raise TesttxtSemanticError(f"unexpected ={name}=", self.context)
            self.current.set(field, text)

        if self.current is None:
            raise TesttxtEOFError(
                f"missing ={title}= in first test", self.file_context
            )
        self.records.append(self.current.build())
        logger.debug(f"Parsed {len(self.records)} tests from {self.filename}")
        return self.records

    def _start_record(self, title_value: str):
        if self.current is not None:
            self.records.append(self.current.build())
        logger.debug(f"Test ={self.schema.title.marker}={title_value}")
        self.current = RecordBuilder(
            self.schema, self.file_context.in_test(title_value)
        )

    def _read_expanded_text(self) -> str:
        raw = self.scanner.read_block()
        return expand_block(raw, self.scanner, self.templates, self.context)

    def _define_template(self):
        name = self.scanner.read_template_name()
        if not name:
            raise TesttxtSemanticError("missing name after =TEMPL=", self.context)
        if not TEMPLATE_NAME_PATTERN.fullmatch(name):
            raise TesttxtSemanticError(
                f'invalid name after =TEMPL=: "{name}"', self.context
            )
        body = self._read_expanded_text().removesuffix("\n")
        if not body:
            raise TesttxtSemanticError(
                f"missing text after =TEMPL={name}", self.context
            )
        try:
            self.templates.register(name, body)
        except TemplateSyntaxError as exc:
            raise TesttxtExpansionError(
                f'invalid template "{name}": {exc}', self.context
            ) from exc


def parse_text(text: str, record_type: Any, filename: str = "<string>") -> list[Any]:
    """Parse test descriptions from a string.

    Args:
        text: File content
        record_type: pydantic model, dataclass type or prebuilt Schema
        filename: Name used in error messages

    Returns:
        List of record_type instances, at least one

    Raises:
        TesttxtError: on any configuration, syntax or content error
    """
    schema = resolve_schema(record_type)
    return FileParser(text, schema, filename).parse()


def parse_file(path: str | Path, record_type: Any) -> list[Any]:
    """Parse the named file as a list of test descriptions.

    Raises:
        OSError: if the file can't be read
        TesttxtError: as parse_text, or if the file is not UTF-8 text
    """
    schema = resolve_schema(record_type)
    try:
        text = Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise TesttxtError(f"invalid UTF-8 text: {exc}", ErrorContext(str(path))) from exc
    return FileParser(text, schema, str(path)).parse()
