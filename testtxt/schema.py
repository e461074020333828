"""Record schemas: which markers exist and how their text is converted.

A schema is derived once per parse from a pydantic model or a dataclass.
The first declared field is the title field; every occurrence of its
marker starts a new record.
"""

import dataclasses
import logging
import re
import typing
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, create_model

from .errors import TesttxtConfigError
from .scanner import RESERVED_MARKERS

logger = logging.getLogger(__name__)

_first_cap = re.compile(r"(.)([A-Z][a-z]+)")
_all_cap = re.compile(r"([a-z0-9])([A-Z])")
_integer = re.compile(r"[+-]?[0-9]+")


def to_marker_name(name: str) -> str:
    """Marker name for a field name: ``MixedCase`` and ``mixed_case`` both
    give ``MIXED_CASE``."""
    snake = _first_cap.sub(r"\1_\2", name)
    snake = _all_cap.sub(r"\1_\2", snake)
    return snake.upper()


class FieldKind(str, Enum):
    TEXT = "text"
    INTEGER = "integer"
    BOOLEAN = "boolean"


KIND_BY_TYPE: dict[Any, FieldKind] = {
    str: FieldKind.TEXT,
    int: FieldKind.INTEGER,
    bool: FieldKind.BOOLEAN,
}

# names accepted in field specs like "count:int"
PRIMITIVE_TYPES: dict[str, type] = {
    "str": str,
    "string": str,
    "text": str,
    "int": int,
    "integer": int,
    "bool": bool,
    "boolean": bool,
}

ZERO_VALUES = {
    FieldKind.TEXT: "",
    FieldKind.INTEGER: 0,
    FieldKind.BOOLEAN: False,
}


@dataclasses.dataclass(frozen=True)
class SchemaField:
    """One field of a record and the marker that fills it."""

    attr: str
    marker: str
    kind: FieldKind

    def zero(self) -> Any:
        return ZERO_VALUES[self.kind]

    def coerce(self, text: str) -> Any:
        """Convert block text to the field's type.

        Raises:
            ValueError: if an integer field gets a non-integer payload
        """
        if self.kind is FieldKind.BOOLEAN:
            # presence of the marker is the value
            return True
        if self.kind is FieldKind.INTEGER:
            stripped = text.strip()
            if not _integer.fullmatch(stripped):
                raise ValueError(f"{stripped!r} is not a decimal integer")
            return int(stripped)
        return text


class Schema:
    """Ordered fields of a record type; the first one is the title."""

    def __init__(self, record_type: type, fields: Iterable[SchemaField]):
        self.record_type = record_type
        self.fields = list(fields)
        if not self.fields:
            raise TesttxtConfigError(
                f"expecting record type with at least one field, got {record_type.__name__}"
            )
        self._by_marker: dict[str, SchemaField] = {}
        for field in self.fields:
            if field.marker in RESERVED_MARKERS:
                raise TesttxtConfigError(
                    f'field "{field.attr}" clashes with reserved marker ={field.marker}='
                )
            other = self._by_marker.get(field.marker)
            if other is not None:
                raise TesttxtConfigError(
                    f'fields "{other.attr}" and "{field.attr}" both map to ={field.marker}='
                )
            self._by_marker[field.marker] = field

    @property
    def title(self) -> SchemaField:
        return self.fields[0]

    def field_for_marker(self, marker: str) -> Optional[SchemaField]:
        return self._by_marker.get(marker)

    def zero_values(self) -> dict[str, Any]:
        return {f.attr: f.zero() for f in self.fields}

    def make_record(self, values: dict[str, Any]) -> Any:
        """Instantiate the record type.

        Raises:
            pydantic.ValidationError: from validators of a pydantic record type
        """
        return self.record_type(**values)

    @classmethod
    def build(cls, record_type: type, fields: Iterable[tuple[str, Any]]) -> "Schema":
        """Explicit builder from (attribute name, type or kind) pairs."""
        return cls(record_type, [_make_field(record_type, attr, tp) for attr, tp in fields])

    @classmethod
    def from_record_type(cls, record_type: Any) -> "Schema":
        """Derive the schema from a pydantic model or dataclass type."""
        if isinstance(record_type, type) and issubclass(record_type, BaseModel):
            declared = [
                (name, info.annotation)
                for name, info in record_type.model_fields.items()
            ]
        elif isinstance(record_type, type) and dataclasses.is_dataclass(record_type):
            hints = typing.get_type_hints(record_type)
            declared = []
            for f in dataclasses.fields(record_type):
                if f.name.startswith("_"):
                    raise TesttxtConfigError(f'field "{f.name}" must be public')
                if not f.init:
                    raise TesttxtConfigError(
                        f'field "{f.name}" must be settable through __init__'
                    )
                declared.append((f.name, hints.get(f.name, f.type)))
        else:
            raise TesttxtConfigError(
                f"expecting pydantic model or dataclass type, got {record_type!r}"
            )
        schema = cls.build(record_type, declared)
        logger.debug(
            f"Schema for {record_type.__name__}: "
            + ", ".join(f"={f.marker}= ({f.kind.value})" for f in schema.fields)
        )
        return schema


def _make_field(record_type: type, attr: str, tp: Any) -> SchemaField:
    if isinstance(tp, FieldKind):
        kind = tp
    else:
        kind = KIND_BY_TYPE.get(tp)
    if kind is None:
        type_name = getattr(tp, "__name__", None) or repr(tp)
        raise TesttxtConfigError(
            f'unsupported type "{type_name}" of field "{attr}" in {record_type.__name__}'
        )
    return SchemaField(attr=attr, marker=to_marker_name(attr), kind=kind)


def model_from_field_specs(specs: Iterable[str], model_name: str = "Record") -> type[BaseModel]:
    """Build a pydantic model from specs like ``["title", "count:int"]``.

    A spec without a type is a text field.
    """
    definitions = {}
    for spec in specs:
        attr, _, type_name = spec.partition(":")
        attr = attr.strip()
        type_name = type_name.strip().lower() or "str"
        if not attr.isidentifier():
            raise TesttxtConfigError(f"invalid field name {attr!r}")
        if type_name not in PRIMITIVE_TYPES:
            raise TesttxtConfigError(
                f'unsupported type "{type_name}" of field "{attr}"'
            )
        tp = PRIMITIVE_TYPES[type_name]
        definitions[attr] = (tp, ZERO_VALUES[KIND_BY_TYPE[tp]])
    return create_model(model_name, **definitions)


def resolve_schema(record_type: Any) -> Schema:
    if isinstance(record_type, Schema):
        return record_type
    return Schema.from_record_type(record_type)

