"""Jinja2 utilities for testtxt -- zero-value lookups, finalize, DATE()."""

import logging
from collections.abc import Mapping
from datetime import date, timedelta
from typing import Any

from jinja2 import TemplateRuntimeError, Undefined
from jinja2.sandbox import ImmutableSandboxedEnvironment

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"


class ZeroValueEnvironment(ImmutableSandboxedEnvironment):
    """Sandboxed environment where missing mapping keys render as zero values.

    Looking up a field that doesn't exist on a mapping gives an Undefined,
    which renders as an empty string and iterates as an empty sequence.
    Looking up a field on a scalar or sequence is an error, since the
    template evidently expected a different kind of argument.
    """

    def getattr(self, obj: Any, attribute: str) -> Any:
        if isinstance(obj, Mapping) and attribute in obj:
            return obj[attribute]
        value = super().getattr(obj, attribute)
        if isinstance(value, Undefined) and not _allows_missing(obj):
            raise TemplateRuntimeError(
                f"can't evaluate field {attribute} in type {type(obj).__name__}"
            )
        return value


def _allows_missing(obj: Any) -> bool:
    return obj is None or isinstance(obj, (Mapping, Undefined))


def testtxt_finalize(value: Any) -> Any:
    """Render None (no argument passed) as an empty string."""
    if value is None:
        return ""
    return value


def date_offset(offset: int) -> str:
    """Today's date shifted by ``offset`` days, as YYYY-MM-DD."""
    if isinstance(offset, bool) or not isinstance(offset, int):
        raise TypeError(f"DATE expects an integer day offset, got {offset!r}")
    return (date.today() + timedelta(days=offset)).strftime(DATE_FORMAT)


def make_environment() -> ZeroValueEnvironment:
    """Create the Jinja2 environment used to compile =TEMPL= bodies."""
    env = ZeroValueEnvironment(
        undefined=Undefined,
        finalize=testtxt_finalize,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.globals["DATE"] = date_offset
    return env
