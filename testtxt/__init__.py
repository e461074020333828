"""testtxt -- test descriptions from simple marker-delimited text files."""

import logging

# Version - reads from package metadata (set in pyproject.toml)
try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("testtxt")
except PackageNotFoundError:
    __version__ = "0.0.0+dev"

logger = logging.getLogger(__name__)

from .errors import (ErrorContext, TesttxtConfigError, TesttxtEOFError,
                     TesttxtError, TesttxtExpansionError, TesttxtFixtureError,
                     TesttxtSemanticError, TesttxtSyntaxError)
from .expansion import (SubstitutionRule, expand_template_calls,
                        parse_substitution)
from .fixtures import get_files, prepare_in_dir
from .parsing import FileParser, parse_file, parse_text
from .scanner import Marker, MarkerKind, Scanner, Source, match_marker
from .schema import (FieldKind, Schema, SchemaField, model_from_field_specs,
                     to_marker_name)
from .templates import TemplateRegistry
