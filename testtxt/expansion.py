"""Expansion of text blocks: template calls first, then =SUBST= rules.

A template call is written ``[[name]]`` or ``[[name data]]`` where
``data`` is YAML. A single ``]`` directly before the closing ``]]`` belongs
to the data, so flow sequences can be passed inline: ``[[name [a, b]]]``.
"""

import logging
import re
from typing import Any, NamedTuple

import yaml

from .errors import ErrorContext, TesttxtExpansionError, TesttxtSemanticError
from .scanner import MarkerKind, Scanner
from .templates import TemplateRegistry

logger = logging.getLogger(__name__)

# Take "]" in "]]]" as part of the YAML data.
# Spaces and tabs after the name are skipped; a newline keeps the indentation
# of the first data line.
TEMPLATE_CALL_PATTERN = re.compile(
    r"\[\[([A-Za-z0-9_]+)(?:(?:[ \t]+|\n)(.*?\]?))?\]\]", re.DOTALL
)

SUBST_PREFIX = "=SUBST="


class DataLoader(yaml.SafeLoader):
    """SafeLoader that keeps dates and times as plain strings."""


DataLoader.yaml_implicit_resolvers = {
    first: [
        (tag, regexp)
        for tag, regexp in resolvers
        if tag != "tag:yaml.org,2002:timestamp"
    ]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def decode_data(data_text: str, template_name: str, context: ErrorContext) -> Any:
    """Decode the YAML argument of a template call."""
    try:
        return yaml.load(data_text, Loader=DataLoader)
    except yaml.YAMLError as exc:
        raise TesttxtExpansionError(
            f"invalid YAML data {data_text!r} in call to template "
            f'"{template_name}": {exc}',
            context,
        ) from exc


def find_template_calls(text: str) -> list[tuple[str, str | None, int, int]]:
    """Find all template calls in text.

    Returns:
        List of (name, data_text, start_pos, end_pos) tuples; data_text is
        None when the call has no argument.
    """
    return [
        (m.group(1), m.group(2), m.start(), m.end())
        for m in TEMPLATE_CALL_PATTERN.finditer(text)
    ]


def expand_template_calls(
    text: str, templates: TemplateRegistry, context: ErrorContext
) -> str:
    """Replace every [[name data]] in text by the rendered template.

    Calls are located in the original text; rendered output is not
    searched for further calls.
    """
    if "[[" not in text:
        return text

    parts = []
    prev = 0
    for name, data_text, start, end in find_template_calls(text):
        parts.append(text[prev:start])
        prev = end
        data = None
        if data_text is not None:
            data = decode_data(data_text, name, context)
        if name not in templates:
            raise TesttxtExpansionError(
                f'calling unknown template "{name}"', context
            )
        try:
            parts.append(templates.render(name, data))
        except Exception as exc:
            raise TesttxtExpansionError(
                f'error executing template "{name}": {exc}', context
            ) from exc
    parts.append(text[prev:])
    return "".join(parts)


class SubstitutionRule(NamedTuple):
    """Literal find/replace pair from one =SUBST= line."""

    old: str
    new: str

    def apply(self, text: str) -> str:
        return text.replace(self.old, self.new)


def parse_substitution(line: str, context: ErrorContext) -> SubstitutionRule:
    """Parse a raw ``=SUBST=<d>FROM<d>TO<d>`` line."""
    payload = line[len(SUBST_PREFIX) :].strip()
    if not payload:
        raise TesttxtSemanticError("invalid empty substitution", context)
    delimiter = payload[0]
    parts = payload[1:].split(delimiter)
    if len(parts) != 3 or parts[2] != "":
        raise TesttxtSemanticError(
            f"invalid substitution: {SUBST_PREFIX}{payload}", context
        )
    return SubstitutionRule(parts[0], parts[1])


def read_substitutions(scanner: Scanner, context: ErrorContext) -> list[SubstitutionRule]:
    """Consume the =SUBST= lines directly at the scanner position."""
    rules = []
    while True:
        name, line = scanner.peek_marker_line()
        if name != MarkerKind.SUBST.value:
            return rules
        scanner.skip_line(line)
        rule = parse_substitution(line, context)
        logger.debug(f"Substitution {rule.old!r} -> {rule.new!r}")
        rules.append(rule)


def apply_substitutions(text: str, rules: list[SubstitutionRule]) -> str:
    """Apply rules in order, each working on the previous rule's output."""
    for rule in rules:
        text = rule.apply(text)
    return text


def expand_block(
    raw: str,
    scanner: Scanner,
    templates: TemplateRegistry,
    context: ErrorContext,
) -> str:
    """Run a raw block through template expansion and trailing =SUBST= rules."""
    text = expand_template_calls(raw, templates, context)
    return apply_substitutions(text, read_substitutions(scanner, context))
