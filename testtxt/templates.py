"""Registry of templates declared with =TEMPL= in one file."""

import logging
from typing import Any, Optional

from jinja2 import Environment, Template

from .jinja_utils import make_environment

logger = logging.getLogger(__name__)


class TemplateRegistry:
    """Named, compiled templates visible to the rest of one parse.

    A registry belongs to a single parse call. Templates are added in
    document order; a later definition under the same name replaces the
    earlier one.
    """

    def __init__(self, environment: Optional[Environment] = None):
        self._env = environment or make_environment()
        self._templates: dict[str, Template] = {}

    def register(self, name: str, body: str) -> Template:
        """Compile ``body`` and store it under ``name``.

        Raises:
            jinja2.TemplateSyntaxError: if the body isn't a valid template
        """
        template = self._env.from_string(body)
        if name in self._templates:
            logger.debug(f"Redefining template {name}")
        else:
            logger.debug(f"Registering template {name}")
        self._templates[name] = template
        return template

    def get(self, name: str) -> Optional[Template]:
        return self._templates.get(name)

    def render(self, name: str, data: Any = None) -> str:
        """Render template ``name`` with the call argument bound to ``data``.

        Raises:
            KeyError: if no template of that name was registered
        """
        return self._templates[name].render(data=data)

    def names(self) -> list[str]:
        return list(self._templates)

    def __contains__(self, name: str) -> bool:
        return name in self._templates

    def __len__(self) -> int:
        return len(self._templates)
