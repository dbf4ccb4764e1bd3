"""
renderer.py

Responsibility: Render short message templates (tag messages, the info banner).

Templates use Jinja2 with `StrictUndefined`, so a typo in a configured
template fails loudly instead of producing an empty placeholder.
"""

from __future__ import annotations

from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateError

from cmdforge.errors import ConfigurationError

_env = Environment(
    autoescape=False,
    undefined=StrictUndefined,
    keep_trailing_newline=True,
)

INFO_TEMPLATE = """\
Project Information
===================
Project: {{ description }} ({{ project_name }})
Project Dir: {{ project_dir }}
Version: {{ version }}
Binary Directory: {{ bin_dir }}
Targets: {{ targets | join(", ") if targets else "(none)" }}
"""


def render_text(template: str, context: dict[str, Any]) -> str:
    try:
        return _env.from_string(template).render(**context)
    except TemplateError as e:
        raise ConfigurationError(f"Failed rendering template {template!r}: {e}") from e
