"""postgresql.conf / recovery.conf parameter formatting.

Value rendering:

- numbers are written as plain decimal literals;
- booleans as ``true`` / ``false``;
- strings single-quoted, with embedded single quotes doubled;
- lists of strings comma-joined inside one pair of single quotes.

Any other value raises :class:`~pgcrate.core.errors.InvalidParameter`.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any

from pgcrate.core.errors import InvalidParameter
from pgcrate.core.types import StartMode


def escape_string(value: str) -> str:
    """Double every single quote, as the configuration file syntax requires."""
    return value.replace("'", "''")


def _quote(value: str) -> str:
    return f"'{escape_string(value)}'"


def render_value(name: str, value: Any) -> str:  # noqa: ANN401
    """Render *value* as it appears on the right of ``=``."""
    # bool is an int subclass, so it is checked first
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidParameter(name, value)
        return repr(value)
    if isinstance(value, Enum):
        return _quote(str(value.value))
    if isinstance(value, str):
        return _quote(value)
    if isinstance(value, (list, tuple)):
        if not all(isinstance(item, str) for item in value):
            raise InvalidParameter(name, value)
        return _quote(",".join(value))
    raise InvalidParameter(name, value)


def format_parameter(name: str, value: Any) -> str:  # noqa: ANN401
    """Render one ``name = value`` line."""
    return f"{name} = {render_value(name, value)}\n"


def format_start(name: str, value: Any) -> str:  # noqa: ANN401
    """Render the bare start-mode token of ``start.conf``."""
    token = value.value if isinstance(value, Enum) else value
    try:
        mode = StartMode(token)
    except ValueError:
        raise InvalidParameter(name, value) from None
    return f"{mode.value}\n"
