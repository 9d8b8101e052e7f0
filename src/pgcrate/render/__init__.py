"""Configuration file rendering.

Exports the file generator and the record formatters.
"""

from pgcrate.render.generator import (
    CONFIG_CHANGED_FLAG,
    FileKind,
    GeneratedFile,
    generate,
    generate_file,
)
from pgcrate.render.hba import CanonicalRecord, PositionalRecord, format_hba_record
from pgcrate.render.parameters import format_parameter, format_start

__all__ = [
    "CONFIG_CHANGED_FLAG",
    "CanonicalRecord",
    "FileKind",
    "GeneratedFile",
    "PositionalRecord",
    "format_hba_record",
    "format_parameter",
    "format_start",
    "generate",
    "generate_file",
]
