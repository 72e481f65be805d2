"""CLI flag reconciliation."""

from selfcheck.flags.field_names import FieldNameMapper, pascal_field_name
from selfcheck.flags.source_model import CallShape, PythonSourceModel, SourceModel, Symbol
from selfcheck.flags.system import FlagSystem, HelpTextProvider, extract_potential_flags

__all__ = [
    "CallShape",
    "FieldNameMapper",
    "FlagSystem",
    "HelpTextProvider",
    "PythonSourceModel",
    "SourceModel",
    "Symbol",
    "extract_potential_flags",
    "pascal_field_name",
]
