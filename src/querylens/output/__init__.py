"""Serialization of statements and plan trees."""

from querylens.output.export import (
    export_filename,
    export_json,
    export_node,
    export_result,
    export_statements,
)

__all__ = [
    "export_filename",
    "export_json",
    "export_node",
    "export_result",
    "export_statements",
]
