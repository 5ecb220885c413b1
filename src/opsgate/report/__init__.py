"""
Reporting module for OpsGate.

Output formats:
    - Console: deterministic KEY=value lines, plus Rich tables when verbose
    - JSON: one object with sorted keys per invocation

Example:
    from opsgate.report import print_gate_result, render_json

    print_gate_result(result)
    print(render_json(result))
"""

from opsgate.report.console import (
    alias_lines,
    key_value_lines,
    print_alias_resolution,
    print_gate_result,
    print_mapping,
)
from opsgate.report.json import error_document, render_json

__all__ = [
    "alias_lines",
    "error_document",
    "key_value_lines",
    "print_alias_resolution",
    "print_gate_result",
    "print_mapping",
    "render_json",
]
