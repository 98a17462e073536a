"""jshell: an interactive interpreter for pipelines of external programs."""

from .executor import StageRunner
from .parser import ParseError, parse_input_and_exec, plan_line

__version__ = "0.2.0"

__all__ = [
    "StageRunner",
    "ParseError",
    "parse_input_and_exec",
    "plan_line",
]
