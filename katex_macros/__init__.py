"""Translate LaTeX macro stylesheets into KaTeX macro tables."""

from katex_macros.models import CyclicMacroExpansion, MacroParseError, ParseReport
from katex_macros.parse import parse_macros, parse_report

__all__ = [
    "CyclicMacroExpansion",
    "MacroParseError",
    "ParseReport",
    "parse_macros",
    "parse_report",
]

__version__ = "0.1.0"
