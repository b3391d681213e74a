"""Data records produced while parsing a macro stylesheet."""

from __future__ import annotations

from dataclasses import dataclass, field


class MacroParseError(Exception):
    """Base class for stylesheet parsing failures."""


class CyclicMacroExpansion(MacroParseError):
    """Optional-argument macros kept expanding past the pass limit."""

    def __init__(self, macro: str, passes: int) -> None:
        self.macro = macro
        self.passes = passes
        super().__init__(
            f"Expansion of {macro} did not settle after {passes} passes "
            "(cyclic optional-argument macros?)"
        )


@dataclass
class MacroDefinition:
    """A \\newcommand / \\renewcommand line."""

    name: str
    arg_count: int
    optional_default: str | None
    template: str

    @property
    def has_optional(self) -> bool:
        return self.optional_default is not None


@dataclass
class OptionalArgMacro:
    """Index entry for a macro declaring an optional first argument."""

    name: str
    arg_count: int
    optional_default: str
    template: str


@dataclass
class MathOperator:
    """A \\DeclareMathOperator line."""

    name: str
    limits: bool
    template: str


@dataclass
class ParseReport:
    """Parsed macros plus what the parser dropped or overwrote."""

    macros: dict[str, str] = field(default_factory=dict)
    skipped: list[tuple[int, str]] = field(default_factory=list)
    overridden: list[str] = field(default_factory=list)
