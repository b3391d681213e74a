"""Translate LaTeX macro definitions into a KaTeX-compatible macro table.

KaTeX's ``\\newcommand`` has no optional arguments and there is no
``\\DeclareMathOperator``, so both are rewritten while parsing:

1. normalize: drop ``%`` comments and surrounding whitespace
2. index: collect every macro declaring an optional argument
3. rewrite: expand calls to indexed macros inside each definition,
   collapse the macro's own optional argument to its default, and turn
   operator declarations into ``\\operatorname``
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache

from katex_macros.models import (
    CyclicMacroExpansion,
    MacroDefinition,
    MathOperator,
    OptionalArgMacro,
    ParseReport,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_PASSES = 100

_COMMENT = re.compile(r"(?<!\\)%.*$")

_NEWCOMMAND = re.compile(
    r"^\s*\\(?:re)?newcommand\{(?P<name>[^}]*)\}"
    r"(?:\[(?P<nargs>\d+)\](?:\[(?P<optional>[^\]]*)\])?)?"
    r"\{(?P<template>.*)\}"
)

_DECLARE_MATH_OPERATOR = re.compile(
    r"\\DeclareMathOperator(?P<limits>\*?)\{(?P<name>[^}]*)\}\{(?P<template>.*)\}"
)

_PLACEHOLDER = re.compile(r"#(\d+)")

# Call-site pieces: [optional] and one {argument} allowing a single
# level of nested braces, e.g. {\frac{a}{b}}
_OPTIONAL_GROUP = r"\[([^\]]*)\]"
_BRACE_GROUP = r"\{((?:[^{}]|\{[^{}]*\})*)\}"


def normalize_line(line: str) -> str:
    """Strip an unescaped ``%`` comment and surrounding whitespace."""
    return _COMMENT.sub("", line).strip()


def classify_line(line: str) -> MacroDefinition | MathOperator | None:
    """Match a normalized line against the known definition forms."""
    match = _NEWCOMMAND.match(line)
    if match:
        return MacroDefinition(
            name=match.group("name"),
            arg_count=int(match.group("nargs") or 0),
            optional_default=match.group("optional"),
            template=match.group("template"),
        )
    match = _DECLARE_MATH_OPERATOR.search(line)
    if match:
        return MathOperator(
            name=match.group("name"),
            limits=bool(match.group("limits")),
            template=match.group("template"),
        )
    return None


def build_optional_index(lines: list[str]) -> list[OptionalArgMacro]:
    """Collect macros that declare an optional argument, in line order."""
    index: list[OptionalArgMacro] = []
    for line in lines:
        match = _NEWCOMMAND.match(normalize_line(line))
        if not match or match.group("optional") is None:
            continue
        index.append(OptionalArgMacro(
            name=match.group("name"),
            arg_count=int(match.group("nargs")),
            optional_default=match.group("optional"),
            template=match.group("template"),
        ))
    return index


def expand_optional(
    entry: OptionalArgMacro, optional_arg: str, args: list[str],
) -> str:
    """Fill an indexed macro's template from a ``\\name[opt]{a}...`` call.

    ``#1`` takes the bracketed argument and ``#k`` takes ``args[k-2]``.
    Placeholders without a matching argument are left untouched.
    """
    def _fill(match: re.Match) -> str:
        k = int(match.group(1))
        if k == 1:
            return optional_arg
        if 2 <= k <= len(args) + 1:
            return args[k - 2]
        return match.group(0)

    return _PLACEHOLDER.sub(_fill, entry.template)


@lru_cache(maxsize=256)
def _call_pattern(name: str, arg_count: int) -> re.Pattern:
    return re.compile(
        re.escape(name) + _OPTIONAL_GROUP + _BRACE_GROUP * max(arg_count - 1, 0)
    )


def resolve_optional_calls(
    template: str,
    index: list[OptionalArgMacro],
    max_passes: int = DEFAULT_MAX_PASSES,
    macro: str = "",
) -> str:
    """Expand calls to indexed macros until a full pass changes nothing.

    Raises CyclicMacroExpansion when a pass still substitutes after
    *max_passes* substituting passes. The final no-change pass that
    confirms the result is not counted.
    """
    for _pass in range(max_passes + 1):
        substitutions = 0
        for entry in index:
            pattern = _call_pattern(entry.name, entry.arg_count)
            template, count = pattern.subn(
                lambda m, entry=entry: expand_optional(
                    entry, m.group(1), list(m.groups()[1:]),
                ),
                template,
            )
            substitutions += count
        if not substitutions:
            return template
    raise CyclicMacroExpansion(macro or template, max_passes)


def drop_optional_parameter(template: str, default: str) -> str:
    """Bind ``#1`` to *default* and shift ``#k`` down to ``#(k-1)``."""
    def _shift(match: re.Match) -> str:
        k = int(match.group(1))
        if k == 1:
            return default
        if k == 0:
            return match.group(0)
        return f"#{k - 1}"

    return _PLACEHOLDER.sub(_shift, template)


def rewrite_line(
    line: str,
    index: list[OptionalArgMacro],
    max_passes: int = DEFAULT_MAX_PASSES,
) -> tuple[str, str] | None:
    """Return the ``(name, template)`` entry a definition line produces."""
    definition = classify_line(normalize_line(line))
    if definition is None:
        return None

    if isinstance(definition, MathOperator):
        operator = "\\operatorname" + ("*" if definition.limits else "")
        return definition.name, operator + "{" + definition.template + "}"

    template = resolve_optional_calls(
        definition.template, index, max_passes, macro=definition.name,
    )
    if definition.has_optional:
        template = drop_optional_parameter(template, definition.optional_default)
    if template != definition.template:
        logger.debug("Rewrote %s: %s -> %s", definition.name, definition.template, template)
    return definition.name, template


def parse_report(source: str, max_passes: int = DEFAULT_MAX_PASSES) -> ParseReport:
    """Parse *source*, also recording skipped lines and redefinitions."""
    lines = source.split("\n")
    index = build_optional_index(lines)
    logger.debug("Indexed %d macros with optional arguments", len(index))

    report = ParseReport()
    for lineno, line in enumerate(lines, 1):
        entry = rewrite_line(line, index, max_passes)
        if entry is None:
            normalized = normalize_line(line)
            if normalized:
                report.skipped.append((lineno, normalized))
            continue
        name, template = entry
        if name in report.macros:
            logger.debug("Line %d redefines %s", lineno, name)
            report.overridden.append(name)
        report.macros[name] = template
    return report


def parse_macros(source: str, max_passes: int = DEFAULT_MAX_PASSES) -> dict[str, str]:
    """Parse LaTeX macro definitions into a KaTeX ``macros`` mapping."""
    return parse_report(source, max_passes).macros
