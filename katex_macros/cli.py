"""katex-macros — command-line entry point.

Usage:
    katex-macros macros.sty             # Print the KaTeX macro table as JSON
    katex-macros macros.sty --table     # Pretty-print as a table
    katex-macros - --report             # Read stdin, list skipped lines too
    katex-macros config KEY VALUE       # Write a KATEX_MACROS_* key to .env
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from katex_macros import config
from katex_macros.models import MacroParseError, ParseReport
from katex_macros.parse import parse_report

logger = logging.getLogger(__name__)

OPTIONS = {
    "--table": "Print a table instead of JSON",
    "--report": "Also list skipped lines and redefined macros",
}


def _print_usage(console: Console) -> None:
    console.print("Usage: katex-macros [FILE|-] [OPTIONS]")
    console.print("       katex-macros config KEY VALUE")
    console.print()
    console.print("Options:")
    for name, desc in OPTIONS.items():
        console.print(f"  {name:<10} {desc}")


def _read_source(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _print_table(report: ParseReport, console: Console) -> None:
    table = Table(title="KaTeX macros")
    table.add_column("Macro", style="bold cyan", no_wrap=True)
    table.add_column("Expansion")
    for name, template in report.macros.items():
        table.add_row(Text(name), Text(template))
    console.print(table)


def _print_diagnostics(report: ParseReport, console: Console) -> None:
    console.print()
    if report.skipped:
        console.print(f"[yellow]Skipped {len(report.skipped)} line(s):[/]")
        for lineno, text in report.skipped:
            console.print(f"  {lineno:>4}  ", text, markup=False, highlight=False)
    if report.overridden:
        console.print(
            f"[yellow]Redefined:[/] {escape(', '.join(report.overridden))}"
        )
    if not report.skipped and not report.overridden:
        console.print("[green]ok[/] every line was a definition")


def _configure(argv: list[str], console: Console) -> int:
    if len(argv) != 2:
        console.print("[red]Usage: katex-macros config KEY VALUE[/]")
        return 1
    key, value = argv
    if not key.startswith("KATEX_MACROS_"):
        console.print(f"[red]Unknown key: {key}[/] (expected KATEX_MACROS_*)")
        return 1
    config.write_key(key, value)
    console.print(f"  [green]ok[/] {key} written to {config.env_path()}")
    return 0


def run(argv: list[str]) -> int:
    """Run the CLI and return the process exit code."""
    console = Console()
    err_console = Console(stderr=True)

    if not argv or argv[0] in ("-h", "--help"):
        _print_usage(console)
        return 0 if argv else 1

    if argv[0] == "config":
        return _configure(argv[1:], console)

    path, *flags = argv
    unknown = [f for f in flags if f not in OPTIONS]
    if unknown:
        err_console.print(f"[red]Unknown option: {', '.join(unknown)}[/]")
        return 1

    try:
        source = _read_source(path)
    except (OSError, UnicodeDecodeError) as exc:
        err_console.print(f"[red]Cannot read {escape(path)}:[/] {escape(str(exc))}")
        return 1

    try:
        report = parse_report(source, config.get_max_passes())
    except MacroParseError as exc:
        err_console.print(f"[red]{escape(str(exc))}[/]")
        return 1
    logger.info("Parsed %d macros from %s", len(report.macros), path)

    if "--table" in flags:
        _print_table(report, console)
    else:
        sys.stdout.write(json.dumps(report.macros, indent=2, ensure_ascii=False) + "\n")
    if "--report" in flags:
        _print_diagnostics(report, err_console)
    return 0


def main(args: list[str] | None = None) -> None:
    """CLI entry point."""
    logging.basicConfig(level=getattr(logging, config.get_log_level(), logging.INFO))
    argv = args if args is not None else sys.argv[1:]
    code = run(argv)
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
