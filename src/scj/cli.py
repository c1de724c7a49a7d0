from __future__ import annotations

import argparse
import json
import logging
from functools import partial
from pathlib import Path
from typing import Any, Never, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich_argparse import RawTextRichHelpFormatter
from safe_code_judge import RunResult, evaluate
from safe_code_judge.execution.capabilities import capabilities_for_language
from safe_code_judge.runner import LANGUAGE_ALIASES

_CONSOLE = Console(no_color=False)


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="python -m scj")
        ```
    """

    def error(self, message: str) -> Never:
        """Render parse errors with Rich and exit.

        Example:
            ```python
            # parser.error("invalid usage")
            ```
        """
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {message}", border_style="red"))
        self.print_help()
        raise SystemExit(2)


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for evaluating submissions against test cases.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="python -m scj",
        description=(
            "safe-code-judge CLI\n"
            "Run a submission against declarative test cases and report a verdict.\n"
            "Python runs in an isolated worker process; JavaScript runs in a cached Node.js runtime."
        ),
        epilog=(
            "Quick Examples:\n"
            "  python -m scj run solution.py --cases cases.json --function add\n"
            "  python -m scj run solution.js --cases cases.json --function add --language js\n"
            "  python -m scj run solution.py --cases cases.json --function add --json\n"
            "  python -m scj languages"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log executor lifecycle events to stderr.",
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    run_cmd = sub.add_parser(
        "run",
        help="Evaluate a source file against a JSON list of test cases.",
        description=(
            "Evaluate one submission.\n"
            "The cases file holds a JSON array of {input, expected, description?} objects."
        ),
        epilog=(
            "Examples:\n"
            "  python -m scj run solution.py --cases cases.json --function add\n"
            "  python -m scj run solution.py --cases cases.json --function add --timeout-ms 2000"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    run_cmd.add_argument("source", help="Path to the submission source file.")
    run_cmd.add_argument("--cases", required=True, help="Path to the JSON test case file.")
    run_cmd.add_argument("--function", required=True, help="Name of the function to invoke.")
    run_cmd.add_argument(
        "--language",
        default="python",
        help="Language identifier, case-insensitive (default: python).",
    )
    run_cmd.add_argument(
        "--timeout-ms",
        type=int,
        help="Run budget for Python, load budget for JavaScript (default from policy).",
    )
    run_cmd.add_argument("--policy-file", help="Path to a policy TOML file.")
    run_cmd.add_argument(
        "--json",
        action="store_true",
        help="Print the raw result as JSON instead of a table.",
    )

    sub.add_parser(
        "languages",
        help="List recognized language identifiers.",
        description="Show every accepted language identifier and the executor it routes to.",
        formatter_class=_HELP_FORMATTER,
    )

    return parser


def _configure_logging(verbose: bool) -> None:
    """Route library logs through Rich when verbose output is requested.

    Example:
        ```python
        _configure_logging(True)
        ```
    """
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load_cases(path: str) -> list[dict[str, Any]]:
    """Read and validate the JSON test case file.

    Example:
        ```python
        cases = _load_cases("cases.json")
        ```
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list) or not all(isinstance(item, dict) for item in raw):
        raise ValueError("Cases file must contain a JSON array of objects")
    return raw


def _print_result(result: RunResult) -> None:
    """Render a run result as a rich table plus a summary panel.

    Example:
        ```python
        _print_result(RunResult(passed=0, failed=0, total=0))
        ```
    """
    if result.results:
        table = Table(title="Test Results")
        table.add_column("#", style="cyan")
        table.add_column("Description", style="magenta")
        table.add_column("Input")
        table.add_column("Expected")
        table.add_column("Actual")
        table.add_column("Pass")
        for index, case in enumerate(result.results, start=1):
            table.add_row(
                str(index),
                escape(case.description),
                escape(case.input),
                escape(case.expected),
                escape(case.actual),
                "[green]✓[/green]" if case.ok else "[red]✗[/red]",
            )
        _CONSOLE.print(table)

    if result.error is not None:
        _CONSOLE.print(Panel.fit(escape(result.error), title="Error", border_style="red"))
    else:
        style = "bold green" if result.failed == 0 else "bold yellow"
        _CONSOLE.print(Panel.fit(result.summary(), style=style))


def _print_languages() -> None:
    """Render the language alias table.

    Example:
        ```python
        _print_languages()
        ```
    """
    table = Table(title="Languages")
    table.add_column("Identifier", style="cyan")
    table.add_column("Language", style="magenta")
    table.add_column("Isolated")
    table.add_column("Timeout")
    table.add_column("Cached Runtime")
    for alias, language in sorted(LANGUAGE_ALIASES.items()):
        caps = capabilities_for_language(language)
        table.add_row(
            alias,
            language,
            "yes" if caps.isolated_process else "no",
            "yes" if caps.enforces_timeout else "no",
            "yes" if caps.cached_runtime else "no",
        )
    _CONSOLE.print(table)
    _CONSOLE.print("Any other identifier runs as python.")


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `scj` CLI command handler.

    Example:
        ```python
        code = main(["run", "solution.py", "--cases", "cases.json", "--function", "add"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _configure_logging(args.verbose)

    if args.command == "languages":
        _print_languages()
        return 0
    if args.command == "run":
        try:
            source = Path(args.source).read_text(encoding="utf-8")
            cases = _load_cases(args.cases)
            result = evaluate(
                source,
                args.language,
                cases,
                args.function,
                args.timeout_ms,
                policy_file=args.policy_file,
            )
        except (OSError, ValueError) as exc:
            _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {escape(str(exc))}", border_style="red"))
            return 2
        if args.json:
            _CONSOLE.print_json(data=result.to_dict())
        else:
            _print_result(result)
        return 0 if result.error is None and result.failed == 0 else 1

    parser.error("Unhandled command")
    return 2
