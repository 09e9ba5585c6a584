"""cbmfile CLI — inspect experiment and build files.

Usage:
    cbmfile tokens <file>
    cbmfile lex <file>
    cbmfile parse <file> [--kind run|build] [--output <output_path>]
    cbmfile check <file>
    cbmfile trials <file> [--output <output_path>] [--json]

Global flags (before the command): --verbose, --lenient, --version.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cbmfile import __version__
from cbmfile.core.config import CbmFileConfig, get_config
from cbmfile.core.errors import (
    DslIOError,
    FormatError,
    GrammarError,
    ResolutionError,
)
from cbmfile.core.types import TRIAL_FIELDS, TrialTable, ValidationError

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_FORMAT = 2
EXIT_IO = 3
EXIT_GRAMMAR = 4
EXIT_RESOLUTION = 5


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cbmfile",
        description="cbmfile: parse experiment/build files and expand trial tables",
    )
    parser.add_argument("--version", action="version", version=f"cbmfile {__version__}")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log progress at DEBUG level"
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Report grammar errors as diagnostics instead of failing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- tokens ---
    tokens_parser = subparsers.add_parser("tokens", help="Dump the raw whitespace tokens")
    tokens_parser.add_argument("file", type=str, help="Path to input file")

    # --- lex ---
    lex_parser = subparsers.add_parser("lex", help="Dump the lexed tokens")
    lex_parser.add_argument("file", type=str, help="Path to input file")

    # --- parse ---
    parse_parser = subparsers.add_parser("parse", help="Parse a file and print it as JSON")
    parse_parser.add_argument("file", type=str, help="Path to input file")
    parse_parser.add_argument(
        "--kind",
        choices=["run", "build"],
        default=None,
        help="Expected document kind (default: read it from the header)",
    )
    parse_parser.add_argument(
        "--output", "-o", type=str, default=None, help="Write the JSON here instead"
    )

    # --- check ---
    check_parser = subparsers.add_parser(
        "check", help="Parse and validate a file, listing every diagnostic"
    )
    check_parser.add_argument("file", type=str, help="Path to input file")

    # --- trials ---
    trials_parser = subparsers.add_parser(
        "trials", help="Expand an experiment file into its trial table"
    )
    trials_parser.add_argument("file", type=str, help="Path to experiment file")
    trials_parser.add_argument(
        "--output", "-o", type=str, default=None, help="Write the table as JSON here"
    )
    trials_parser.add_argument(
        "--json", action="store_true", help="Print the table as JSON instead of a table"
    )

    return parser


def cmd_tokens(args: argparse.Namespace, config: CbmFileConfig) -> int:
    """Print the tokenizer output in the bracketed dump format."""
    from cbmfile.dsl.tokenizer import tokenize_file
    from cbmfile.trials.serializer import format_raw_lines

    lines = tokenize_file(args.file, encoding=config.encoding)
    sys.stdout.write(format_raw_lines(lines))
    return EXIT_OK


def cmd_lex(args: argparse.Namespace, config: CbmFileConfig) -> int:
    """Print the lexer output in the bracketed dump format."""
    from cbmfile.dsl.lexer import Lexer
    from cbmfile.dsl.tokenizer import tokenize_file
    from cbmfile.trials.serializer import format_lexed_tokens

    tokens = Lexer(tokenize_file(args.file, encoding=config.encoding)).lex()
    sys.stdout.write(format_lexed_tokens(tokens))
    return EXIT_OK


def cmd_parse(args: argparse.Namespace, config: CbmFileConfig) -> int:
    """Parse a file and emit the document as JSON."""
    from cbmfile.dsl.parser import parse_file
    from cbmfile.dsl.tokens import DocumentKind
    from cbmfile.trials.serializer import document_to_json

    kind = DocumentKind(args.kind) if args.kind else None
    document = parse_file(args.file, kind, config)
    payload = document_to_json(document)

    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
        print(f"Written to: {args.output}", file=sys.stderr)
    else:
        sys.stdout.write(payload + "\n")
    return EXIT_OK


def cmd_check(args: argparse.Namespace, config: CbmFileConfig) -> int:
    """Parse leniently, validate, and report every diagnostic found."""
    from cbmfile.dsl.ast_nodes import ParsedExperimentDocument
    from cbmfile.dsl.parser import parse_file
    from cbmfile.trials.validator import validate_experiment

    document = parse_file(args.file, None, dataclasses.replace(config, strict=False))
    parse_problems = list(document.diagnostics)
    semantic_problems: list[ValidationError] = []
    if isinstance(document, ParsedExperimentDocument):
        semantic_problems = validate_experiment(document)

    console = Console()
    problems = parse_problems + semantic_problems
    if not problems:
        console.print(f"{escape(args.file)}: [green]OK[/green] ({document.kind} file)")
        return EXIT_OK

    console.print(_diagnostics_table(args.file, problems))
    if any(p.is_error for p in parse_problems):
        return EXIT_GRAMMAR
    if any(p.is_error for p in semantic_problems):
        return EXIT_RESOLUTION
    return EXIT_OK


def cmd_trials(args: argparse.Namespace, config: CbmFileConfig) -> int:
    """Resolve an experiment file and show its trial table."""
    from cbmfile.dsl.parser import parse_experiment_file
    from cbmfile.trials.serializer import trial_table_to_json
    from cbmfile.trials.translator import translate_parsed_trials

    document = parse_experiment_file(args.file, config)
    table = translate_parsed_trials(document, config)

    if args.output:
        Path(args.output).write_text(trial_table_to_json(table) + "\n", encoding="utf-8")
        print(f"Written {table.num_trials} trials to: {args.output}", file=sys.stderr)
    if args.json:
        sys.stdout.write(trial_table_to_json(table) + "\n")
    elif not args.output:
        Console().print(_trial_table(args.file, table))
    return EXIT_OK


def _diagnostics_table(source: str, problems: list[ValidationError]) -> Table:
    table = Table(title=f"Diagnostics for {escape(source)}")
    table.add_column("Severity", width=8)
    table.add_column("Line", justify="right", style="cyan")
    table.add_column("Message", style="white")

    for problem in problems:
        style = "red bold" if problem.is_error else "yellow"
        table.add_row(
            f"[{style}]{problem.severity.value}[/{style}]",
            str(problem.line) if problem.line else "-",
            escape(problem.message),
        )
    return table


def _trial_table(source: str, trials: TrialTable) -> Table:
    table = Table(title=f"{escape(source)}: {trials.num_trials} trials")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Trial", style="white")
    for trial_field in TRIAL_FIELDS:
        table.add_column(trial_field.name, justify="right")

    for i, row in enumerate(trials.rows()):
        values = [_format_value(row[trial_field.name]) for trial_field in TRIAL_FIELDS]
        table.add_row(str(i), escape(row["trial_name"]), *values)
    return table


def _format_value(value: int | float) -> str:
    return f"{value:g}" if isinstance(value, float) else str(value)


def _configure_logging(config: CbmFileConfig, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.log_level, logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    config = get_config()
    if args.lenient:
        config = dataclasses.replace(config, strict=False)
    _configure_logging(config, args.verbose)

    dispatch = {
        "tokens": cmd_tokens,
        "lex": cmd_lex,
        "parse": cmd_parse,
        "check": cmd_check,
        "trials": cmd_trials,
    }

    try:
        return dispatch[args.command](args, config)
    except DslIOError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_IO
    except GrammarError as exc:
        print(f"Error: {args.file} has grammar errors:", file=sys.stderr)
        for diagnostic in exc.diagnostics:
            print(f"  {diagnostic}", file=sys.stderr)
        return EXIT_GRAMMAR
    except ResolutionError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_RESOLUTION
    except FormatError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FORMAT
    except OSError as exc:
        print(f"Error: could not write output: {exc}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
