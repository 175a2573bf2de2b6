import sys
import os
import argparse
import logging
import tempfile
from rich.console import Console
from rich.syntax import Syntax
from rich.text import Text
from .compiler.splitter import split_command
from .engine import ExplorerEngine
from .errors import AsmBoltError, Cancelled
from .ui.app import run_tui

DEFAULT_LOG_FILE = os.path.join(tempfile.gettempdir(), "asmbolt.log")


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(description="asmbolt: assembly for one file, compiled the way your build compiles it")
    parser.add_argument("file", nargs="?", help="Source file listed in compile_commands.json")
    parser.add_argument("--workspace", default=None, help="Workspace folder (default: current directory)")
    parser.add_argument("--command", default=None, help="Full compile command to use instead of the database entry")
    parser.add_argument("--print", dest="print_asm", action="store_true", help="Print the assembly instead of opening the TUI")
    parser.add_argument("--log-file", default=None, help=f"Write logs to this file (TUI default: {DEFAULT_LOG_FILE})")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _setup_logging(args):
    level = logging.DEBUG if args.verbose else logging.INFO
    log_file = args.log_file
    # stderr belongs to the TUI when it is running
    if log_file is None and not args.print_asm:
        log_file = DEFAULT_LOG_FILE
    logging.basicConfig(
        level=level,
        filename=log_file,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def print_assembly(source_file: str, workspace_folder: str, override_arguments=None) -> int:
    """Compiles once and writes the assembly to stdout. Returns the exit code."""
    err_console = Console(stderr=True, highlight=False)
    engine = ExplorerEngine(workspace_folder, watch=False)
    try:
        asm = engine.compile(source_file, override_arguments)
    except Cancelled:
        err_console.print(Text("Compilation cancelled", style="yellow"))
        return 130
    except AsmBoltError as e:
        err_console.print(Text(f"Error: {e}", style="bold red"))
        return 1
    finally:
        engine.shutdown()

    console = Console(highlight=False)
    if console.is_terminal:
        console.print(Syntax(asm, "gas", theme="ansi_light", line_numbers=True))
    else:
        # Piped: plain text, untouched
        sys.stdout.write(asm)
        if asm and not asm.endswith("\n"):
            sys.stdout.write("\n")
    return 0


def run():
    parser = _build_parser()
    args = parser.parse_args()

    if not args.file:
        print("Error: No source file specified.")
        print("Usage: asmbolt <file.cpp> [--workspace DIR] [--print]")
        sys.exit(1)

    # Resolve to absolute path immediately
    abs_path = os.path.abspath(args.file)

    if not os.path.exists(abs_path):
        print(f"Error: File not found: {abs_path}")
        sys.exit(1)

    _setup_logging(args)
    workspace = os.path.abspath(args.workspace or os.getcwd())
    override = split_command(args.command) if args.command else None

    if args.print_asm:
        sys.exit(print_assembly(abs_path, workspace, override))

    try:
        run_tui(abs_path, workspace, override)
    except KeyboardInterrupt:
        pass
    except Exception as e:
        print(f"Fatal Error: {e}")
        sys.exit(1)

if __name__ == "__main__":
    run()
