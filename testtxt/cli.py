import json
import logging
import traceback
from pathlib import Path
from typing import List, Optional

import typer
from decouple import config as env_config
from rich.console import Console
from rich.markup import escape

from . import __version__
from .errors import TesttxtError
from .fixtures import get_files, prepare_in_dir
from .parsing import parse_file
from .schema import Schema, model_from_field_specs

app = typer.Typer(help="testtxt: test descriptions from marker-delimited text files")

logger = logging.getLogger(__name__)

LOG_LEVEL = env_config("TESTTXT_LOG_LEVEL", default="WARNING", cast=str)

DEFAULT_FIELDS = ["title", "input", "output", "error", "todo:bool"]

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """testtxt: test descriptions from marker-delimited text files"""
    logging.basicConfig(level=logging.DEBUG if verbose else LOG_LEVEL.upper())


def _schema(fields: List[str]) -> Schema:
    try:
        return Schema.from_record_type(model_from_field_specs(fields))
    except TesttxtError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}", markup=True, highlight=False, soft_wrap=True)
        raise typer.Exit(2)


@app.command()
def show(
    file: Path = typer.Argument(..., help="Test description file"),
    field: List[str] = typer.Option(
        DEFAULT_FIELDS,
        "--field",
        "-f",
        help="Record field as NAME or NAME:TYPE (str, int, bool); first is the title",
    ),
):
    """Parse FILE and print its records as JSON."""
    schema = _schema(field)
    try:
        records = parse_file(file, schema)
    except OSError as e:
        err_console.print(f"Error: {escape(str(e))}", highlight=False, soft_wrap=True)
        raise typer.Exit(1)
    except TesttxtError as e:
        err_console.print(f"Error: {escape(str(e))}", highlight=False, soft_wrap=True)
        logger.debug(traceback.format_exc())
        raise typer.Exit(1)
    console.print_json(json.dumps([r.model_dump() for r in records]))


@app.command()
def check(
    data_dir: Path = typer.Argument(..., help="Directory with test files"),
    field: List[str] = typer.Option(
        DEFAULT_FIELDS, "--field", "-f", help="Record field as NAME or NAME:TYPE"
    ),
    suffix: Optional[str] = typer.Option(
        None, help="Suffix of test files (default: TESTTXT_SUFFIX or .t)"
    ),
):
    """Parse every test file in DATA_DIR and report the ones that fail."""
    if not data_dir.is_dir():
        err_console.print(f"Error: not a directory: {escape(str(data_dir))}", highlight=False, soft_wrap=True)
        raise typer.Exit(1)
    schema = _schema(field)
    failed = 0
    files = get_files(data_dir, suffix)
    for path in files:
        try:
            records = parse_file(path, schema)
        except (OSError, TesttxtError) as e:
            failed += 1
            console.print(f"[red]FAIL[/red] {escape(str(path))}: {escape(str(e))}", highlight=False, soft_wrap=True)
            continue
        console.print(f"[green]ok[/green]   {escape(str(path))}: {len(records)} tests", highlight=False, soft_wrap=True)
    console.print(f"{len(files) - failed} of {len(files)} files parsed")
    if failed:
        raise typer.Exit(1)


@app.command()
def materialize(
    dest: Path = typer.Argument(..., help="Directory to create"),
    input_file: Path = typer.Argument(..., help="Text with '--- name' file markers"),
    single: str = typer.Option("INPUT", help="File name used when text has no markers"),
):
    """Split INPUT_FILE at file markers and write the parts below DEST."""
    try:
        text = input_file.read_text(encoding="utf-8")
        result = prepare_in_dir(dest, single, text)
    except (OSError, UnicodeDecodeError, TesttxtError) as e:
        err_console.print(f"Error: {escape(str(e))}", highlight=False, soft_wrap=True)
        raise typer.Exit(1)
    typer.echo(str(result))


if __name__ == "__main__":
    app()
