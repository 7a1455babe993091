"""
CLI interface for flownote with Rich output.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from flownote.config import Settings, load_settings
from flownote.file_watcher import FileWatcher
from flownote.globals_store import GlobalsStore
from flownote.highlight import THEME, highlight_line
from flownote.kernel import DocumentKernel, EvaluationOutput, evaluate_document
from flownote.parser import LineType, parse_document
from flownote.utils import (
    format_global_value,
    format_rich_result,
    format_value,
    get_result_status,
    is_valid_variable_name,
    parse_value,
)
from flownote.values import to_jsonable

console = Console(theme=THEME)
logger = logging.getLogger(__name__)

EXAMPLE_CONTENT = """Planning trip to Seattle

flights = 450
hotel.perNight = 180
hotel.nights = 4
hotel.total = hotel.perNight * hotel.nights

food.budget = 75 * hotel.nights
activities = 200

total = sum(flights, hotel.total, food.budget, activities)

// Define a tip calculator function
tip(amount, pct) = amount * pct / 100

dinner = 85
tip(dinner, 20)

// Use math functions
sqrt(16) + pow(2, 3)
"""


def configure_logging(level: str):
    """Send log records through Rich, once."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def _load_globals(settings: Settings) -> dict:
    try:
        variables = GlobalsStore(settings.globals_path).load()
    except ValueError as e:
        raise click.ClickException(str(e))
    logger.debug("Loaded %d global variable(s) from %s", len(variables), settings.globals_path)
    return variables


def _parse_var_options(values: tuple[str, ...]) -> dict:
    variables = {}
    for item in values:
        name, sep, raw = item.partition("=")
        name = name.strip()
        if not sep or not is_valid_variable_name(name):
            raise click.BadParameter(f"expected NAME=VALUE, got {item!r}", param_hint="--var")
        try:
            variables[name] = parse_value(raw)
        except ValueError as e:
            raise click.BadParameter(f"{name}: {e}", param_hint="--var")
    return variables


def _read_document(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def results_table(content: str, output: EvaluationOutput, title: Optional[str] = None) -> Table:
    """Table with one row per line: number, highlighted source, result."""
    table = Table(title=title, border_style="blue", show_header=True, expand=False)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Line", overflow="fold")
    table.add_column("Result", overflow="fold")

    for line, result in zip(content.split("\n"), output.results):
        _, style = get_result_status(result)
        number = Text(str(result.line_number), style=style)
        table.add_row(number, highlight_line(line), format_rich_result(result))
    return table


def variables_table(variables: dict, title: str = "Variables") -> Table:
    table = Table(title=title, border_style="green")
    table.add_column("Name", style="bold cyan")
    table.add_column("Value", style="white")
    for name in sorted(variables):
        table.add_row(name, format_value(variables[name]))
    return table


def _summary(output: EvaluationOutput) -> str:
    errors = len(output.errors)
    values = sum(1 for r in output.results if r.has_value)
    if errors:
        return f"[yellow]{values} value(s), {errors} error(s)[/yellow]"
    return f"[green]{values} value(s), no errors[/green]"


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool):
    """flownote: plain-text notes with live calculations."""
    try:
        settings = load_settings()
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}")
    configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@main.command()
@click.argument("path", type=click.Path(), default="note.flow")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file")
def new(path: str, force: bool):
    """Create a new document with example content."""
    target = Path(path)
    if target.exists() and not force:
        raise click.ClickException(f"{path} already exists (use --force to overwrite)")

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(EXAMPLE_CONTENT, encoding="utf-8")

    console.print(Panel(
        f"[green]Created:[/green] {path}\n"
        f"[dim]Lines:[/dim] {len(EXAMPLE_CONTENT.splitlines())}",
        title="[bold blue]flownote[/bold blue]",
        border_style="green",
    ))
    console.print(f"\n[dim]Evaluate with:[/dim] flownote run {path}")


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--var", "var_options", multiple=True, metavar="NAME=VALUE",
              help="Extra global variable (repeatable)")
@click.option("--no-globals", is_flag=True, help="Ignore stored global variables")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.option("--show-vars", is_flag=True, help="Print the final variables")
@click.option("--strict", is_flag=True, help="Exit with status 1 if any line fails")
@click.pass_context
def run(ctx: click.Context, path: str, var_options: tuple, no_globals: bool,
        as_json: bool, show_vars: bool, strict: bool):
    """Evaluate a document and print each line's result."""
    settings = _settings(ctx)
    external = {} if no_globals else _load_globals(settings)
    external.update(_parse_var_options(var_options))

    content = _read_document(path)
    output = evaluate_document(content, external)

    if as_json:
        click.echo(json.dumps(output.to_dict(), indent=2))
    else:
        console.print(results_table(content, output, title=path))
        if show_vars:
            console.print(variables_table(output.variables))
        console.print(_summary(output))

    if strict and output.errors:
        ctx.exit(1)


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def classify(path: str):
    """Show how each line of a document is classified."""
    content = _read_document(path)

    table = Table(title=path, border_style="blue")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Type", style="bold")
    table.add_column("Line", overflow="fold")
    table.add_column("Detail", style="dim", overflow="fold")

    for number, parsed in enumerate(parse_document(content), start=1):
        if parsed.type == LineType.FUNCTION_DEF:
            detail = f"{parsed.func_name}({', '.join(parsed.func_params)})"
        elif parsed.var_name:
            detail = f"{parsed.var_name} ="
        else:
            detail = ""
        table.add_row(str(number), parsed.type.value, highlight_line(parsed.raw), detail)

    console.print(table)


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--var", "var_options", multiple=True, metavar="NAME=VALUE",
              help="Extra global variable (repeatable)")
@click.pass_context
def watch(ctx: click.Context, path: str, var_options: tuple):
    """Re-evaluate a document every time it changes."""
    settings = _settings(ctx)
    external = _load_globals(settings)
    external.update(_parse_var_options(var_options))
    kernel = DocumentKernel(external)

    def render():
        content = _read_document(path)
        output = kernel.execute(content)
        console.clear()
        console.print(results_table(content, output, title=f"{path}  [dim]#{kernel.execution_count}[/dim]"))
        console.print(_summary(output))
        console.print("[dim]Watching for changes, Ctrl+C to stop[/dim]")

    render()
    try:
        with FileWatcher(path, poll_interval=settings.poll_interval) as watcher:
            while True:
                if watcher.wait_for_change(timeout=settings.poll_interval):
                    render()
    except KeyboardInterrupt:
        console.print("\n[green]Stopped watching.[/green]")


@main.command()
@click.pass_context
def repl(ctx: click.Context):
    """Interactive document: each line is appended and everything re-evaluated."""
    settings = _settings(ctx)
    kernel = DocumentKernel(_load_globals(settings))

    console.print(Panel(
        "Type lines of a document. Commands: [bold cyan]:vars[/bold cyan] "
        "[bold cyan]:clear[/bold cyan] [bold cyan]:quit[/bold cyan]",
        title="[bold blue]flownote[/bold blue]",
        border_style="blue",
    ))

    while True:
        try:
            line = console.input("[bold cyan]>> [/bold cyan]")
        except (KeyboardInterrupt, EOFError):
            break

        command = line.strip()
        if command in (":quit", ":q", "exit"):
            break
        if command == ":vars":
            console.print(variables_table(kernel.get_namespace()))
            continue
        if command == ":clear":
            kernel.reset()
            console.print(Rule(style="dim"))
            continue

        result = kernel.append_line(line)
        rendered = format_rich_result(result)
        if rendered.plain:
            console.print(rendered)

    console.print("\n[green]Goodbye![/green]")


@main.group(name="globals")
def globals_group():
    """Manage global variables available to every document."""


@globals_group.command(name="list")
@click.option("--json", "as_json", is_flag=True, help="Print as JSON")
@click.pass_context
def globals_list(ctx: click.Context, as_json: bool):
    """List global variables."""
    settings = _settings(ctx)
    variables = _load_globals(settings)

    if as_json:
        click.echo(json.dumps(to_jsonable(variables), indent=2))
        return

    if not variables:
        console.print("[yellow]No global variables[/yellow]")
        console.print("[dim]Add one with: flownote globals set NAME VALUE[/dim]")
        return

    table = Table(title="Global Variables", border_style="blue")
    table.add_column("Name", style="bold cyan")
    table.add_column("Value", style="white")
    for name in sorted(variables):
        table.add_row(name, format_global_value(variables[name]))
    console.print(table)


@globals_group.command(name="set")
@click.argument("name")
@click.argument("value")
@click.pass_context
def globals_set(ctx: click.Context, name: str, value: str):
    """Set a global variable. VALUE is parsed as JSON, a number, or a string."""
    settings = _settings(ctx)
    if not is_valid_variable_name(name):
        raise click.BadParameter(f"{name!r} is not a valid variable name", param_hint="NAME")
    try:
        parsed = parse_value(value)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="VALUE")

    store = GlobalsStore(settings.globals_path)
    try:
        store.set(name, parsed)
    except ValueError as e:
        raise click.ClickException(str(e))
    console.print(f"[green]Set[/green] {name} = {format_global_value(parsed)}")


@globals_group.command(name="unset")
@click.argument("name")
@click.pass_context
def globals_unset(ctx: click.Context, name: str):
    """Delete a global variable."""
    settings = _settings(ctx)
    try:
        removed = GlobalsStore(settings.globals_path).delete(name)
    except ValueError as e:
        raise click.ClickException(str(e))
    if not removed:
        raise click.ClickException(f"No global variable named {name!r}")
    console.print(f"[green]Removed[/green] {name}")


if __name__ == "__main__":
    main()
