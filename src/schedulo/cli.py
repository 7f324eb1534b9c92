"""CLI entry point for the timetable scheduler."""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .exceptions import ConfigurationError, RepositoryError
from .exporters import ExcelExporter, get_exporter
from .repository import FileRepository, ScheduleRepository, SQLRepository
from .scheduler import (
    Assignment,
    ScheduleStatus,
    SchedulerConfig,
    TimetableScheduler,
    find_conflicts,
)

app = typer.Typer(
    name="schedulo",
    help="Generate conflict-free weekly course timetables",
    add_completion=False,
)
console = Console()

EXIT_DATA_ERROR = 1
EXIT_UNSATISFIABLE = 2


class OutputFormat(str, Enum):
    """Output format options."""

    json = "json"
    csv = "csv"
    excel = "excel"


class Strategy(str, Enum):
    """Search strategy options."""

    backtracking = "backtracking"
    cpsat = "cpsat"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _open_repository(data: Optional[Path], database: Optional[str]) -> ScheduleRepository:
    if database:
        try:
            return SQLRepository(database)
        except RepositoryError as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            raise typer.Exit(EXIT_DATA_ERROR)
    if data is None:
        console.print("[bold red]Error:[/bold red] Give a data directory/workbook or --database")
        raise typer.Exit(EXIT_DATA_ERROR)
    if not data.exists():
        console.print(f"[bold red]Error:[/bold red] File not found: {data}")
        raise typer.Exit(EXIT_DATA_ERROR)
    return FileRepository(data)


@app.command()
def generate(
    data: Annotated[
        Optional[Path],
        typer.Argument(help="Directory of CSV files or an Excel workbook"),
    ] = None,
    semester: Annotated[int, typer.Option("--semester", help="Semester number")] = 1,
    year: Annotated[int, typer.Option("--year", help="Academic year")] = 2024,
    name: Annotated[str, typer.Option("--name", help="Timetable name")] = "Timetable",
    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", help="JSON file with scheduler settings"),
    ] = None,
    strategy: Annotated[
        Optional[Strategy],
        typer.Option("--strategy", help="Search strategy"),
    ] = None,
    max_backtracks: Annotated[
        Optional[int],
        typer.Option("--max-backtracks", help="Maximum backtracking steps"),
    ] = None,
    time_budget: Annotated[
        Optional[int],
        typer.Option("--time-budget", help="Time budget in milliseconds"),
    ] = None,
    database: Annotated[
        Optional[str],
        typer.Option("--database", help="SQLAlchemy database URL to read from"),
    ] = None,
    persist: Annotated[
        bool,
        typer.Option("--persist", help="Store the timetable in the data source"),
    ] = False,
    output: Annotated[
        Optional[Path],
        typer.Option("-o", "--output", help="Output file or directory path"),
    ] = None,
    format: Annotated[
        OutputFormat,
        typer.Option("-f", "--format", help="Output format"),
    ] = OutputFormat.json,
    verbose: Annotated[
        bool,
        typer.Option("-v", "--verbose", help="Show detailed output"),
    ] = False,
) -> None:
    """Generate a timetable for one semester."""
    _setup_logging(verbose)
    repository = _open_repository(data, database)

    try:
        config = SchedulerConfig.from_json(config_file) if config_file else SchedulerConfig()
        if strategy is not None:
            config.strategy = strategy.value
        if max_backtracks is not None:
            config.max_backtrack_steps = max_backtracks
        if time_budget is not None:
            config.time_budget_ms = time_budget

        scheduler = TimetableScheduler(repository, config)
        with console.status("[bold green]Generating timetable..."):
            result = scheduler.generate(semester, year, name, persist=persist)
    except (ConfigurationError, RepositoryError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(EXIT_DATA_ERROR)

    _show_result(result, verbose)

    if output:
        if format == OutputFormat.excel:
            exporter = ExcelExporter(
                rooms=repository.load_rooms(),
                courses=repository.load_courses(),
                faculty=repository.load_faculty(),
                grid=repository.load_time_slot_grid(),
            )
        else:
            exporter = get_exporter(format.value)

        if format == OutputFormat.csv:
            output_path = output if output.is_dir() else output.parent / output.stem
        else:
            suffix = ".xlsx" if format == OutputFormat.excel else ".json"
            output_path = output if output.suffix else output.with_suffix(suffix)

        with console.status(f"[bold green]Exporting to {format.value}..."):
            exporter.export(result, output_path)
        console.print(f"\n[bold green]✓[/bold green] Exported to: {output_path}")

    if result.timetable_id is not None:
        console.print(f"[bold green]✓[/bold green] Saved as timetable {result.timetable_id}")

    if result.status == ScheduleStatus.UNSATISFIABLE:
        raise typer.Exit(EXIT_UNSATISFIABLE)


def _show_result(result, verbose: bool) -> None:
    stats = result.statistics
    colour = {
        ScheduleStatus.SCHEDULED: "green",
        ScheduleStatus.PARTIAL: "yellow",
        ScheduleStatus.UNSATISFIABLE: "red",
    }[result.status]

    console.print(f"\n[bold]Timetable:[/bold] {result.schedule.name}")
    console.print(f"  Status: [bold {colour}]{result.status.value}[/bold {colour}]")
    console.print(f"  Strategy: {result.strategy}")
    console.print(f"  Sessions placed: {stats.placed_count} of {stats.total_sessions}")
    console.print(f"  Backtracks: {stats.backtrack_count}")
    console.print(f"  Elapsed: {stats.elapsed_ms} ms")

    if stats.by_day:
        console.print("\n[bold]Distribution by day:[/bold]")
        for day, count in stats.by_day.items():
            console.print(f"  {day.capitalize()}: {count}")

    if verbose and stats.room_utilization:
        console.print("\n[bold]Room utilization:[/bold]")
        for room, share in sorted(stats.room_utilization.items(), key=lambda x: -x[1]):
            console.print(f"  {room}: {share:.1%}")

    if result.unplaced:
        table = Table(title="Unplaced Sections")
        table.add_column("Section", style="cyan")
        table.add_column("Reason", style="yellow")
        table.add_column("Details")
        for entry in result.unplaced:
            table.add_row(str(entry.section_id), entry.reason.value, entry.last_failure_reason)
        console.print(table)


@app.command()
def validate(
    data: Annotated[
        Optional[Path],
        typer.Argument(help="Directory of CSV files or an Excel workbook"),
    ] = None,
    semester: Annotated[int, typer.Option("--semester", help="Semester number")] = 1,
    year: Annotated[int, typer.Option("--year", help="Academic year")] = 2024,
    database: Annotated[
        Optional[str],
        typer.Option("--database", help="SQLAlchemy database URL to read from"),
    ] = None,
) -> None:
    """Report sections that can never be placed."""
    _setup_logging(False)
    repository = _open_repository(data, database)

    try:
        with console.status("[bold green]Validating data..."):
            unplaceable = TimetableScheduler(repository).validate(semester, year)
    except (ConfigurationError, RepositoryError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(EXIT_DATA_ERROR)

    if not unplaceable:
        console.print("[bold green]✓ Every section can be placed[/bold green]")
        return

    console.print(f"[bold red]✗ {len(unplaceable)} sections can never be placed[/bold red]")
    for entry in unplaceable:
        console.print(f"  [red]• Section {entry.section_id}: {entry.last_failure_reason}[/red]")
    raise typer.Exit(EXIT_DATA_ERROR)


@app.command()
def audit(
    schedule_file: Annotated[
        Path,
        typer.Argument(help="Timetable JSON written by the generate command"),
    ],
    data: Annotated[
        Optional[Path],
        typer.Argument(help="Directory of CSV files or an Excel workbook"),
    ] = None,
    database: Annotated[
        Optional[str],
        typer.Option("--database", help="SQLAlchemy database URL to read from"),
    ] = None,
    slack: Annotated[
        float,
        typer.Option("--slack", help="Permitted room capacity overrun fraction"),
    ] = 0.0,
) -> None:
    """Check an exported timetable for conflicts."""
    if not schedule_file.exists():
        console.print(f"[bold red]Error:[/bold red] File not found: {schedule_file}")
        raise typer.Exit(EXIT_DATA_ERROR)

    repository = _open_repository(data, database)
    try:
        with open(schedule_file, encoding="utf-8") as f:
            body = json.load(f)
        assignments = [Assignment.from_dict(a) for a in body.get("assignments", [])]
        conflicts = find_conflicts(
            assignments,
            repository.load_sections(body["semester"], body["year"]),
            repository.load_rooms(),
            repository.load_faculty(),
            slack=slack,
            courses=repository.load_courses(),
        )
    except (json.JSONDecodeError, KeyError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] Invalid timetable file: {e}")
        raise typer.Exit(EXIT_DATA_ERROR)
    except RepositoryError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(EXIT_DATA_ERROR)

    console.print(f"\n[bold]Audit of:[/bold] {schedule_file.name}")
    console.print(f"  Assignments: {len(assignments)}")

    if not conflicts:
        console.print("[bold green]✓ No conflicts found[/bold green]")
        return

    table = Table(title=f"Conflicts ({len(conflicts)})")
    table.add_column("Kind", style="cyan")
    table.add_column("Day", style="green")
    table.add_column("Period", style="green")
    table.add_column("Details")
    for conflict in conflicts:
        table.add_row(conflict.kind, str(conflict.day), str(conflict.slot), conflict.message)
    console.print(table)
    raise typer.Exit(EXIT_DATA_ERROR)


if __name__ == "__main__":
    app()
