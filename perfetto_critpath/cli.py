"""CLI entry point for Perfetto critical path analysis."""

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from perfetto_critpath.engine import TraceEngine
from perfetto_critpath.orchestrator import CriticalPathOrchestrator
from perfetto_critpath.selection import (
    THREAD_STATE_SELECTION,
    THREAD_STATE_TRACK_KIND,
    AreaSelection,
    LegacySelection,
    NoSelection,
    ResolutionFailure,
    SelectionResolver,
    TimeWindow,
    load_ui_state,
)
from perfetto_critpath.sinks import (
    ConsoleModal,
    DebugTrack,
    DebugTrackRegistry,
    FailureReporter,
    QueryResultsTabs,
    render_tab,
    render_track,
    tab_to_dict,
    track_to_dict,
)
from perfetto_critpath.variants import QueryVariant, all_variants, get_variant, get_variant_for_command

app = typer.Typer(
    help="Perfetto critical path - Run critical path analyses over a thread selection",
    no_args_is_help=True
)
console = Console()


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Perfetto critical path - Run critical path analyses over a thread selection."""
    setup_logging(verbose)


def _check_trace(trace: Path) -> None:
    if not trace.exists():
        console.print(f"[red]Error:[/red] Trace file not found: {trace}")
        raise typer.Exit(code=1)

    if not trace.is_file():
        console.print(f"[red]Error:[/red] Path is not a file: {trace}")
        raise typer.Exit(code=1)


def _lookup_variant(command: str) -> QueryVariant:
    try:
        return get_variant_for_command(command)
    except KeyError:
        pass
    try:
        return get_variant(command)
    except KeyError:
        console.print(f"[red]Error:[/red] Unknown command: {command}")
        console.print("Run [bold]commands[/bold] to list the available commands.")
        raise typer.Exit(code=1)


@app.command()
def commands():
    """List the critical path commands."""
    table = Table(title="Critical path commands")
    table.add_column("Variant", no_wrap=True)
    table.add_column("Command id", no_wrap=True)
    table.add_column("Selection")
    table.add_column("Module")
    table.add_column("Output")
    for variant in all_variants():
        table.add_row(
            variant.variant_id,
            variant.command_id,
            variant.scope.value,
            variant.required_module,
            variant.sink.value,
        )
    console.print(table)


@app.command()
def threads(
    trace: Path = typer.Option(..., "--trace", help="Path to Perfetto trace file"),
):
    """List the thread state tracks that can be selected."""
    _check_trace(trace)

    async def _load():
        engine = await asyncio.to_thread(TraceEngine, str(trace))
        try:
            return await load_ui_state(engine)
        finally:
            engine.close()

    try:
        state = asyncio.run(_load())
    except Exception as e:
        console.print(f"[red]Error during analysis:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[blue]Trace bounds:[/blue] {state.trace_span.start} - {state.trace_span.end}")
    table = Table(title="Thread state tracks")
    table.add_column("utid", justify="right")
    table.add_column("Track uri", no_wrap=True)
    table.add_column("Title")
    for track in state.tracks.tracks():
        if track.kind == THREAD_STATE_TRACK_KIND:
            table.add_row(str(track.utid), track.uri, track.title)
    console.print(table)


def build_selection(
    thread_state_track: Optional[str],
    area_tracks: tuple[str, ...],
    area_span: tuple[Optional[int], Optional[int]],
    visible_window: TimeWindow,
):
    if area_tracks:
        start, end = area_span
        return AreaSelection(
            track_uris=area_tracks,
            start=start if start is not None else visible_window.start,
            end=end if end is not None else visible_window.end,
        )
    if thread_state_track:
        return LegacySelection(kind=THREAD_STATE_SELECTION, track_uri=thread_state_track)
    return NoSelection()


async def _invoke(
    trace: Path,
    variant: QueryVariant,
    utid: Optional[int],
    thread_state_track: Optional[str],
    area_tracks: tuple[str, ...],
    area_span: tuple[Optional[int], Optional[int]],
    visible_span: tuple[Optional[int], Optional[int]],
    limit: int,
) -> dict | None:
    # Starting the trace processor and loading the trace blocks.
    engine = await asyncio.to_thread(TraceEngine, str(trace))
    try:
        state = await load_ui_state(engine)
        visible_start, visible_end = visible_span
        state.visible_window = TimeWindow(
            visible_start if visible_start is not None else state.trace_span.start,
            visible_end if visible_end is not None else state.trace_span.end,
        )
        state.selection = build_selection(
            thread_state_track, area_tracks, area_span, state.visible_window
        )

        orchestrator = CriticalPathOrchestrator(
            engine=engine,
            resolver=SelectionResolver(state),
            tracks=DebugTrackRegistry(engine),
            tabs=QueryResultsTabs(engine),
            reporter=FailureReporter(ConsoleModal(console)),
        )
        result = await orchestrator.run(variant, utid)
        if isinstance(result, ResolutionFailure):
            return None
        if isinstance(result, DebugTrack):
            render_track(console, result, limit)
            return track_to_dict(result)
        render_tab(console, result, limit)
        return tab_to_dict(result)
    finally:
        engine.close()


@app.command()
def run(
    command: str = typer.Argument(..., help="Command id or variant id (see `commands`)"),
    trace: Path = typer.Option(..., "--trace", help="Path to Perfetto trace file"),
    utid: Optional[int] = typer.Option(None, "--utid", help="Analyse this thread instead of the selection"),
    thread_state_track: Optional[str] = typer.Option(
        None, "--thread-state-track", help="Select a thread state slice on this track uri"
    ),
    area_track: Optional[List[str]] = typer.Option(
        None, "--area-track", help="Track uri covered by the area selection (repeatable, in order)"
    ),
    start: Optional[int] = typer.Option(None, "--start", help="Area selection start timestamp"),
    end: Optional[int] = typer.Option(None, "--end", help="Area selection end timestamp"),
    visible_start: Optional[int] = typer.Option(None, "--visible-start", help="Visible window start timestamp"),
    visible_end: Optional[int] = typer.Option(None, "--visible-end", help="Visible window end timestamp"),
    limit: int = typer.Option(20, "--limit", help="Number of result rows to print"),
    out: Optional[Path] = typer.Option(None, "--out", help="Write the result as JSON to this path"),
):
    """Run a critical path command over the given selection."""
    variant = _lookup_variant(command)

    if thread_state_track and area_track:
        console.print("[red]Error:[/red] --thread-state-track and --area-track are mutually exclusive")
        raise typer.Exit(code=1)

    if (start is not None or end is not None) and not area_track:
        console.print("[red]Error:[/red] --start/--end need at least one --area-track")
        raise typer.Exit(code=1)

    _check_trace(trace)

    console.print(f"[blue]Analyzing trace:[/blue] {trace}")
    console.print(f"[blue]Command:[/blue] {variant.command_name}")
    if utid is not None:
        console.print(f"[blue]Thread:[/blue] utid {utid}")

    try:
        result = asyncio.run(
            _invoke(
                trace,
                variant,
                utid,
                thread_state_track,
                tuple(area_track or ()),
                (start, end),
                (visible_start, visible_end),
                limit,
            )
        )
    except Exception as e:
        console.print(f"[red]Error during analysis:[/red] {e}")
        raise typer.Exit(code=1)

    if result is None:
        raise typer.Exit(code=1)

    if out is not None:
        with open(out, "w") as f:
            json.dump(result, f, indent=2)
        console.print(f"[green]✓[/green] Result written to: {out}")
    console.print(f"[green]✓[/green] {variant.command_name}: {len(result['rows'])} rows")


if __name__ == "__main__":
    app()
