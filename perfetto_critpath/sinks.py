"""Result sinks: debug tracks, query result tabs and modal notices."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Protocol

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from perfetto_critpath.engine import Engine
from perfetto_critpath.selection import ResolutionFailure
from perfetto_critpath.variants import QueryTabSpec, TrackSpec

logger = logging.getLogger(__name__)


def drop_unlabelled_rows(rows: list[dict], label_column: str) -> list[dict]:
    """Keep only rows with a label, preserving their order."""
    return [row for row in rows if row.get(label_column) is not None]


@dataclass
class DebugTrack:
    track_id: int
    spec: TrackSpec
    rows: list[dict] = field(default_factory=list)

    @property
    def uri(self) -> str:
        return f"/debug_track_{self.track_id}"


@dataclass
class QueryResultsTab:
    tab_id: int
    spec: QueryTabSpec
    column_names: list[str] = field(default_factory=list)
    rows: list[dict] = field(default_factory=list)


class TrackMaterializer(Protocol):
    async def register(self, spec: TrackSpec) -> DebugTrack: ...


class TabularViewer(Protocol):
    async def open(self, spec: QueryTabSpec) -> QueryResultsTab: ...


class Modal(Protocol):
    def show(self, title: str, content: str) -> None: ...


class DebugTrackRegistry:
    """Materializes query-defined tracks. Every registration adds a new track."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.tracks: list[DebugTrack] = []
        self._ids = itertools.count(1)

    async def register(self, spec: TrackSpec) -> DebugTrack:
        rows = await self.engine.query(spec.query_source)
        if spec.require_label:
            rows = drop_unlabelled_rows(rows, spec.label_column)
        rows = [{col: row.get(col) for col in spec.output_column_names} for row in rows]
        track = DebugTrack(track_id=next(self._ids), spec=spec, rows=rows)
        self.tracks.append(track)
        logger.info("Added debug track %s '%s' with %d rows", track.uri, spec.title, len(rows))
        return track


class QueryResultsTabs:
    """Runs ad hoc queries and keeps each result in its own tab."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.tabs: list[QueryResultsTab] = []
        self._ids = itertools.count(1)

    async def open(self, spec: QueryTabSpec) -> QueryResultsTab:
        column_names, rows = await self.engine.query_with_columns(spec.query)
        tab = QueryResultsTab(
            tab_id=next(self._ids),
            spec=spec,
            column_names=column_names,
            rows=rows,
        )
        self.tabs.append(tab)
        logger.info("Opened query results tab '%s' with %d rows", spec.title, len(rows))
        return tab


class ConsoleModal:
    def __init__(self, console: Console):
        self.console = console

    def show(self, title: str, content: str) -> None:
        self.console.print(Panel(content, title=title, border_style="red"))


FAILURE_MESSAGES = {
    ResolutionFailure.AREA_SELECTION_REQUIRED: (
        "Error: range selection required",
        "This command requires an area selection over a thread state track.",
    ),
    ResolutionFailure.THREAD_STATE_REQUIRED: (
        "Error: thread state selection required",
        "This command requires a thread state slice to be selected.",
    ),
}


class FailureReporter:
    def __init__(self, modal: Modal):
        self.modal = modal

    def report(self, failure: ResolutionFailure) -> None:
        title, content = FAILURE_MESSAGES[failure]
        self.modal.show(title, content)


def _cell(value) -> str:
    return "" if value is None else str(value)


def render_track(console: Console, track: DebugTrack, limit: int) -> None:
    roles = track.spec.display_columns
    table = Table(title=f"{track.spec.title} ({track.uri})")
    table.add_column("ts", justify="right")
    table.add_column("dur", justify="right")
    table.add_column(roles["label"])
    table.add_column("table_name")
    for row in track.rows[:limit]:
        table.add_row(
            _cell(row.get(roles["timestamp"])),
            _cell(row.get(roles["duration"])),
            _cell(row.get(roles["label"])),
            _cell(row.get("table_name")),
        )
    console.print(table)
    if len(track.rows) > limit:
        console.print(f"[dim]... {len(track.rows) - limit} more rows[/dim]")


def render_tab(console: Console, tab: QueryResultsTab, limit: int) -> None:
    table = Table(title=tab.spec.title)
    for column in tab.column_names:
        table.add_column(column)
    for row in tab.rows[:limit]:
        table.add_row(*[_cell(row.get(column)) for column in tab.column_names])
    console.print(table)
    if len(tab.rows) > limit:
        console.print(f"[dim]... {len(tab.rows) - limit} more rows[/dim]")


def track_to_dict(track: DebugTrack) -> dict:
    return {
        "uri": track.uri,
        "title": track.spec.title,
        "columns": list(track.spec.output_column_names),
        "display_columns": track.spec.display_columns,
        "query": track.spec.query_source,
        "rows": track.rows,
    }


def tab_to_dict(tab: QueryResultsTab) -> dict:
    return {
        "title": tab.spec.title,
        "columns": tab.column_names,
        "query": tab.spec.query,
        "rows": tab.rows,
    }
