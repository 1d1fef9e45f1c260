"""Critical path query variants: engine module, query template, output columns."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping

from perfetto_critpath.selection import Scope, TimeWindow

THREAD_EXECUTING_SPAN_MODULE = "sched.thread_executing_span"
THREAD_EXECUTING_SPAN_WITH_SLICE_MODULE = "sched.thread_executing_span_with_slice"

PLACEHOLDER_THREAD_NAME = "<thread name>"
DISPLAY_ROLES = ("timestamp", "duration", "label")


class SinkKind(Enum):
    DEBUG_TRACK = "debug_track"
    QUERY_TAB = "query_tab"


@dataclass(frozen=True)
class TrackSpec:
    query_source: str
    output_column_names: tuple[str, ...]
    title: str
    display_columns: dict[str, str] = field(hash=False)
    require_label: bool = False

    @property
    def label_column(self) -> str:
        return self.display_columns["label"]


@dataclass(frozen=True)
class QueryTabSpec:
    query: str
    title: str


@dataclass(frozen=True)
class QueryVariant:
    variant_id: str
    command_id: str
    command_name: str
    required_module: str
    scope: Scope
    sink: SinkKind
    query_template: Callable[[int, TimeWindow], str]
    output_column_names: tuple[str, ...] = ()
    display_columns: Mapping[str, str] = field(default_factory=dict, hash=False)
    require_label: bool = False

    def __post_init__(self):
        # Each variant keeps its own read-only copy of the role mapping.
        object.__setattr__(self, "display_columns", MappingProxyType(dict(self.display_columns)))
        if len(set(self.output_column_names)) != len(self.output_column_names):
            raise ValueError(f"{self.variant_id}: duplicate output column names")
        for role, column in self.display_columns.items():
            if role not in DISPLAY_ROLES:
                raise ValueError(f"{self.variant_id}: unknown display role {role!r}")
            if column not in self.output_column_names:
                raise ValueError(
                    f"{self.variant_id}: display column {column!r} is not an output column"
                )
        if self.sink is SinkKind.DEBUG_TRACK and set(self.display_columns) != set(DISPLAY_ROLES):
            raise ValueError(f"{self.variant_id}: track variants must map every display role")

    def build_query(self, utid: int, window: TimeWindow) -> str:
        return self.query_template(utid, window)

    def build_track_spec(self, utid: int, window: TimeWindow, title: str | None) -> TrackSpec:
        return TrackSpec(
            query_source=self.build_query(utid, window),
            output_column_names=self.output_column_names,
            title=title or PLACEHOLDER_THREAD_NAME,
            display_columns=dict(self.display_columns),
            require_label=self.require_label,
        )

    def build_query_tab_spec(self, utid: int, window: TimeWindow) -> QueryTabSpec:
        return QueryTabSpec(query=self.build_query(utid, window), title="Critical path")


def _lit(value: int) -> str:
    """Render an engine-issued integer as a SQL literal; anything else is rejected."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"Expected an integer query parameter, got {value!r}")
    return str(value)


def _lite_query(function: str) -> Callable[[int, TimeWindow], str]:
    def template(utid: int, window: TimeWindow) -> str:
        return f"""
            SELECT
                cr.id,
                cr.utid,
                cr.ts,
                cr.dur,
                thread.name AS thread_name,
                process.name AS process_name,
                'thread_state' AS table_name
            FROM
                {function}(
                    {_lit(utid)},
                    {_lit(window.start)},
                    {_lit(window.end)} - {_lit(window.start)}) cr
            JOIN thread USING(utid)
            JOIN process USING(upid)
            """
    return template


def _full_by_slice_query(utid: int, window: TimeWindow) -> str:
    return f"""
        SELECT cr.id, cr.utid, cr.ts, cr.dur, cr.name, cr.table_name
        FROM
            _thread_executing_span_critical_path_stack(
                {_lit(utid)},
                {_lit(window.start)},
                {_lit(window.end)} - {_lit(window.start)}) cr
        WHERE name IS NOT NULL
        """


def _full_by_area_query(utid: int, window: TimeWindow) -> str:
    return f"""
        SELECT cr.id, cr.utid, cr.ts, cr.dur, cr.name, cr.table_name
        FROM
            _critical_path_stack(
                {_lit(utid)},
                {_lit(window.start)},
                {_lit(window.end)} - {_lit(window.start)}, 1, 1, 1, 1) cr
        WHERE name IS NOT NULL
        """


def _graph_query(utid: int, window: TimeWindow) -> str:
    return f"""
        SELECT *
        FROM
            _thread_executing_span_critical_path_graph(
                'critical_path',
                {_lit(utid)},
                {_lit(window.start)},
                {_lit(window.end)} - {_lit(window.start)}) cr
        """


LITE_COLUMN_NAMES = (
    "id",
    "utid",
    "ts",
    "dur",
    "thread_name",
    "process_name",
    "table_name",
)
LITE_DISPLAY_COLUMNS = {"timestamp": "ts", "duration": "dur", "label": "thread_name"}

FULL_COLUMN_NAMES = ("id", "utid", "ts", "dur", "name", "table_name")
FULL_DISPLAY_COLUMNS = {"timestamp": "ts", "duration": "dur", "label": "name"}


_VARIANTS: dict[str, QueryVariant] = {}


def register_variant(variant: QueryVariant) -> QueryVariant:
    if variant.variant_id in _VARIANTS:
        raise ValueError(f"Variant already registered: {variant.variant_id}")
    if any(v.command_id == variant.command_id for v in _VARIANTS.values()):
        raise ValueError(f"Command already registered: {variant.command_id}")
    _VARIANTS[variant.variant_id] = variant
    return variant


def get_variant(variant_id: str) -> QueryVariant:
    try:
        return _VARIANTS[variant_id]
    except KeyError:
        raise KeyError(f"Unknown critical path variant: {variant_id}") from None


def get_variant_for_command(command_id: str) -> QueryVariant:
    for variant in _VARIANTS.values():
        if variant.command_id == command_id:
            return variant
    raise KeyError(f"Unknown critical path command: {command_id}")


def all_variants() -> list[QueryVariant]:
    return list(_VARIANTS.values())


LITE_BY_SLICE = register_variant(
    QueryVariant(
        variant_id="lite-by-slice",
        command_id="perfetto.CriticalPathLite",
        command_name="Critical path lite (selected thread state slice)",
        required_module=THREAD_EXECUTING_SPAN_MODULE,
        scope=Scope.SLICE,
        sink=SinkKind.DEBUG_TRACK,
        query_template=_lite_query("_thread_executing_span_critical_path"),
        output_column_names=LITE_COLUMN_NAMES,
        display_columns=LITE_DISPLAY_COLUMNS,
    )
)

FULL_BY_SLICE = register_variant(
    QueryVariant(
        variant_id="full-by-slice",
        command_id="perfetto.CriticalPath",
        command_name="Critical path (selected thread state slice)",
        required_module=THREAD_EXECUTING_SPAN_WITH_SLICE_MODULE,
        scope=Scope.SLICE,
        sink=SinkKind.DEBUG_TRACK,
        query_template=_full_by_slice_query,
        output_column_names=FULL_COLUMN_NAMES,
        display_columns=FULL_DISPLAY_COLUMNS,
        require_label=True,
    )
)

LITE_BY_AREA = register_variant(
    QueryVariant(
        variant_id="lite-by-area",
        command_id="perfetto.CriticalPathLite_AreaSelection",
        command_name="Critical path lite (over area selection)",
        required_module=THREAD_EXECUTING_SPAN_MODULE,
        scope=Scope.AREA,
        sink=SinkKind.DEBUG_TRACK,
        query_template=_lite_query("_thread_executing_span_critical_path"),
        output_column_names=LITE_COLUMN_NAMES,
        display_columns=LITE_DISPLAY_COLUMNS,
    )
)

FULL_BY_AREA = register_variant(
    QueryVariant(
        variant_id="full-by-area",
        command_id="perfetto.CriticalPath_AreaSelection",
        command_name="Critical path (over area selection)",
        required_module=THREAD_EXECUTING_SPAN_WITH_SLICE_MODULE,
        scope=Scope.AREA,
        sink=SinkKind.DEBUG_TRACK,
        query_template=_full_by_area_query,
        output_column_names=FULL_COLUMN_NAMES,
        display_columns=FULL_DISPLAY_COLUMNS,
        require_label=True,
    )
)

GRAPH_BY_AREA = register_variant(
    QueryVariant(
        variant_id="graph-by-area",
        command_id="perfetto.CriticalPathPprof_AreaSelection",
        command_name="Critical path pprof (over area selection)",
        required_module=THREAD_EXECUTING_SPAN_WITH_SLICE_MODULE,
        scope=Scope.AREA,
        sink=SinkKind.QUERY_TAB,
        query_template=_graph_query,
    )
)
