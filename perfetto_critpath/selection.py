"""UI selection state and its resolution to a (thread, time window) pair.

Selections come in three shapes:
    NoSelection()                                  # nothing selected
    AreaSelection(track_uris=(...), start, end)    # range drawn over tracks
    LegacySelection(kind="THREAD_STATE", track_uri) # one discrete item

The resolver only reads this state; it never changes the selection.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from perfetto_critpath.engine import Engine
from perfetto_critpath.thread_info import list_threads

logger = logging.getLogger(__name__)

THREAD_STATE_TRACK_KIND = "ThreadStateTrack"
THREAD_SLICE_TRACK_KIND = "ThreadSliceTrack"
THREAD_STATE_SELECTION = "THREAD_STATE"


@dataclass(frozen=True)
class TimeWindow:
    start: int
    end: int


@dataclass(frozen=True)
class NoSelection:
    pass


@dataclass(frozen=True)
class AreaSelection:
    track_uris: tuple[str, ...]
    start: int
    end: int


@dataclass(frozen=True)
class LegacySelection:
    kind: str
    track_uri: str | None = None


Selection = Union[NoSelection, AreaSelection, LegacySelection]


@dataclass(frozen=True)
class TrackDescriptor:
    uri: str
    kind: str
    utid: int | None = None
    title: str = ""


class TrackManager:
    """Track descriptors keyed by uri, in registration order."""

    def __init__(self, tracks: list[TrackDescriptor] | None = None):
        self._tracks: dict[str, TrackDescriptor] = {}
        for track in tracks or []:
            self.register(track)

    def register(self, track: TrackDescriptor) -> None:
        self._tracks[track.uri] = track

    def get_track(self, uri: str) -> TrackDescriptor | None:
        return self._tracks.get(uri)

    def tracks(self) -> list[TrackDescriptor]:
        return list(self._tracks.values())


@dataclass
class UiState:
    tracks: TrackManager
    trace_span: TimeWindow
    visible_window: TimeWindow
    selection: Selection = field(default_factory=NoSelection)

    def time_span_of_selection_or_visible_window(self) -> TimeWindow:
        if isinstance(self.selection, AreaSelection):
            return TimeWindow(self.selection.start, self.selection.end)
        return self.visible_window


class ResolutionFailure(Enum):
    AREA_SELECTION_REQUIRED = "AreaSelectionRequired"
    THREAD_STATE_REQUIRED = "ThreadStateRequired"


class Scope(Enum):
    """How an invocation finds its thread: one selected slice, or an area."""

    SLICE = "slice"
    AREA = "area"


@dataclass(frozen=True)
class ResolvedContext:
    utid: int
    window: TimeWindow


class SelectionResolver:
    def __init__(self, state: UiState):
        self.state = state

    def resolve(
        self,
        scope: Scope,
        explicit_utid: int | None = None,
    ) -> ResolvedContext | ResolutionFailure:
        """
        Resolve the current selection into a thread and a time window.

        An explicit utid is trusted as-is. Otherwise slice-scoped invocations
        need a selected thread state slice and area-scoped invocations need an
        area selection covering at least one thread state track.

        Returns:
            ResolvedContext on success, or the ResolutionFailure that applies
        """
        if explicit_utid is not None:
            utid = explicit_utid
        elif scope is Scope.SLICE:
            utid = self._selected_thread_state_utid()
            if utid is None:
                return ResolutionFailure.THREAD_STATE_REQUIRED
        else:
            utid = self._first_thread_state_utid_of_area()
            if utid is None:
                return ResolutionFailure.AREA_SELECTION_REQUIRED

        window = self._window_for(scope)
        if window.end < window.start:
            # Passed through unchanged; the engine decides what an inverted window means.
            logger.warning("Resolved window ends before it starts: %s", window)
        return ResolvedContext(utid=utid, window=window)

    def _window_for(self, scope: Scope) -> TimeWindow:
        if scope is Scope.SLICE:
            return self.state.trace_span
        return self.state.time_span_of_selection_or_visible_window()

    def _selected_thread_state_utid(self) -> int | None:
        match self.state.selection:
            case LegacySelection(kind=kind, track_uri=track_uri):
                if kind != THREAD_STATE_SELECTION or track_uri is None:
                    return None
                track = self.state.tracks.get_track(track_uri)
                return track.utid if track is not None else None
            case AreaSelection() | NoSelection():
                return None
            case other:
                raise TypeError(f"Unknown selection type: {type(other).__name__}")

    def _first_thread_state_utid_of_area(self) -> int | None:
        match self.state.selection:
            case AreaSelection(track_uris=track_uris):
                for uri in track_uris:
                    track = self.state.tracks.get_track(uri)
                    if (
                        track is not None
                        and track.kind == THREAD_STATE_TRACK_KIND
                        and track.utid is not None
                    ):
                        return track.utid
                return None
            case LegacySelection() | NoSelection():
                return None
            case other:
                raise TypeError(f"Unknown selection type: {type(other).__name__}")


def thread_state_track_uri(utid: int) -> str:
    return f"/thread_{utid}_state"


def thread_slice_track_uri(utid: int) -> str:
    return f"/thread_{utid}_slices"


async def load_ui_state(engine: Engine) -> UiState:
    """
    Build UI state for a loaded trace: one thread state track and one thread
    slice track per thread, with the visible window covering the whole trace.
    """
    bounds = await engine.query("SELECT start_ts, end_ts FROM trace_bounds")
    if bounds:
        trace_span = TimeWindow(bounds[0]["start_ts"], bounds[0]["end_ts"])
    else:
        trace_span = TimeWindow(0, 0)

    tracks = TrackManager()
    for thread in await list_threads(engine):
        label = thread.name or "Thread"
        tracks.register(
            TrackDescriptor(
                uri=thread_state_track_uri(thread.utid),
                kind=THREAD_STATE_TRACK_KIND,
                utid=thread.utid,
                title=f"{label} {thread.tid} (state)",
            )
        )
        tracks.register(
            TrackDescriptor(
                uri=thread_slice_track_uri(thread.utid),
                kind=THREAD_SLICE_TRACK_KIND,
                utid=thread.utid,
                title=f"{label} {thread.tid}",
            )
        )
    return UiState(tracks=tracks, trace_span=trace_span, visible_window=trace_span)
