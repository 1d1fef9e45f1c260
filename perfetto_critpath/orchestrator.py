"""Runs critical path commands against the current selection."""

from __future__ import annotations

import logging

from perfetto_critpath.engine import Engine
from perfetto_critpath.selection import ResolutionFailure, SelectionResolver
from perfetto_critpath.sinks import (
    DebugTrack,
    FailureReporter,
    QueryResultsTab,
    TabularViewer,
    TrackMaterializer,
)
from perfetto_critpath.thread_info import get_thread_info
from perfetto_critpath.variants import (
    QueryVariant,
    SinkKind,
    get_variant,
    get_variant_for_command,
)

logger = logging.getLogger(__name__)


class CriticalPathOrchestrator:
    """Resolves the selection, loads the engine module, then dispatches the query.

    Invocations share no mutable state, so several may run concurrently.
    Engine failures are not caught here; they propagate to the caller.
    """

    def __init__(
        self,
        engine: Engine,
        resolver: SelectionResolver,
        tracks: TrackMaterializer,
        tabs: TabularViewer,
        reporter: FailureReporter,
    ):
        self.engine = engine
        self.resolver = resolver
        self.tracks = tracks
        self.tabs = tabs
        self.reporter = reporter

    async def run_command(
        self, command_id: str, utid: int | None = None
    ) -> DebugTrack | QueryResultsTab | ResolutionFailure:
        return await self.run(get_variant_for_command(command_id), utid)

    async def run(
        self, variant: QueryVariant | str, utid: int | None = None
    ) -> DebugTrack | QueryResultsTab | ResolutionFailure:
        """
        Run one critical path variant.

        Args:
            variant: A QueryVariant or its variant id
            utid: Thread to analyse; taken from the selection when omitted

        Returns:
            The created track or tab, or the ResolutionFailure that was reported
        """
        if isinstance(variant, str):
            variant = get_variant(variant)

        context = self.resolver.resolve(variant.scope, explicit_utid=utid)
        if isinstance(context, ResolutionFailure):
            logger.info("%s not run: %s", variant.variant_id, context.value)
            self.reporter.report(context)
            return context

        logger.debug(
            "%s resolved utid=%d window=[%d, %d]",
            variant.variant_id,
            context.utid,
            context.window.start,
            context.window.end,
        )

        if variant.sink is SinkKind.QUERY_TAB:
            # The analysis query uses definitions from this module.
            await self.engine.include_module(variant.required_module)
            return await self.tabs.open(
                variant.build_query_tab_spec(context.utid, context.window)
            )

        thread = await get_thread_info(self.engine, context.utid)
        title = thread.name if thread is not None else None
        await self.engine.include_module(variant.required_module)
        spec = variant.build_track_spec(context.utid, context.window, title)
        return await self.tracks.register(spec)
