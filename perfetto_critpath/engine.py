"""Async adapter over the Perfetto TraceProcessor."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Protocol

from perfetto.trace_processor import (
    TraceProcessor,
    TraceProcessorConfig,
    TraceProcessorException,
)

logger = logging.getLogger(__name__)

DEFAULT_LOAD_TIMEOUT_SECONDS = 10


class EngineQueryFailure(RuntimeError):
    """A module include or query was rejected by the trace processor."""

    def __init__(self, sql: str, reason: str):
        super().__init__(f"Query failed: {reason}")
        self.sql = sql
        self.reason = reason


class Engine(Protocol):
    async def include_module(self, module: str) -> None: ...

    async def query(self, sql: str) -> list[dict]: ...

    async def query_with_columns(self, sql: str) -> tuple[list[str], list[dict]]: ...


def _q(tp: TraceProcessor, sql: str) -> tuple[list[str], list[dict]]:
    """Execute a SQL query and return its column names and rows as dictionaries."""
    result = tp.query(sql)
    column_names = list(result.column_names)
    rows = []
    for row in result:
        row_dict = {col: getattr(row, col) for col in column_names}
        rows.append(row_dict)
    return column_names, rows


def build_config() -> TraceProcessorConfig:
    bin_path = os.getenv("PERFETTO_TP_BIN")
    timeout = os.getenv("PERFETTO_TP_LOAD_TIMEOUT")
    try:
        load_timeout = int(timeout) if timeout else DEFAULT_LOAD_TIMEOUT_SECONDS
    except ValueError:
        logger.warning("Ignoring non-integer PERFETTO_TP_LOAD_TIMEOUT=%r", timeout)
        load_timeout = DEFAULT_LOAD_TIMEOUT_SECONDS
    return TraceProcessorConfig(bin_path=bin_path, load_timeout=load_timeout)


class TraceEngine:
    """Wrapper for Perfetto TraceProcessor exposing awaitable queries."""

    def __init__(self, trace_path: str, config: TraceProcessorConfig | None = None):
        """
        Load a trace file into a trace processor instance.

        Args:
            trace_path: Path to the Perfetto trace file
            config: Optional processor config; built from the environment if omitted
        """
        self.trace_path = trace_path
        self.tp = TraceProcessor(trace=trace_path, config=config or build_config())
        # The processor serves one request at a time.
        self._lock = asyncio.Lock()

    def close(self):
        """Close the trace processor."""
        self.tp.close()

    async def include_module(self, module: str) -> None:
        await self.query(f"INCLUDE PERFETTO MODULE {module};")

    async def query(self, sql: str) -> list[dict]:
        _, rows = await self.query_with_columns(sql)
        return rows

    async def query_with_columns(self, sql: str) -> tuple[list[str], list[dict]]:
        logger.debug("Running query: %s", " ".join(sql.split()))
        async with self._lock:
            try:
                return await asyncio.to_thread(_q, self.tp, sql)
            except TraceProcessorException as exc:
                raise EngineQueryFailure(sql, str(exc)) from exc
