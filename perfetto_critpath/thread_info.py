"""Thread and process metadata lookups."""

from __future__ import annotations

from dataclasses import dataclass

from perfetto_critpath.engine import Engine


@dataclass(frozen=True)
class ThreadInfo:
    utid: int
    tid: int | None
    name: str | None
    upid: int | None
    pid: int | None
    process_name: str | None


def _to_thread_info(row: dict) -> ThreadInfo:
    return ThreadInfo(
        utid=row["utid"],
        tid=row.get("tid"),
        name=row.get("thread_name"),
        upid=row.get("upid"),
        pid=row.get("pid"),
        process_name=row.get("process_name"),
    )


async def get_thread_info(engine: Engine, utid: int) -> ThreadInfo | None:
    """
    Look up display metadata for a single thread.

    Returns:
        ThreadInfo, or None when no thread with that utid exists
    """
    rows = await engine.query(
        f"""
        SELECT
            thread.utid AS utid,
            thread.tid AS tid,
            thread.name AS thread_name,
            thread.upid AS upid,
            process.pid AS pid,
            process.name AS process_name
        FROM thread
        LEFT JOIN process USING(upid)
        WHERE thread.utid = {int(utid)}
        """
    )
    if not rows:
        return None
    return _to_thread_info(rows[0])


async def list_threads(engine: Engine) -> list[ThreadInfo]:
    rows = await engine.query(
        """
        SELECT
            thread.utid AS utid,
            thread.tid AS tid,
            thread.name AS thread_name,
            thread.upid AS upid,
            process.pid AS pid,
            process.name AS process_name
        FROM thread
        LEFT JOIN process USING(upid)
        ORDER BY thread.utid
        """
    )
    return [_to_thread_info(row) for row in rows]
