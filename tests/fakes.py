from perfetto_critpath.engine import EngineQueryFailure


class FakeEngine:
    """In-memory engine. Rows are returned for the first needle found in the SQL."""

    def __init__(self, responses=None, fail_on=None):
        self.responses = responses or []
        self.fail_on = fail_on
        self.calls = []

    async def include_module(self, module):
        self.calls.append(("include", module))
        if self.fail_on is not None and self.fail_on in module:
            raise EngineQueryFailure(f"INCLUDE PERFETTO MODULE {module};", "module not found")

    async def query(self, sql):
        _, rows = await self.query_with_columns(sql)
        return rows

    async def query_with_columns(self, sql):
        """Responses are (needle, rows) or (needle, rows, column_names)."""
        self.calls.append(("query", sql))
        if self.fail_on is not None and self.fail_on in sql:
            raise EngineQueryFailure(sql, "no such function")
        for needle, rows, *columns in self.responses:
            if needle in sql:
                column_names = columns[0] if columns else list(rows[0]) if rows else []
                return list(column_names), [dict(row) for row in rows]
        return [], []


class FakeModal:
    def __init__(self):
        self.shown = []

    def show(self, title, content):
        self.shown.append((title, content))
