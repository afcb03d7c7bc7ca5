from recordmapper.core_services.Database import ExecuteResult


class RecordingDatabase:
    """Connection double that records every statement and replays canned rows."""
    placeholder = "?"
    quote_char = ""

    def __init__(self, rows=None, lastrowid=1, rowcount=1, fail_with=None):
        self.rows = list(rows or [])
        self.lastrowid = lastrowid
        self.rowcount = rowcount
        self.fail_with = fail_with
        self.statements = []

    def execute(self, sql, params=()):
        self.statements.append(("execute", sql, tuple(params)))
        if self.fail_with:
            raise self.fail_with
        return ExecuteResult(self.rowcount, self.lastrowid)

    def query(self, sql, params=()):
        self.statements.append(("query", sql, tuple(params)))
        if self.fail_with:
            raise self.fail_with
        return [dict(row) for row in self.rows]

    @property
    def writes(self):
        return [s for s in self.statements if s[0] == "execute"]


class CallLog:
    """Collects (event, payload) pairs from hook callbacks."""

    def __init__(self):
        self.calls = []

    def names(self):
        return [name for name, _ in self.calls]

    def recorder(self, name):
        def record(*payload):
            self.calls.append((name, payload))
        return record
