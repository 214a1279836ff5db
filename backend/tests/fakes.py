"""In-memory stand-ins for the Supabase client and the chat model."""

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from langchain_core.messages import AIMessageChunk


@dataclass
class FakeResponse:
    data: list


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.payload = None
        self.filters: list[tuple[str, object]] = []
        self.order_by: tuple[str, bool] | None = None
        self.max_rows: int | None = None

    # builder ---------------------------------------------------------

    def select(self, columns: str = "*"):
        self.op, self.columns = "select", columns
        return self

    def insert(self, rows):
        self.op, self.payload = "insert", rows
        return self

    def update(self, values: dict):
        self.op, self.payload = "update", values
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column: str, value):
        self.filters.append((column, value))
        return self

    def order(self, column: str, desc: bool = False):
        self.order_by = (column, desc)
        return self

    def limit(self, n: int):
        self.max_rows = n
        return self

    # execution -------------------------------------------------------

    def _matches(self, row: dict) -> bool:
        return all(row.get(col) == value for col, value in self.filters)

    def _project(self, row: dict) -> dict:
        if self.columns.strip() == "*":
            return copy.deepcopy(row)
        cols = [c.strip() for c in self.columns.split(",")]
        return {c: copy.deepcopy(row.get(c)) for c in cols}

    def execute(self) -> FakeResponse:
        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "select":
            found = [r for r in rows if self._matches(r)]
            if self.order_by:
                col, desc = self.order_by
                found.sort(key=lambda r: r.get(col) or "", reverse=desc)
            if self.max_rows is not None:
                found = found[: self.max_rows]
            return FakeResponse([self._project(r) for r in found])

        self.db.writes.append((self.table, self.op, copy.deepcopy(self.payload)))

        if self.op == "insert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            stored = []
            for row in new_rows:
                row = copy.deepcopy(row)
                row.setdefault("id", str(uuid.uuid4()))
                rows.append(row)
                stored.append(copy.deepcopy(row))
            return FakeResponse(stored)

        if self.op == "update":
            if self.db.before_update is not None:
                hook, self.db.before_update = self.db.before_update, None
                hook(self.db)
            if self.db.update_errors:
                raise self.db.update_errors.pop(0)
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self.payload))
                    updated.append(copy.deepcopy(row))
            return FakeResponse(updated)

        if self.op == "delete":
            removed = [r for r in rows if self._matches(r)]
            self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
            return FakeResponse(removed)

        raise AssertionError(f"unsupported op {self.op}")


class FakeBucket:
    def __init__(self, storage: "FakeStorage", name: str):
        self.storage = storage
        self.name = name

    def _maybe_fail(self, step: str):
        self.storage.calls.append((step, self.name))
        errors = self.storage.errors.get(step)
        if errors:
            exc = errors.pop(0) if len(errors) > 1 or not self.storage.sticky else errors[0]
            raise exc

    def upload(self, path: str, file: bytes, file_options: dict | None = None):
        # Objects land before a failing response, like a dropped connection would.
        self.storage.objects[(self.name, path)] = file
        self._maybe_fail("upload")
        return {"Key": f"{self.name}/{path}"}

    def create_signed_url(self, path: str, expires_in: int):
        self._maybe_fail("signed_url")
        return {"signedURL": f"https://storage.test/{self.name}/{path}?token=signed"}

    def get_public_url(self, path: str) -> str:
        self._maybe_fail("public_url")
        return f"https://storage.test/public/{self.name}/{path}"

    def remove(self, paths: list[str]):
        self.storage.calls.append(("remove", self.name))
        for path in paths:
            self.storage.objects.pop((self.name, path), None)
        return [{"name": p} for p in paths]


class FakeStorage:
    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.calls: list[tuple[str, str]] = []
        # step -> queued exceptions; with ``sticky`` the last one repeats forever
        self.errors: dict[str, list[Exception]] = {}
        self.sticky = False

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self, bucket)

    def attempts(self, step: str) -> int:
        return sum(1 for s, _ in self.calls if s == step)


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.writes: list[tuple[str, str, object]] = []
        self.storage = FakeStorage()
        self.update_errors: list[Exception] = []
        self.before_update = None

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def writes_to(self, table: str) -> list[tuple[str, str, object]]:
        return [w for w in self.writes if w[0] == table]


def seed_project(db: FakeSupabase, project_id: str, user_id: str, **fields) -> dict:
    now = datetime.now(timezone.utc).isoformat()
    row = {
        "id": project_id,
        "user_id": user_id,
        "name": "Retail Build",
        "description": "",
        "status": "active",
        "created_at": now,
        "updated_at": now,
        "chat_history": [],
        "scope": None,
        "proposal": None,
        "lessons_learned": [],
    }
    row.update(fields)
    db.tables.setdefault("projects", []).append(row)
    return row


def make_turn(role: str, content: str, type_: str, **extra) -> dict:
    return {
        "id": str(uuid.uuid4()),
        "role": role,
        "content": content,
        "type": type_,
        "attachments": [],
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "incomplete": False,
        **extra,
    }


class UpstreamStatusError(Exception):
    """Provider error carrying an HTTP status, like the SDKs' APIStatusError."""

    def __init__(self, status_code: int, message: str = "upstream error"):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class FakeChatModel:
    """Streams ``tokens`` one chunk at a time.

    ``fail_before`` is raised before the first chunk; ``fail_after`` chunks
    in, ``fail_with`` is raised instead of continuing.
    """

    tokens: list[str] = field(default_factory=lambda: ["Scope ", "of ", "work"])
    fail_before: Exception | None = None
    fail_after: int | None = None
    fail_with: Exception = field(default_factory=lambda: ConnectionError("connection reset"))
    calls: list[list] = field(default_factory=list)

    async def astream(self, messages):
        self.calls.append(list(messages))
        if self.fail_before is not None:
            raise self.fail_before
        yield AIMessageChunk(content="")
        for i, token in enumerate(self.tokens):
            if self.fail_after is not None and i == self.fail_after:
                raise self.fail_with
            yield AIMessageChunk(content=token)
